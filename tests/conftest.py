"""
FlickCatch Test Suite: Shared Fixtures

Provides reusable pytest fixtures for all test stages.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from throw_physics.trajectory import Launch, make_launch
from throw_physics.collision import CaptureTarget
from capture_sim.state_machine import ThrowStateMachine


HAND = np.array([0.0, 0.3, -0.8])
CREATURE = np.array([0.0, 0.05, -0.5])


# ---------- Physics Fixtures ----------
@pytest.fixture
def hand_launch():
    """Hand-to-creature launch with a 0.6 s flight."""
    return Launch(start=HAND, target=CREATURE, height=0.2, duration=0.6)


@pytest.fixture
def long_launch():
    """Three meters across a room, climbing onto a table."""
    return make_launch(np.array([0.0, 0.0, 0.0]), np.array([1.0, 0.8, -2.8]))


@pytest.fixture
def creature_target():
    return CaptureTarget(id="creature", position=CREATURE.copy(), radius=0.1)


@pytest.fixture
def seeded_rng():
    """Seeded numpy RNG for determinism."""
    return np.random.default_rng(seed=42)


# ---------- State Machine Fixtures ----------
@pytest.fixture
def machine():
    """State machine with default config and a fixed seed."""
    return ThrowStateMachine(seed=42)


@pytest.fixture
def recorder(machine):
    """Subscribe to every event and collect (event, args) tuples."""
    events = []
    for name in ("landed", "captured", "settled", "reset", "phase_changed"):
        machine.subscribe(name, lambda *args, _name=name: events.append((_name, args)))
    return events


@pytest.fixture
def run_until():
    """Helper: tick a machine until it reaches a phase. Returns tick count."""
    def _run(machine, phase, dt=1.0 / 60.0, max_ticks=1000):
        for i in range(max_ticks):
            if machine.current_phase() is phase:
                return i
            machine.advance(dt)
        raise AssertionError(f"Never reached {phase} in {max_ticks} ticks")
    return _run
