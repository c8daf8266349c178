"""
FlickCatch Simulation
Throw state machine, entity arena, callback queue and configuration.
"""

from capture_sim.arena import Arena, Entity
from capture_sim.config import DEFAULT_CONFIG, load_config, overlay_config
from capture_sim.errors import CaptureSimError, InvalidTransition
from capture_sim.scheduler import CallbackQueue
from capture_sim.state_machine import (
    EVENTS,
    Phase,
    ThrowOutcome,
    ThrowState,
    ThrowStateMachine,
    TickResult,
)

__all__ = [
    "Arena",
    "Entity",
    "DEFAULT_CONFIG",
    "load_config",
    "overlay_config",
    "CaptureSimError",
    "InvalidTransition",
    "CallbackQueue",
    "EVENTS",
    "Phase",
    "ThrowOutcome",
    "ThrowState",
    "ThrowStateMachine",
    "TickResult",
]
