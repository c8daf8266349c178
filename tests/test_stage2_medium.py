"""
FlickCatch Test Suite: Stage 2 MEDIUM

Integration and behavior tests: do the components work together correctly?
Drives the throw state machine through whole throws with a fixed tick.

Tests:
    - Initial scene layout
    - Arming, including the no-creature fallback
    - Flight sampling and the exact landing snap
    - Phase order and emitted events
    - Capture: creature reference cleared, shrink, detach
    - Landing drop and post-landing roll
    - Reset and the next throw
    - Overlay state and config-driven behavior
    - Headless runner
"""

import json
import logging

import numpy as np
import pytest

from throw_physics.trajectory import position
from capture_sim.errors import InvalidTransition
from capture_sim.simulate import run_session
from capture_sim.state_machine import Phase, ThrowStateMachine

from conftest import CREATURE, HAND


# ============================================================
# 1. Initial State
# ============================================================

class TestInitialState:
    """A fresh machine is idle with a ball in hand and a creature on the floor."""

    def test_starts_idle(self, machine):
        assert machine.current_phase() is Phase.IDLE
        assert machine.throw_state is None
        assert machine.outcome is None

    def test_ball_at_home(self, machine):
        assert np.allclose(machine.current_ball_position(), [0.0, -0.3, -0.8])

    def test_creature_at_home(self, machine):
        assert np.allclose(machine.creature_position(), CREATURE)
        assert machine.arena.get(machine.creature_id).scale == 0.005

    def test_idle_ticks_only_move_clock(self, machine):
        result = machine.advance(0.5)
        assert result.phase is Phase.IDLE
        assert result.clock == 0.5
        assert result.progress == 0.0

    def test_reset_control_hidden(self, machine):
        assert machine.overlay["reset_visible"] is False


# ============================================================
# 2. Arming
# ============================================================

class TestArm:
    """Idle → InFlight."""

    def test_arm_at_creature(self, machine):
        launch = machine.arm(HAND, machine.creature_position())
        assert machine.current_phase() is Phase.IN_FLIGHT
        assert np.array_equal(launch.target, CREATURE)
        assert machine.throw_state.target_id == machine.creature_id
        assert machine.throw_state.elapsed == 0.0

    def test_arm_moves_ball_to_launch_point(self, machine):
        machine.arm(HAND, CREATURE)
        assert np.array_equal(machine.current_ball_position(), HAND)

    def test_arm_without_creature_uses_fallback(self, machine):
        """No creature: target is one unit straight ahead of the start."""
        launch = machine.arm(HAND, None)
        assert np.array_equal(launch.target, HAND + np.array([0.0, 0.0, -1.0]))
        assert machine.throw_state.target_id is None

    def test_second_arm_rejected(self, machine):
        """Two arms without a reset: second is refused, first throw untouched."""
        first = machine.arm(HAND, CREATURE)
        machine.advance(0.1)
        before = machine.current_ball_position()
        with pytest.raises(InvalidTransition) as excinfo:
            machine.arm(np.zeros(3), np.array([1.0, 0.0, -1.0]))
        assert excinfo.value.phase is Phase.IN_FLIGHT
        assert machine.throw_state.launch is first
        assert machine.throw_state.elapsed == pytest.approx(0.1)
        assert np.array_equal(machine.current_ball_position(), before)

    def test_rejected_arm_logged_as_warning(self, machine, caplog):
        machine.arm(HAND, CREATURE)
        caplog.clear()
        with caplog.at_level(logging.WARNING, logger="capture_sim.state_machine"):
            with pytest.raises(InvalidTransition):
                machine.arm(HAND, CREATURE)
        assert [r.levelno for r in caplog.records] == [logging.WARNING]
        assert "arm rejected in phase in_flight" in caplog.text

    @pytest.mark.parametrize("ticks,phase", [(1, Phase.RESOLVING), (3, Phase.SETTLING)])
    def test_arm_rejected_after_landing(self, machine, ticks, phase):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        for _ in range(ticks - 1):
            machine.advance(0.5)
        assert machine.current_phase() is phase
        with pytest.raises(InvalidTransition):
            machine.arm(HAND, CREATURE)
        assert machine.current_phase() is phase


# ============================================================
# 3. Flight
# ============================================================

class TestFlight:
    """InFlight ticks sample the arc; completion snaps to the target."""

    def test_mid_flight_position(self, machine):
        launch = machine.arm(HAND, CREATURE)
        result = machine.advance(0.3)
        assert result.phase is Phase.IN_FLIGHT
        assert result.progress == pytest.approx(0.5)
        assert np.allclose(result.ball_position, position(launch, 0.5))

    def test_two_half_ticks_land_exactly(self, machine):
        """advance(0.3) twice on a 0.6 s throw ends RESOLVING at the target."""
        launch = machine.arm(np.array([0.0, 0.3, -0.8]), np.array([0.0, 0.05, -0.5]))
        assert launch.duration == 0.6
        machine.advance(0.3)
        result = machine.advance(0.3)
        assert result.phase is Phase.RESOLVING
        assert np.array_equal(result.ball_position, launch.target)
        assert machine.throw_state.elapsed == launch.duration

    def test_sixty_fps_lands_exactly(self, machine, run_until):
        launch = machine.arm(HAND, CREATURE)
        run_until(machine, Phase.RESOLVING)
        assert np.array_equal(machine.current_ball_position(), launch.target)

    def test_ball_rises_above_straight_line(self, machine):
        launch = machine.arm(HAND, CREATURE)
        result = machine.advance(0.3)
        straight_y = (launch.start[1] + launch.target[1]) / 2
        assert result.ball_position[1] > straight_y


# ============================================================
# 4. Phase Order & Events
# ============================================================

class TestPhaseOrderAndEvents:
    """Idle → InFlight → Resolving → Settling, each exactly once."""

    def test_phase_order(self, machine, recorder, run_until):
        machine.arm(HAND, CREATURE)
        run_until(machine, Phase.SETTLING)
        for _ in range(120):
            machine.advance(1.0 / 60.0)
        transitions = [args for name, args in recorder if name == "phase_changed"]
        assert transitions == [
            (Phase.IDLE, Phase.IN_FLIGHT),
            (Phase.IN_FLIGHT, Phase.RESOLVING),
            (Phase.RESOLVING, Phase.SETTLING),
        ]

    def test_event_sequence(self, machine, recorder, run_until):
        machine.arm(HAND, CREATURE)
        run_until(machine, Phase.SETTLING)
        names = [name for name, _ in recorder if name != "phase_changed"]
        assert names == ["landed", "captured", "settled"]

    def test_landed_payload(self, machine, recorder):
        launch = machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        landed = [args for name, args in recorder if name == "landed"]
        assert len(landed) == 1
        assert np.array_equal(landed[0][0], launch.target)

    def test_captured_payload(self, machine, recorder):
        creature_id = machine.creature_id
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        assert ("captured", (creature_id,)) in recorder

    def test_settled_payload(self, machine, recorder):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        machine.advance(0.6)
        settled = [args[0] for name, args in recorder if name == "settled"]
        assert len(settled) == 1
        assert np.allclose(settled[0], [0.0, 0.025, -0.5])

    def test_unknown_event_rejected(self, machine):
        with pytest.raises(ValueError):
            machine.subscribe("thrown", lambda: None)

    def test_unsubscribe(self, machine):
        calls = []
        handler = machine.subscribe("landed", calls.append)
        machine.unsubscribe("landed", handler)
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        assert calls == []


# ============================================================
# 5. Capture
# ============================================================

class TestCapture:
    """Resolution captures the targeted creature."""

    def test_creature_reference_cleared(self, machine):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        assert machine.creature_position() is None
        assert machine.creature_id is None
        assert machine.throw_state.target_id is None

    def test_outcome_recorded(self, machine):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        outcome = machine.outcome
        assert outcome.captured
        assert outcome.creature_id == "creature-1"
        assert outcome.hit
        assert outcome.closest_approach == pytest.approx(0.0, abs=1e-9)

    def test_creature_shrinks_then_detaches(self, machine):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        machine.advance(0.25)
        creature = machine.arena.get("creature-1")
        assert creature.scale == pytest.approx(0.0025)
        machine.advance(0.25)
        assert machine.arena.get("creature-1") is None

    def test_fallback_throw_captures_nothing(self, machine, recorder):
        machine.arm(HAND, None)
        machine.advance(0.6)
        assert machine.current_phase() is Phase.RESOLVING
        assert machine.outcome.captured is False
        assert not any(name == "captured" for name, _ in recorder)
        assert machine.creature_position() is not None


# ============================================================
# 6. Landing Drop & Roll
# ============================================================

class TestLandingAndRoll:
    """Resolving drops the ball; Settling rolls it."""

    def test_ball_drops_toward_floor(self, machine):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        pos = machine.advance(0.25).ball_position
        assert 0.025 < pos[1] < 0.05
        assert pos[0] == pytest.approx(0.0)
        assert pos[2] == pytest.approx(-0.5)

    def test_ball_on_floor_before_settle(self, machine):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        result = machine.advance(0.55)
        assert result.phase is Phase.RESOLVING
        assert result.ball_position[1] == pytest.approx(0.025)

    def test_settle_after_delay(self, machine):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        assert machine.advance(0.5).phase is Phase.RESOLVING
        assert machine.advance(0.2).phase is Phase.SETTLING

    def test_roll_seeds_ball_velocity(self, machine):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        machine.advance(0.7)
        ball = machine.arena.get(machine.ball_id)
        roll = machine.throw_state.roll
        assert np.linalg.norm(ball.velocity) == pytest.approx(0.002)
        assert np.array_equal(ball.velocity, roll.linear_velocity)

    def test_roll_comes_to_rest(self, machine):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        machine.advance(0.7)
        roll = machine.throw_state.roll
        machine.advance(2.0)
        ball = machine.arena.get(machine.ball_id)
        assert np.allclose(ball.velocity, 0.0)
        assert np.allclose(
            machine.current_ball_position(),
            roll.rest_position + roll.linear_velocity * roll.duration / 2,
        )

    def test_same_seed_same_roll(self):
        rolls = []
        for _ in range(2):
            m = ThrowStateMachine(seed=7)
            m.arm(HAND, CREATURE)
            m.advance(0.6)
            m.advance(0.7)
            rolls.append(m.throw_state.roll.linear_velocity)
        assert np.array_equal(rolls[0], rolls[1])


# ============================================================
# 7. Reset
# ============================================================

class TestReset:
    """Explicit reset back to Idle."""

    def _settled(self, machine):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        machine.advance(0.7)
        assert machine.current_phase() is Phase.SETTLING

    def test_reset_from_settling(self, machine, recorder):
        self._settled(machine)
        old_ball = machine.ball_id
        assert machine.reset() is True
        assert machine.current_phase() is Phase.IDLE
        assert machine.throw_state is None
        assert machine.arena.get(old_ball) is None
        assert machine.ball_id == "ball-2"
        assert np.allclose(machine.current_ball_position(), [0.0, -0.3, -0.8])
        assert [name for name, _ in recorder].count("reset") == 1

    def test_reset_restores_creature(self, machine):
        self._settled(machine)
        machine.reset()
        assert np.allclose(machine.creature_position(), CREATURE)
        assert machine.arena.get(machine.creature_id).scale == 0.005

    def test_reset_from_idle_is_noop(self, machine, recorder):
        assert machine.reset() is False
        assert recorder == []
        assert machine.ball_id == "ball-1"

    def test_reset_hides_control(self, machine):
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        assert machine.overlay["reset_visible"] is True
        machine.reset()
        assert machine.overlay["reset_visible"] is False

    def test_next_throw_after_reset(self, machine, recorder, run_until):
        self._settled(machine)
        machine.reset()
        launch = machine.arm(machine.current_ball_position(), machine.creature_position())
        run_until(machine, Phase.RESOLVING)
        assert np.array_equal(machine.current_ball_position(), launch.target)
        captured = [args[0] for name, args in recorder if name == "captured"]
        assert captured == ["creature-1", "creature-2"]

    def test_no_restore_when_disabled(self):
        machine = ThrowStateMachine(config={"restore_creature_on_reset": False}, seed=1)
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        machine.advance(0.7)
        machine.reset()
        assert machine.creature_position() is None
        launch = machine.arm(HAND, machine.creature_position())
        assert np.array_equal(launch.target, HAND + np.array([0.0, 0.0, -1.0]))


# ============================================================
# 8. Overlay & Config
# ============================================================

class TestOverlayAndConfig:
    """Reset-control state is explicit configuration."""

    def test_hidden_button_never_visible(self):
        machine = ThrowStateMachine(config={"overlay": {"show_reset_button": False}})
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        assert machine.reset_available is True
        assert machine.overlay["reset_visible"] is False

    def test_overlay_carries_label(self, machine):
        assert machine.overlay["reset_label"] == "Try Again"
        assert machine.overlay["pulse_period"] == 1.5

    def test_custom_settle_delay(self):
        machine = ThrowStateMachine(config={"settle_delay": 2.0})
        machine.arm(HAND, CREATURE)
        machine.advance(0.6)
        assert machine.advance(1.5).phase is Phase.RESOLVING
        assert machine.advance(0.6).phase is Phase.SETTLING


# ============================================================
# 9. Headless Runner
# ============================================================

class TestHeadlessRunner:
    """run_session drives whole throws."""

    def test_all_throws_captured(self):
        results = run_session(n_throws=3, seed=3)
        assert len(results) == 3
        assert all(r["captured"] for r in results)

    def test_phase_trace(self):
        results = run_session(n_throws=1)
        assert results[0]["phases"] == ["idle", "in_flight", "resolving", "settling"]

    def test_fallback_session(self):
        results = run_session(n_throws=2, aim_at_creature=False)
        assert not any(r["captured"] for r in results)
        assert all(r["phases"][-1] == "settling" for r in results)

    def test_arena_dumped_at_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="capture_sim.simulate"):
            run_session(n_throws=1)
        dumps = [r for r in caplog.records if r.getMessage().startswith("Arena after throw 1")]
        assert len(dumps) == 1
        data = json.loads(dumps[0].getMessage().split("\n", 1)[1])
        # the captured creature has been detached; only the thrown ball remains
        assert data["count"] == 1
        assert data["entities"][0]["id"] == "ball-1"
