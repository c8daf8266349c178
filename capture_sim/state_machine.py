"""
FlickCatch Simulation: Throw State Machine

Owns the lifecycle of a single throw:

    IDLE --arm--> IN_FLIGHT --t>=1--> RESOLVING --settle delay--> SETTLING
      ^                                                              |
      +---------------------------- reset ---------------------------+

Driven by one external tick source (advance/tick) plus discrete events
(arm, reset). Everything runs on the caller's thread; there is no locking.
Deferred side effects go through a CallbackQueue keyed to simulation time
and are tagged with the throw's session token, so a reset both cancels them
and makes any that slip through no-op.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional

import numpy as np

from throw_physics.collision import CaptureTarget, capture_radius, check_hit
from throw_physics.roll import RollMotion, draw_roll_impulse, settle
from throw_physics.trajectory import (
    Launch,
    fallback_target,
    make_launch,
    position,
    sample_trajectory,
)
from throw_physics.tween import drop_position, shrink_scale

from capture_sim.arena import BALL, CREATURE, Arena
from capture_sim.config import DEFAULT_CONFIG, merge_config, overlay_config
from capture_sim.errors import InvalidTransition
from capture_sim.scheduler import CallbackQueue

logger = logging.getLogger(__name__)

# Absorbs float drift when frame durations are summed (e.g. 36 * 1/60).
CLOCK_TOLERANCE = 1e-9

EVENTS = ("landed", "captured", "settled", "reset", "phase_changed")


class Phase(Enum):
    """Discrete stage of a throw's lifecycle."""
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    RESOLVING = "resolving"
    SETTLING = "settling"


@dataclass(frozen=True)
class ThrowOutcome:
    """How a throw resolved.

    Every completed throw at a creature is a capture. `hit` and
    `closest_approach` come from testing the sampled arc against the
    creature's capture sphere and are kept for diagnostics only.
    """
    captured: bool
    creature_id: Optional[str] = None
    hit: bool = False
    hit_position: Optional[np.ndarray] = None
    closest_approach: Optional[float] = None


@dataclass
class ThrowState:
    """The one ball in flight (or resolving, or settling)."""
    launch: Launch
    token: int
    ball_id: str
    target_id: Optional[str] = None   # arena id of the creature, never the entity
    phase: Phase = Phase.IN_FLIGHT
    elapsed: float = 0.0
    landing_position: Optional[np.ndarray] = None
    rest_position: Optional[np.ndarray] = None
    roll: Optional[RollMotion] = None
    outcome: Optional[ThrowOutcome] = None
    resolved_at: Optional[float] = None
    settled_at: Optional[float] = None

    @property
    def progress(self) -> float:
        return min(self.elapsed / self.launch.duration, 1.0)


class TickResult(NamedTuple):
    phase: Phase
    ball_position: Optional[np.ndarray]
    progress: float
    clock: float


class ThrowStateMachine:
    """Throw-and-capture session.

    Args:
        config: Overrides merged onto DEFAULT_CONFIG (or a full dict from
            load_config()).
        rng: Random generator for the roll impulse.
        seed: Seed for a fresh generator when `rng` is not given.
    """

    def __init__(
        self,
        config: Optional[dict] = None,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ):
        self.config = merge_config(DEFAULT_CONFIG, config)
        self.rng = rng if rng is not None else np.random.default_rng(seed)

        self.arena = Arena()
        self.callbacks = CallbackQueue()
        self.clock: float = 0.0
        self.reset_available: bool = False

        self._throw: Optional[ThrowState] = None
        self._token: int = 0
        self._last_timestamp: Optional[float] = None
        self._shrinking = None   # (creature_id, started_at, initial_scale)
        self._handlers: Dict[str, List[Callable]] = {name: [] for name in EVENTS}

        self.ball_id: Optional[str] = self._spawn_ball().id
        self.creature_id: Optional[str] = self._spawn_creature().id

    # ---------- Events ----------
    def subscribe(self, event: str, handler: Callable) -> Callable:
        """Register `handler` for `event`. Returns the handler."""
        if event not in self._handlers:
            raise ValueError(f"Unknown event {event!r}, expected one of {EVENTS}")
        self._handlers[event].append(handler)
        return handler

    def unsubscribe(self, event: str, handler: Callable) -> None:
        if event not in self._handlers:
            raise ValueError(f"Unknown event {event!r}, expected one of {EVENTS}")
        self._handlers[event].remove(handler)

    def _emit(self, event: str, *args) -> None:
        for handler in list(self._handlers[event]):
            handler(*args)

    # ---------- Queries ----------
    def current_phase(self) -> Phase:
        return self._throw.phase if self._throw is not None else Phase.IDLE

    def current_ball_position(self) -> Optional[np.ndarray]:
        ball = self.arena.get(self.ball_id)
        return ball.position.copy() if ball is not None else None

    def creature_position(self) -> Optional[np.ndarray]:
        """Position of the creature, or None once it has been captured."""
        creature = self.arena.get(self.creature_id)
        if creature is None or not creature.is_active:
            return None
        return creature.position.copy()

    @property
    def throw_state(self) -> Optional[ThrowState]:
        return self._throw

    @property
    def outcome(self) -> Optional[ThrowOutcome]:
        return self._throw.outcome if self._throw is not None else None

    @property
    def overlay(self) -> dict:
        """Reset-control state for the rendering collaborator."""
        cfg = overlay_config(self.config)
        return {**cfg, "reset_visible": self.reset_available and cfg["show_reset_button"]}

    # ---------- Transitions ----------
    def arm(self, launch_start: np.ndarray, creature_position: Optional[np.ndarray] = None) -> Launch:
        """Start a throw from IDLE.

        Args:
            launch_start: Where the ball leaves the hand [x, y, z].
            creature_position: Where the creature stands, or None to throw
                at a point `fallback_distance` straight ahead.

        Returns:
            The Launch of the new throw.

        Raises:
            InvalidTransition: a throw is already in progress. Nothing changes.
        """
        phase = self.current_phase()
        if phase is not Phase.IDLE:
            logger.warning("arm rejected in phase %s", phase.value)
            raise InvalidTransition("arm", phase)

        start = np.array(launch_start, dtype=np.float64)
        if creature_position is None:
            target = fallback_target(start, self.config["fallback_distance"])
            target_id = None
            logger.info("No creature to aim at; throwing at %s", np.round(target, 3))
        else:
            target = np.array(creature_position, dtype=np.float64)
            target_id = self.creature_id if self.creature_position() is not None else None

        launch = make_launch(start, target, self.config)

        self._token += 1
        self.arena.move(self.ball_id, launch.start)
        self._throw = ThrowState(
            launch=launch,
            token=self._token,
            ball_id=self.ball_id,
            target_id=target_id,
        )
        logger.info(
            "Throw %d armed: distance %.3f m, height %.3f m, duration %.3f s",
            self._token, launch.distance, launch.height, launch.duration,
        )
        self._emit("phase_changed", Phase.IDLE, Phase.IN_FLIGHT)
        return launch

    def advance(self, dt: float) -> TickResult:
        """Advance simulation time by `dt` seconds.

        Order within a tick: clock, due callbacks, then the ball. A tick that
        finishes the flight ends in RESOLVING; any time past the landing is
        dropped.
        """
        dt = float(dt)
        if not np.isfinite(dt) or dt < 0.0:
            logger.warning("Ignoring tick with dt=%r", dt)
            return self._tick_result()

        self.clock += dt
        self.callbacks.run_due(self.clock + CLOCK_TOLERANCE)

        throw = self._throw
        if throw is not None:
            if throw.phase is Phase.IN_FLIGHT:
                self._advance_flight(throw, dt)
            elif throw.phase is Phase.RESOLVING:
                self._advance_drop(throw)
            elif throw.phase is Phase.SETTLING:
                self._advance_roll(throw)
        self._advance_shrink()

        return self._tick_result()

    def tick(self, timestamp: float) -> TickResult:
        """Advance to an absolute timestamp (e.g. a display-link time).

        The first call only sets the reference time. Timestamps earlier than
        the previous one are ignored.
        """
        timestamp = float(timestamp)
        if not np.isfinite(timestamp):
            logger.warning("Ignoring tick with timestamp=%r", timestamp)
            return self._tick_result()
        if self._last_timestamp is None:
            self._last_timestamp = timestamp
            return self.advance(0.0)
        if timestamp < self._last_timestamp:
            logger.warning(
                "Ignoring out-of-order tick %.6f < %.6f", timestamp, self._last_timestamp,
            )
            return self._tick_result()
        dt = timestamp - self._last_timestamp
        self._last_timestamp = timestamp
        return self.advance(dt)

    def reset(self) -> bool:
        """Tear down the current throw and get ready for the next one.

        Cancels the throw's pending callbacks, replaces the thrown ball with a
        fresh one at home, restores the creature when configured to, and hides
        the reset control.

        Returns:
            True if a throw was torn down, False if already IDLE.
        """
        throw = self._throw
        if throw is None:
            return False

        old_phase = throw.phase
        cancelled = self.callbacks.cancel(throw.token)
        self._throw = None

        self.arena.remove(throw.ball_id)
        self.ball_id = self._spawn_ball().id
        self._restore_creature()
        self.reset_available = False

        logger.info(
            "Throw %d reset from %s (%d pending callback(s) cancelled)",
            throw.token, old_phase.value, cancelled,
        )
        self._emit("phase_changed", old_phase, Phase.IDLE)
        self._emit("reset")
        return True

    # ---------- Internals ----------
    def _tick_result(self) -> TickResult:
        progress = self._throw.progress if self._throw is not None else 0.0
        return TickResult(
            phase=self.current_phase(),
            ball_position=self.current_ball_position(),
            progress=progress,
            clock=self.clock,
        )

    def _set_phase(self, throw: ThrowState, phase: Phase) -> Phase:
        """Switch phase without notifying. Returns the previous phase."""
        old = throw.phase
        throw.phase = phase
        logger.debug("Throw %d: %s -> %s", throw.token, old.value, phase.value)
        return old

    def _guarded(self, token: int, name: str, fn: Callable[[], None]) -> Callable[[], None]:
        """Wrap a deferred callback so it no-ops once its session is gone."""
        def callback():
            if self._throw is None or self._throw.token != token:
                logger.debug("Dropping stale %s callback of throw %d", name, token)
                return
            fn()
        return callback

    def _schedule(self, throw: ThrowState, delay: float, name: str, fn: Callable[[], None]) -> None:
        self.callbacks.schedule(
            self.clock + delay, throw.token, name, self._guarded(throw.token, name, fn),
        )

    def _spawn_ball(self):
        return self.arena.spawn(BALL, self.config["ball_home_position"])

    def _spawn_creature(self):
        return self.arena.spawn(
            CREATURE,
            self.config["creature_home_position"],
            scale=self.config["creature_scale"],
        )

    def _advance_flight(self, throw: ThrowState, dt: float) -> None:
        throw.elapsed += dt
        if throw.elapsed + CLOCK_TOLERANCE < throw.launch.duration:
            self.arena.move(throw.ball_id, position(throw.launch, throw.progress))
            return
        throw.elapsed = throw.launch.duration
        self._resolve(throw)

    def _resolve(self, throw: ThrowState) -> None:
        launch = throw.launch
        landing = launch.target.copy()
        self.arena.move(throw.ball_id, landing)

        throw.landing_position = landing
        throw.rest_position = np.array([landing[0], self.config["rest_height"], landing[2]])
        throw.resolved_at = self.clock
        throw.outcome = self._test_capture(throw)

        old_phase = self._set_phase(throw, Phase.RESOLVING)
        self.reset_available = True
        logger.info("Throw %d landed at %s", throw.token, np.round(landing, 3))

        captured_id = self._capture_creature(throw) if throw.outcome.captured else None
        self._schedule(throw, self.config["settle_delay"], "settle", self._begin_settle)

        # Handlers run last so one that raises cannot leave the throw half-resolved.
        self._emit("phase_changed", old_phase, Phase.RESOLVING)
        self._emit("landed", landing.copy())
        if captured_id is not None:
            self._emit("captured", captured_id)

    def _test_capture(self, throw: ThrowState) -> ThrowOutcome:
        creature = self.arena.get(throw.target_id)
        if creature is None:
            return ThrowOutcome(captured=False)

        target = CaptureTarget(
            id=creature.id,
            position=creature.position.copy(),
            radius=capture_radius(
                self.config["creature_extents"], self.config["collision_scale"],
            ),
        )
        hit, hit_position, closest = check_hit(sample_trajectory(throw.launch), target)
        if not hit:
            logger.debug(
                "Throw %d arc missed capture sphere of %s by %.3f m; capturing anyway",
                throw.token, creature.id, closest - target.radius,
            )
        return ThrowOutcome(
            captured=True,
            creature_id=creature.id,
            hit=hit,
            hit_position=hit_position,
            closest_approach=closest,
        )

    def _capture_creature(self, throw: ThrowState) -> str:
        creature_id = throw.target_id
        creature = self.arena.get(creature_id)

        # The creature is gone as far as the state machine is concerned; the
        # shrink and detach are presentation.
        throw.target_id = None
        self.creature_id = None
        self._shrinking = (creature_id, self.clock, creature.scale)
        self._schedule(
            throw, self.config["shrink_duration"], "detach_creature",
            lambda: self._detach_creature(creature_id),
        )

        logger.info("Throw %d captured %s", throw.token, creature_id)
        return creature_id

    def _advance_shrink(self) -> None:
        if self._shrinking is None:
            return
        creature_id, started_at, initial = self._shrinking
        creature = self.arena.get(creature_id)
        if creature is None:
            self._shrinking = None
            return
        duration = self.config["shrink_duration"]
        progress = (self.clock - started_at) / duration if duration > 0 else 1.0
        creature.scale = shrink_scale(initial, progress)

    def _detach_creature(self, creature_id: str) -> None:
        self.arena.remove(creature_id)
        self._shrinking = None
        logger.debug("Detached %s", creature_id)

    def _advance_drop(self, throw: ThrowState) -> None:
        duration = self.config["landing_duration"]
        progress = (self.clock - throw.resolved_at) / duration if duration > 0 else 1.0
        self.arena.move(
            throw.ball_id,
            drop_position(throw.landing_position, throw.rest_position, progress),
        )

    def _begin_settle(self) -> None:
        throw = self._throw
        self.arena.move(throw.ball_id, throw.rest_position)

        impulse = draw_roll_impulse(self.rng, self.config["roll_impulse"])
        throw.roll = settle(
            throw.rest_position,
            impulse=impulse,
            angular_factor=self.config["roll_angular_factor"],
            duration=self.config["roll_duration"],
        )
        ball = self.arena.get(throw.ball_id)
        ball.velocity = throw.roll.linear_velocity.copy()
        ball.angular_velocity = throw.roll.angular_velocity.copy()
        throw.settled_at = self.clock

        old_phase = self._set_phase(throw, Phase.SETTLING)
        self._emit("phase_changed", old_phase, Phase.SETTLING)
        self._emit("settled", throw.rest_position.copy())

    def _advance_roll(self, throw: ThrowState) -> None:
        t = self.clock - throw.settled_at
        self.arena.move(throw.ball_id, throw.roll.position_at(t))
        if throw.roll.is_finished(t):
            ball = self.arena.get(throw.ball_id)
            ball.velocity = np.zeros(3)
            ball.angular_velocity = np.zeros(3)

    def _restore_creature(self) -> None:
        shrinking_id = self._shrinking[0] if self._shrinking is not None else None
        self._shrinking = None

        if not self.config["restore_creature_on_reset"]:
            if shrinking_id is not None:
                self.arena.remove(shrinking_id)
            return

        creature = self.arena.get(self.creature_id) or self.arena.get(shrinking_id)
        if creature is None:
            creature = self._spawn_creature()
        creature.position = np.array(self.config["creature_home_position"], dtype=np.float64)
        creature.scale = float(self.config["creature_scale"])
        creature.is_active = True
        self.creature_id = creature.id
