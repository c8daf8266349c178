"""
FlickCatch Physics: Post-Landing Roll

Cosmetic settle motion for a ball that has come to rest on the floor:
a small random horizontal impulse plus a matching spin. This is not a
rigid-body solve; it only has to look plausible for about a second.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

# ---------- Constants ----------
ROLL_IMPULSE = 0.002          # m/s, linear speed of the nudge
ANGULAR_FACTOR = 10.0         # rad/s of spin per m/s of roll
ROLL_DURATION = 1.0           # s until the roll has fully stopped
DISK_HALF_WIDTH = 0.5         # direction drawn from x, z ∈ [-0.5, 0.5]


# ---------- Data Classes ----------
@dataclass(frozen=True)
class RollImpulse:
    """Horizontal unit direction and magnitude of the landing nudge."""
    direction: np.ndarray    # [x, 0, z], unit length
    magnitude: float         # m/s

    @property
    def linear(self) -> np.ndarray:
        return self.direction * self.magnitude


@dataclass(frozen=True)
class RollMotion:
    """Bounded-duration roll seeded by a RollImpulse.

    The ball decelerates uniformly from `linear_velocity` to zero over
    `duration`, then stays put.
    """
    rest_position: np.ndarray
    linear_velocity: np.ndarray
    angular_velocity: np.ndarray
    duration: float = ROLL_DURATION

    def _travel_time(self, t: float) -> float:
        # ∫ (1 - s/D) ds from 0 to t, capped at t = D
        t = float(np.clip(t, 0.0, self.duration))
        return t - t * t / (2.0 * self.duration)

    def displacement(self, t: float) -> np.ndarray:
        return self.linear_velocity * self._travel_time(t)

    def position_at(self, t: float) -> np.ndarray:
        return self.rest_position + self.displacement(t)

    def rotation_at(self, t: float) -> np.ndarray:
        """Accumulated rotation as an axis-angle vector (radians)."""
        return self.angular_velocity * self._travel_time(t)

    def is_finished(self, t: float) -> bool:
        return t >= self.duration


# ---------- Functions ----------
def draw_roll_impulse(
    rng: np.random.Generator,
    magnitude: float = ROLL_IMPULSE,
) -> RollImpulse:
    """Draw a random horizontal direction from the [-0.5, 0.5]² disk.

    A draw that lands (numerically) on the origin has no direction and is
    redrawn.
    """
    while True:
        x, z = rng.uniform(-DISK_HALF_WIDTH, DISK_HALF_WIDTH, size=2)
        direction = np.array([x, 0.0, z])
        norm = np.linalg.norm(direction)
        if norm > 1e-9:
            return RollImpulse(direction=direction / norm, magnitude=float(magnitude))


def settle(
    rest_position: np.ndarray,
    rng: Optional[np.random.Generator] = None,
    impulse: Optional[RollImpulse] = None,
    angular_factor: float = ANGULAR_FACTOR,
    duration: float = ROLL_DURATION,
) -> RollMotion:
    """Compute the roll for a ball resting at `rest_position`.

    angular = (linear.z * k, 0, -linear.x * k), so the spin axis lies
    perpendicular to the roll direction in the floor plane.

    Args:
        rest_position: Where the ball touched down [x, y, z].
        rng: Source of randomness for the impulse direction.
        impulse: Use this impulse instead of drawing one.
        angular_factor: k above.
        duration: Seconds until the roll stops.

    Returns:
        RollMotion starting at rest_position.
    """
    if duration <= 0:
        raise ValueError(f"duration must be > 0, got {duration}")
    if impulse is None:
        impulse = draw_roll_impulse(rng if rng is not None else np.random.default_rng())

    linear = impulse.linear
    angular = np.array([
        linear[2] * angular_factor,
        0.0,
        -linear[0] * angular_factor,
    ])
    return RollMotion(
        rest_position=np.array(rest_position, dtype=np.float64),
        linear_velocity=linear,
        angular_velocity=angular,
        duration=float(duration),
    )


# ---------- Smoke Test ----------
if __name__ == "__main__":
    from rich.console import Console

    console = Console()
    console.print("\n[bold cyan]FlickCatch Roll Smoke Test[/bold cyan]\n")

    rng = np.random.default_rng(seed=7)
    rest = np.array([0.0, 0.025, -0.5])

    console.print("[bold]Test 1:[/bold] Impulse is horizontal and small")
    motion = settle(rest, rng=rng)
    console.print(f"  Linear: {motion.linear_velocity}")
    console.print(f"  Angular: {motion.angular_velocity}")
    assert motion.linear_velocity[1] == 0.0
    assert np.isclose(np.linalg.norm(motion.linear_velocity), ROLL_IMPULSE)
    console.print("  ✅ Horizontal, magnitude matches\n")

    console.print("[bold]Test 2:[/bold] Roll stops after its duration")
    end = motion.position_at(motion.duration)
    later = motion.position_at(motion.duration + 5.0)
    assert np.array_equal(end, later)
    console.print(f"  ✅ Final position {end}\n")

    console.print("[bold green]All roll tests passed![/bold green]\n")
