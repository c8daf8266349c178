"""
FlickCatch Physics: Throw Trajectory

Closed-form parabolic arc between a launch point and a target point.
The ball lands on the exact target at t=1 no matter how the caller
slices time, so tick jitter never changes where a throw ends.

Coordinate system: x=right, y=up, z=toward the camera (forward is -z)
All units SI: meters, seconds.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

# ---------- Constants ----------
MIN_ARC_HEIGHT = 0.2          # m
ARC_HEIGHT_FACTOR = 0.5       # height per meter of throw distance
MIN_FLIGHT_DURATION = 0.6     # s
FLIGHT_DURATION_FACTOR = 0.4  # seconds per meter of throw distance
FALLBACK_DISTANCE = 1.0       # m, straight ahead when no creature is present

FORWARD = np.array([0.0, 0.0, -1.0])


def _as_point(value, name: str) -> np.ndarray:
    point = np.array(value, dtype=np.float64)
    if point.shape != (3,):
        raise ValueError(f"{name} must be a 3D point, got shape {point.shape}")
    if not np.all(np.isfinite(point)):
        raise ValueError(f"{name} must be finite, got {point}")
    point.flags.writeable = False
    return point


# ---------- Data Classes ----------
@dataclass(frozen=True)
class Launch:
    """Immutable parameters of one throw."""
    start: np.ndarray     # [x, y, z]
    target: np.ndarray    # [x, y, z]
    height: float         # m, peak of the arc above the straight line
    duration: float       # s

    def __post_init__(self):
        object.__setattr__(self, "start", _as_point(self.start, "start"))
        object.__setattr__(self, "target", _as_point(self.target, "target"))
        height = float(self.height)
        duration = float(self.duration)
        if not np.isfinite(height) or height < 0.0:
            raise ValueError(f"height must be >= 0, got {self.height}")
        if not np.isfinite(duration) or duration <= 0.0:
            raise ValueError(f"duration must be > 0, got {self.duration}")
        object.__setattr__(self, "height", height)
        object.__setattr__(self, "duration", duration)

    @property
    def distance(self) -> float:
        return float(np.linalg.norm(self.target - self.start))


# ---------- Launch Construction ----------
def fallback_target(start: np.ndarray, distance: float = FALLBACK_DISTANCE) -> np.ndarray:
    """Synthetic target straight ahead of the launch point."""
    return np.array(start, dtype=np.float64) + FORWARD * distance


def make_launch(
    start: np.ndarray,
    target: np.ndarray,
    config: Optional[dict] = None,
) -> Launch:
    """Derive arc height and flight duration from the throw distance.

    height   = max(min_arc_height, distance * arc_height_factor)
    duration = max(min_flight_duration, distance * flight_duration_factor)

    The floors keep very short throws from collapsing to a zero-length,
    zero-time arc.

    Args:
        start: Launch position [x, y, z].
        target: Landing position [x, y, z].
        config: Optional overrides for the four derivation constants.

    Returns:
        A validated Launch.
    """
    cfg = config or {}
    start = np.array(start, dtype=np.float64)
    target = np.array(target, dtype=np.float64)
    dist = float(np.linalg.norm(target - start))

    height = max(
        cfg.get("min_arc_height", MIN_ARC_HEIGHT),
        dist * cfg.get("arc_height_factor", ARC_HEIGHT_FACTOR),
    )
    duration = max(
        cfg.get("min_flight_duration", MIN_FLIGHT_DURATION),
        dist * cfg.get("flight_duration_factor", FLIGHT_DURATION_FACTOR),
    )
    return Launch(start=start, target=target, height=height, duration=duration)


# ---------- Sampling ----------
def position(launch: Launch, t: float) -> np.ndarray:
    """Ball position at flight fraction t in [0, 1].

    x, z:  start*(1-t) + target*t
    y:     linear y + height * 4 * t * (1-t)

    The arc term is zero at both ends and peaks at `height` when t=0.5.
    """
    t = float(np.clip(t, 0.0, 1.0))
    if t == 0.0:
        return launch.start.copy()
    if t == 1.0:
        return launch.target.copy()

    pos = launch.start * (1.0 - t) + launch.target * t
    pos[1] += launch.height * 4.0 * t * (1.0 - t)
    return pos


def velocity(launch: Launch, t: float) -> np.ndarray:
    """Time derivative of position() in m/s at flight fraction t."""
    t = float(np.clip(t, 0.0, 1.0))
    vel = (launch.target - launch.start) / launch.duration
    vel[1] += launch.height * 4.0 * (1.0 - 2.0 * t) / launch.duration
    return vel


def apex(launch: Launch) -> np.ndarray:
    """Highest point of the arc.

    y(t) = y0 + dy*t + 4h*t*(1-t) peaks where dy + 4h*(1-2t) = 0.
    """
    dy = launch.target[1] - launch.start[1]
    if launch.height <= 0.0:
        return (launch.start if dy <= 0 else launch.target).copy()
    t_peak = 0.5 + dy / (8.0 * launch.height)
    return position(launch, t_peak)


def sample_trajectory(
    launch: Launch,
    steps: int = 60,
) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Evenly spaced (position, velocity) samples from t=0 to t=1.

    Returns:
        steps + 1 tuples; first position is launch.start, last is launch.target.
    """
    if steps < 1:
        raise ValueError(f"steps must be >= 1, got {steps}")
    return [
        (position(launch, i / steps), velocity(launch, i / steps))
        for i in range(steps + 1)
    ]


# ---------- Smoke Test ----------
if __name__ == "__main__":
    from rich.console import Console
    from rich.table import Table

    console = Console()
    console.print("\n[bold cyan]FlickCatch Trajectory Smoke Test[/bold cyan]\n")

    # Test 1: ball in hand to creature on the floor
    console.print("[bold]Test 1:[/bold] Hand (0, 0.3, -0.8) to creature (0, 0.05, -0.5)")
    launch = make_launch(np.array([0.0, 0.3, -0.8]), np.array([0.0, 0.05, -0.5]))
    console.print(f"  Distance: {launch.distance:.3f} m")
    console.print(f"  Height: {launch.height:.3f} m, duration: {launch.duration:.3f} s")

    table = Table(title="Arc samples")
    table.add_column("t", style="cyan")
    table.add_column("Position (x, y, z)", style="green")
    table.add_column("Speed (m/s)", style="yellow")
    for i, (pos, vel) in enumerate(sample_trajectory(launch, steps=10)):
        table.add_row(
            f"{i / 10:.1f}",
            f"({pos[0]:.3f}, {pos[1]:.3f}, {pos[2]:.3f})",
            f"{np.linalg.norm(vel):.3f}",
        )
    console.print(table)

    assert np.array_equal(position(launch, 0.0), launch.start)
    assert np.array_equal(position(launch, 1.0), launch.target)
    console.print("  ✅ Endpoints are exact\n")

    # Test 2: fallback target
    console.print("[bold]Test 2:[/bold] No creature present")
    start = np.array([0.0, 0.3, -0.8])
    fallback = make_launch(start, fallback_target(start))
    assert np.allclose(fallback.target, start + np.array([0.0, 0.0, -1.0]))
    console.print(f"  ✅ Fallback target: {fallback.target}\n")

    # Test 3: very short throw uses the floors
    console.print("[bold]Test 3:[/bold] Near-zero throw")
    tiny = make_launch(start, start + 1e-4)
    assert tiny.height == MIN_ARC_HEIGHT and tiny.duration == MIN_FLIGHT_DURATION
    console.print(f"  ✅ height={tiny.height}, duration={tiny.duration}\n")

    console.print("[bold green]All trajectory tests passed![/bold green]\n")
