"""
FlickCatch Physics: Capture Hit Testing

Hit detection between a sampled throw arc and the creature's capture volume.
Uses line-segment/sphere intersection between consecutive samples so a fast
ball cannot step over a small creature between two samples.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

# The creature's collision box is inflated to 3x its visual bounds so that
# flicks landing near (not on) the model still count.
COLLISION_SCALE = 3.0
ARRIVAL_TOLERANCE = 1e-6


# ---------- Data Classes ----------
@dataclass
class CaptureTarget:
    """Capture sphere around a creature."""
    id: str
    position: np.ndarray           # [x, y, z]
    radius: float = 0.1            # meters


def capture_radius(extents: np.ndarray, scale: float = COLLISION_SCALE) -> float:
    """Radius of the sphere enclosing a box of `extents * scale`.

    Args:
        extents: Full visual bounding box size [w, h, d].
        scale: Inflation factor applied to the box.
    """
    extents = np.asarray(extents, dtype=np.float64)
    return float(np.linalg.norm(extents * scale) / 2.0)


# ---------- Geometry ----------
def closest_point_on_segment(
    p1: np.ndarray, p2: np.ndarray, point: np.ndarray,
) -> np.ndarray:
    """Point on segment p1→p2 closest to `point`."""
    d = p2 - p1
    length_sq = np.dot(d, d)
    if length_sq < 1e-12:
        return p1.copy()
    s = np.clip(np.dot(point - p1, d) / length_sq, 0.0, 1.0)
    return p1 + s * d


def _segment_contact(
    p1: np.ndarray,
    p2: np.ndarray,
    target: CaptureTarget,
) -> Tuple[float, Optional[np.ndarray]]:
    """Closest approach of segment p1→p2 to the target, and where it enters.

    Returns:
        (distance, entry_point). entry_point is None when the segment stays
        outside the sphere, and p1 itself when p1 already lies inside.
    """
    center, radius = target.position, target.radius
    distance = float(np.linalg.norm(closest_point_on_segment(p1, p2, center) - center))
    if distance > radius:
        return distance, None
    if np.linalg.norm(p1 - center) <= radius:
        return distance, p1.copy()

    # p1 is outside and the segment reaches the sphere, so the first crossing
    # lies before the foot of the perpendicular from the center.
    d = p2 - p1
    length = np.sqrt(np.dot(d, d))
    s_foot = np.dot(center - p1, d) / (length * length)
    foot_offset = p1 + s_foot * d - center
    offset_sq = np.dot(foot_offset, foot_offset)
    s_entry = s_foot - np.sqrt(max(radius * radius - offset_sq, 0.0)) / length
    return distance, p1 + float(np.clip(s_entry, 0.0, 1.0)) * d


def is_arrival(
    position: np.ndarray,
    target: np.ndarray,
    tolerance: float = ARRIVAL_TOLERANCE,
) -> bool:
    """True when `position` is within `tolerance` of `target`."""
    return bool(np.linalg.norm(np.asarray(position) - np.asarray(target)) <= tolerance)


def check_hit(
    trajectory_points: List[Tuple[np.ndarray, np.ndarray]],
    target: CaptureTarget,
) -> Tuple[bool, Optional[np.ndarray], Optional[float]]:
    """Walk a sampled throw and test each segment against the capture sphere.

    Testing segments rather than samples means a fast ball cannot skip over
    a small creature between two frames.

    Args:
        trajectory_points: (position, velocity) pairs from sample_trajectory.
        target: Capture sphere to test against.

    Returns:
        (hit, hit_position, closest_approach). hit_position is where the
        arc first enters the sphere. closest_approach is the smallest
        distance from the arc to the sphere center, or None with fewer than
        two samples.
    """
    hit_position = None
    closest_approach = None

    for (p1, _), (p2, _) in zip(trajectory_points, trajectory_points[1:]):
        distance, entry = _segment_contact(p1, p2, target)
        if closest_approach is None or distance < closest_approach:
            closest_approach = distance
        if hit_position is None and entry is not None:
            hit_position = entry

    return hit_position is not None, hit_position, closest_approach


# ---------- Smoke Test ----------
if __name__ == "__main__":
    from rich.console import Console

    from throw_physics.trajectory import make_launch, sample_trajectory

    console = Console()
    console.print("\n[bold cyan]FlickCatch Collision Smoke Test[/bold cyan]\n")

    creature = CaptureTarget(
        id="creature",
        position=np.array([0.0, 0.05, -0.5]),
        radius=capture_radius(np.array([0.04, 0.04, 0.04])),
    )
    console.print(f"  Capture radius: {creature.radius:.4f} m")

    # Test 1: throw aimed at the creature
    console.print("[bold]Test 1:[/bold] Throw aimed at the creature")
    launch = make_launch(np.array([0.0, 0.3, -0.8]), creature.position)
    hit, hit_pos, closest = check_hit(sample_trajectory(launch), creature)
    assert hit, "Aimed throw should hit"
    console.print(f"  ✅ Hit at {hit_pos}, closest approach {closest:.4f} m\n")

    # Test 2: throw aimed a meter to the side
    console.print("[bold]Test 2:[/bold] Throw aimed away")
    wide = make_launch(np.array([0.0, 0.3, -0.8]), np.array([1.0, 0.05, -0.5]))
    hit, _, closest = check_hit(sample_trajectory(wide), creature)
    assert not hit, "Wide throw should miss"
    console.print(f"  ✅ Miss, closest approach {closest:.3f} m\n")

    console.print("[bold green]All collision tests passed![/bold green]\n")
