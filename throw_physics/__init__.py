"""
FlickCatch Physics
Throw arc, capture hit testing, post-landing roll and tween curves.
"""

from throw_physics.trajectory import (
    Launch,
    make_launch,
    fallback_target,
    position,
    velocity,
    apex,
    sample_trajectory,
)
from throw_physics.collision import (
    CaptureTarget,
    capture_radius,
    check_hit,
    closest_point_on_segment,
    is_arrival,
)
from throw_physics.roll import (
    RollImpulse,
    RollMotion,
    draw_roll_impulse,
    settle,
)

__all__ = [
    "Launch",
    "make_launch",
    "fallback_target",
    "position",
    "velocity",
    "apex",
    "sample_trajectory",
    "CaptureTarget",
    "capture_radius",
    "check_hit",
    "closest_point_on_segment",
    "is_arrival",
    "RollImpulse",
    "RollMotion",
    "draw_roll_impulse",
    "settle",
]
