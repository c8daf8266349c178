"""
FlickCatch Physics: Tween Curves

Progress curves over [0, 1] for the short scripted animations around a
capture: the creature shrinking away, the ball dropping to the floor, and
the reset control pulsing. Renderers evaluate these per frame.
"""

import numpy as np

PULSE_AMPLITUDE = 0.1
PULSE_BASE_BRIGHTNESS = 0.9


def _clamp(progress: float) -> float:
    return float(np.clip(progress, 0.0, 1.0))


def lerp(a, b, progress: float):
    """Linear interpolation; works on scalars and numpy arrays."""
    p = _clamp(progress)
    return a + (b - a) * p


def ease_out_quad(progress: float) -> float:
    p = _clamp(progress)
    return 1.0 - (1.0 - p) * (1.0 - p)


def shrink_scale(initial: float, progress: float) -> float:
    """Scale of a shrinking entity; reaches exactly 0 at progress 1."""
    p = _clamp(progress)
    if p >= 1.0:
        return 0.0
    return initial * (1.0 - p)


def drop_position(start: np.ndarray, end: np.ndarray, progress: float) -> np.ndarray:
    """Ease-out move from `start` to `end`; exact endpoints at 0 and 1."""
    p = _clamp(progress)
    if p <= 0.0:
        return np.array(start, dtype=np.float64)
    if p >= 1.0:
        return np.array(end, dtype=np.float64)
    return lerp(np.asarray(start, dtype=np.float64), np.asarray(end, dtype=np.float64), ease_out_quad(p))


def pulse_scale(progress: float, amplitude: float = PULSE_AMPLITUDE) -> float:
    """One pulse cycle: 1 + a*sin(2πp)."""
    return 1.0 + amplitude * np.sin(_clamp(progress) * 2.0 * np.pi)


def pulse_brightness(progress: float) -> float:
    return PULSE_BASE_BRIGHTNESS + (1.0 - PULSE_BASE_BRIGHTNESS) * np.sin(_clamp(progress) * 2.0 * np.pi)


def cycle_progress(elapsed: float, period: float) -> float:
    """Map elapsed seconds onto a repeating [0, 1) cycle."""
    if period <= 0:
        raise ValueError(f"period must be > 0, got {period}")
    return (max(elapsed, 0.0) % period) / period
