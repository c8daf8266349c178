"""
FlickCatch Simulation: Configuration

Defaults live in DEFAULT_CONFIG; configs/capture.yaml and caller overrides
are merged on top. The reset-control overlay is plain configuration handed
to the rendering collaborator.
"""

import copy
from pathlib import Path
from typing import Optional

import yaml

CONFIGS_DIR = Path(__file__).resolve().parent / "configs"
DEFAULT_CONFIG_PATH = CONFIGS_DIR / "capture.yaml"

DEFAULT_OVERLAY = {
    "show_reset_button": True,
    "show_debug_visualization": False,
    "reset_label": "Try Again",
    "pulse_period": 1.5,
}

DEFAULT_CONFIG = {
    # Launch derivation
    "min_arc_height": 0.2,
    "arc_height_factor": 0.5,
    "min_flight_duration": 0.6,
    "flight_duration_factor": 0.4,
    "fallback_distance": 1.0,
    # Scene layout (meters)
    "ball_home_position": [0.0, -0.3, -0.8],
    "creature_home_position": [0.0, 0.05, -0.5],
    "creature_scale": 0.005,
    "creature_extents": [0.04, 0.04, 0.04],
    "collision_scale": 3.0,
    "rest_height": 0.025,
    # Capture timing (seconds)
    "landing_duration": 0.5,
    "shrink_duration": 0.5,
    "settle_delay": 0.6,
    # Roll
    "roll_impulse": 0.002,
    "roll_angular_factor": 10.0,
    "roll_duration": 1.0,
    # Session
    "restore_creature_on_reset": True,
    "overlay": DEFAULT_OVERLAY,
}


def merge_config(base: dict, overrides: Optional[dict]) -> dict:
    """Return `base` with `overrides` applied; the overlay dict merges key-wise."""
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if key not in DEFAULT_CONFIG:
            raise ValueError(f"Unknown config key {key!r}")
        if key == "overlay":
            unknown = set(value or {}) - set(DEFAULT_OVERLAY)
            if unknown:
                raise ValueError(f"Unknown overlay keys: {sorted(unknown)}")
            merged["overlay"] = {**merged["overlay"], **(value or {})}
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Path = None, overrides: Optional[dict] = None) -> dict:
    """Load defaults, then the YAML file, then `overrides`."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}
    return merge_config(merge_config(DEFAULT_CONFIG, data), overrides)


def overlay_config(config: dict) -> dict:
    """Reset-control settings for the rendering collaborator."""
    return {**DEFAULT_OVERLAY, **config.get("overlay", {})}
