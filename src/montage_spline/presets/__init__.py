"""
Landmark Presets for Montage Spline

Pre-defined landmarks for common electrode caps, and auto-detection.
"""

from __future__ import annotations

from montage_spline.presets.landmark_presets import (
    AUTO_DETECTED,
    PRESETS,
    detect_landmarks,
    get_landmarks,
    get_preset,
    get_preset_names_and_descriptions,
    list_presets,
)

__all__ = [
    "AUTO_DETECTED",
    "PRESETS",
    "detect_landmarks",
    "get_landmarks",
    "get_preset",
    "get_preset_names_and_descriptions",
    "list_presets",
]
