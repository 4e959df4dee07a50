"""
Validation Module for Montage Spline

Pre-flight checks on landmarks, montage geometry and configuration files.
"""

from __future__ import annotations

from montage_spline.validation.input_validators import (
    ConfigValidationResult,
    LandmarkValidationResult,
    MontageValidationResult,
    validate_config_file,
    validate_landmarks,
    validate_montage,
)

__all__ = [
    "LandmarkValidationResult",
    "MontageValidationResult",
    "ConfigValidationResult",
    "validate_landmarks",
    "validate_montage",
    "validate_config_file",
]
