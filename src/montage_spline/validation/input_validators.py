"""
Input Validators for Montage Spline

Provides pre-flight validation for:
- Landmark sets (all 5 or none, every landmark resolving to electrodes)
- Montage geometry (enough electrodes for the polynomial terms,
  duplicated positions, spline degree range)
- YAML configuration file parsing

These validators return results with warnings, errors and recovery
suggestions instead of raising, so batch callers and the command line can
explain what to fix before any file is processed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from montage_spline.geometry.constants import (
    MAX_SPLINE_DEGREE,
    MIN_SPLINE_DEGREE,
    NUM_LANDMARKS,
)
from montage_spline.geometry.fiducial import FiducialLandmarks
from montage_spline.geometry.points import PointSet, select_channels
from montage_spline.splines.methods import InterpolationMethod, get_strategy, parse_method
from montage_spline.splines.system import find_duplicate_positions


# =============================================================================
# Validation Result Types
# =============================================================================


@dataclass
class LandmarkValidationResult:
    """Result of landmark validation against a montage.

    Attributes
    ----------
    is_valid : bool
        True if the landmarks can be used as they are.
    n_provided : int
        Number of non-empty landmarks (0 to 5).
    unresolved : list[str]
        Landmark labels matching no electrode.
    warnings : list[str]
        Non-fatal warnings.
    errors : list[str]
        Fatal errors (incomplete set, unknown electrodes).
    recovery_suggestions : list[str]
        Actionable suggestions for fixing issues.
    """

    is_valid: bool
    n_provided: int
    unresolved: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    recovery_suggestions: list[str] = field(default_factory=list)


@dataclass
class MontageValidationResult:
    """Result of montage geometry validation for one method and degree.

    Attributes
    ----------
    is_valid : bool
        True if a spline system can be built.
    n_points : int
        Number of source electrodes.
    n_polynomial_terms : int
        Polynomial terms required by the method and degree.
    effective_degree : int
        Degree after clamping.
    duplicates : list[tuple[str, str]]
        Pairs of electrode names sharing a position.
    warnings : list[str]
        Non-fatal warnings (clamped degree, duplicates).
    errors : list[str]
        Fatal errors (too few electrodes).
    recovery_suggestions : list[str]
        Actionable suggestions for fixing issues.
    """

    is_valid: bool
    n_points: int
    n_polynomial_terms: int
    effective_degree: int
    duplicates: list[tuple[str, str]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    recovery_suggestions: list[str] = field(default_factory=list)


@dataclass
class ConfigValidationResult:
    """Result of YAML configuration file validation.

    Attributes
    ----------
    is_valid : bool
        True if config loaded and validated successfully.
    config : dict | None
        Loaded configuration (None if load failed).
    file_path : Path | None
        Path to the config file (None if using defaults).
    warnings : list[str]
        Non-fatal warnings (e.g., missing optional fields).
    errors : list[str]
        Fatal errors (e.g., parse failures).
    recovery_suggestions : list[str]
        Actionable suggestions for fixing issues.
    """

    is_valid: bool
    config: dict[str, Any] | None
    file_path: Path | None
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    recovery_suggestions: list[str] = field(default_factory=list)


# =============================================================================
# Landmark Validation
# =============================================================================


def validate_landmarks(
    landmarks: FiducialLandmarks,
    points: PointSet | None = None,
    side: str = "From",
) -> LandmarkValidationResult:
    """
    Validate a landmark set, optionally against the montage it refers to.

    Parameters
    ----------
    landmarks : FiducialLandmarks
        Landmarks to check.
    points : PointSet, optional
        Montage the landmark names should resolve in.
    side : str
        'From' or 'To', used in messages.

    Returns
    -------
    LandmarkValidationResult
        Validation result.

    Examples
    --------
    >>> result = validate_landmarks(FiducialLandmarks(front="Fpz"))
    >>> result.is_valid
    False
    >>> validate_landmarks(FiducialLandmarks()).is_valid
    True
    """
    n_provided = landmarks.count_provided()
    unresolved = []
    warnings = []
    errors = []
    suggestions = []

    if 0 < n_provided < NUM_LANDMARKS:
        missing = [label for label, value in landmarks.items() if not value.strip()]
        errors.append(
            f"INCOMPLETE LANDMARKS: '{side}' has {n_provided} of {NUM_LANDMARKS} landmarks, "
            f"missing {', '.join(missing)}."
        )
        suggestions.append(
            "Provide all 5 landmarks for a fiducial normalization, "
            "or none to use the coordinates as they are."
        )

    if n_provided == NUM_LANDMARKS and points is not None:
        for label, selection in landmarks.items():
            if not select_channels(selection, points.names).any():
                unresolved.append(label)

        if unresolved:
            errors.append(
                f"UNKNOWN LANDMARK ELECTRODES: '{side}' landmarks {', '.join(unresolved)} "
                "match no electrode."
            )
            suggestions.append(
                "Check the electrode names in the coordinates file, "
                "or try a landmark preset (montage_spline.presets)."
            )

    if n_provided == 0:
        warnings.append(
            f"NO LANDMARKS: '{side}' coordinates are used as they are; "
            "they should already be centered, oriented and normalized."
        )

    return LandmarkValidationResult(
        is_valid=len(errors) == 0,
        n_provided=n_provided,
        unresolved=unresolved,
        warnings=warnings,
        errors=errors,
        recovery_suggestions=suggestions,
    )


# =============================================================================
# Montage Validation
# =============================================================================


def validate_montage(
    points: PointSet,
    method: InterpolationMethod | str,
    degree: int,
) -> MontageValidationResult:
    """
    Check that a source montage can support the requested spline.

    Parameters
    ----------
    points : PointSet
        Source electrodes (without the bad ones).
    method : InterpolationMethod or str
        Spline family.
    degree : int
        Requested spline degree.

    Returns
    -------
    MontageValidationResult
        Validation result.
    """
    method = parse_method(method)
    warnings = []
    errors = []
    suggestions = []

    effective_degree = min(max(int(degree), MIN_SPLINE_DEGREE), MAX_SPLINE_DEGREE)
    if effective_degree != degree:
        warnings.append(
            f"DEGREE CLAMPED: degree {degree} is outside [{MIN_SPLINE_DEGREE}, "
            f"{MAX_SPLINE_DEGREE}], using {effective_degree}."
        )

    n_terms = get_strategy(method).polynomial_term_count(effective_degree)

    if points.n_points <= n_terms:
        errors.append(
            f"TOO FEW ELECTRODES: {method.title} degree {effective_degree} needs more than "
            f"{n_terms} electrodes, got {points.n_points}."
        )
        suggestions.append("Lower the spline degree, or mark fewer channels as bad.")

    duplicates = [
        (points.names[i], points.names[j])
        for i, j in find_duplicate_positions(points.xyz)
    ]
    if duplicates:
        pairs = ", ".join(f"{a}/{b}" for a, b in duplicates)
        warnings.append(f"DUPLICATE POSITIONS: {pairs} share the same coordinates.")
        suggestions.append("Remove or exclude one electrode of each duplicated pair.")

    return MontageValidationResult(
        is_valid=len(errors) == 0,
        n_points=points.n_points,
        n_polynomial_terms=n_terms,
        effective_degree=effective_degree,
        duplicates=duplicates,
        warnings=warnings,
        errors=errors,
        recovery_suggestions=suggestions,
    )


# =============================================================================
# Config File Validation
# =============================================================================

# Required sections in config
REQUIRED_CONFIG_SECTIONS = ["interpolation", "solver", "parallel", "io"]

# Type specifications: section -> param -> (type, min, max)
CONFIG_TYPE_SPECS: dict[str, dict[str, tuple[type, float, float]]] = {
    "interpolation": {
        "degree": (int, MIN_SPLINE_DEGREE, MAX_SPLINE_DEGREE),
    },
    "solver": {
        "max_condition_number": (float, 1.0, 1e300),
    },
    "parallel": {
        "workers": (int, 0, 1024),
        "chunk_frames": (int, 1, 1_000_000),
    },
    "io": {
        "ep_sampling_rate_hz": (float, 1e-3, 1e7),
    },
}

SUPPORTED_OUTPUT_EXTENSIONS = ("npz", "ep")


def validate_config_file(
    config_path: Path | str | None = None,
    strict: bool = False,
) -> ConfigValidationResult:
    """
    Load and validate YAML configuration file.

    Provides graceful error handling with helpful messages for:
    - Missing files (falls back to defaults)
    - Malformed YAML (syntax errors)
    - Invalid parameter values (type/range checks, unknown method)

    Parameters
    ----------
    config_path : Path or str, optional
        Path to YAML config file. If None, uses default_interp.yaml.
    strict : bool
        If True, treat warnings as errors. Default False.

    Returns
    -------
    ConfigValidationResult
        Validation result with loaded config and any issues found.

    Examples
    --------
    >>> result = validate_config_file("nonexistent.yaml")
    >>> result.is_valid
    True
    >>> len(result.warnings) > 0
    True
    """
    from montage_spline.config import DEFAULT_CONFIG_PATH, get_default_config

    warnings = []
    errors = []
    suggestions = []

    # Determine file path
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    else:
        config_path = Path(config_path)

    # Attempt to load file
    config = None
    file_exists = config_path.exists()

    if not file_exists:
        warnings.append(
            f"CONFIG FILE NOT FOUND: '{config_path}' does not exist. "
            "Using built-in defaults."
        )
        suggestions.append(
            f"Create config file at '{config_path}' or use load_config() without path."
        )
        config = get_default_config()
    else:
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
            # Handle empty YAML file (returns None)
            if config is None:
                warnings.append(
                    f"CONFIG FILE EMPTY: '{config_path}' contains no data. "
                    "Using built-in defaults."
                )
                config = get_default_config()
        except yaml.YAMLError as e:
            errors.append(
                f"YAML PARSE ERROR in '{config_path}': {str(e)}"
            )
            suggestions.append(
                "Check YAML syntax: proper indentation (2 spaces), "
                "colons after keys, no tabs."
            )
            config = get_default_config()
        except IOError as e:
            errors.append(
                f"FILE READ ERROR for '{config_path}': {str(e)}"
            )
            suggestions.append("Check file permissions and path.")
            config = get_default_config()

    if not isinstance(config, dict):
        errors.append(
            f"INVALID STRUCTURE: '{config_path}' must hold a mapping of sections."
        )
        config = get_default_config()

    # Check required sections
    for section in REQUIRED_CONFIG_SECTIONS:
        if section not in config:
            if strict:
                errors.append(
                    f"MISSING REQUIRED SECTION: '{section}' not found in config."
                )
            else:
                warnings.append(
                    f"MISSING SECTION: '{section}' not found. Using defaults."
                )
            # Merge in defaults for missing section
            defaults = get_default_config()
            if section in defaults:
                config[section] = defaults[section]

    # Type and range validation
    for section, specs in CONFIG_TYPE_SPECS.items():
        if not isinstance(config.get(section), dict):
            continue
        for param, (expected_type, min_val, max_val) in specs.items():
            if param not in config[section]:
                continue
            value = config[section][param]

            # Type check
            if isinstance(value, bool) or not isinstance(
                value, (expected_type, int if expected_type == float else expected_type)
            ):
                if strict:
                    errors.append(
                        f"TYPE ERROR: {section}.{param} should be {expected_type.__name__}, "
                        f"got {type(value).__name__}."
                    )
                else:
                    warnings.append(
                        f"TYPE WARNING: {section}.{param} should be {expected_type.__name__}, "
                        f"got {type(value).__name__}. Attempting conversion."
                    )
                    try:
                        value = expected_type(value)
                        config[section][param] = value
                    except (ValueError, TypeError):
                        errors.append(
                            f"CONVERSION FAILED: Cannot convert {section}.{param} "
                            f"value '{value}' to {expected_type.__name__}."
                        )
                        continue

            # Range check (only for numeric types)
            if isinstance(value, (int, float)):
                if value < min_val or value > max_val:
                    warnings.append(
                        f"RANGE WARNING: {section}.{param}={value} is outside "
                        f"expected range [{min_val}, {max_val}]."
                    )

    # Method and output format are names, not numbers
    interpolation = config.get("interpolation")
    if isinstance(interpolation, dict) and "method" in interpolation:
        try:
            parse_method(str(interpolation["method"]))
        except ValueError as e:
            errors.append(f"UNKNOWN METHOD: {e}")
            suggestions.append("Use one of: surface, spherical, currentdensity, 3d.")

    io = config.get("io")
    if isinstance(io, dict) and "output_extension" in io:
        if str(io["output_extension"]).lstrip(".").lower() not in SUPPORTED_OUTPUT_EXTENSIONS:
            errors.append(
                f"UNKNOWN OUTPUT FORMAT: io.output_extension='{io['output_extension']}', "
                f"expected one of {', '.join(SUPPORTED_OUTPUT_EXTENSIONS)}."
            )

    # Determine overall validity
    is_valid = len(errors) == 0
    if strict:
        is_valid = is_valid and len(warnings) == 0

    return ConfigValidationResult(
        is_valid=is_valid,
        config=config,
        file_path=config_path if file_exists else None,
        warnings=warnings,
        errors=errors,
        recovery_suggestions=suggestions,
    )
