"""
Montage Spline Exceptions

Specific exception classes for the errors that can occur while configuring
an interpolation or applying it to a recording. Internal layers raise these;
the engine boundary (``TrackInterpolator.set`` / ``interpolate_tracks``)
turns them into a boolean failure reported through an error sink.
"""

from __future__ import annotations

from pathlib import Path


class MontageSplineError(Exception):
    """Base exception class for all montage spline errors."""

    def __init__(self, message: str, error_code: str = "MS_GENERAL"):
        super().__init__(message)
        self.error_code = error_code
        self.message = message

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class ConfigurationError(MontageSplineError):
    """Raised when an interpolation cannot be configured or applied.

    Covers unreadable coordinate files, incomplete landmark sets,
    channel-count mismatches and unsupported auxiliary channels.
    """

    def __init__(self, message: str, side: str | None = None):
        self.side = side

        if side:
            full_message = f"'{side}' montage: {message}"
        else:
            full_message = message

        super().__init__(full_message, "MS_CONFIG")


class PointFileError(ConfigurationError):
    """Raised when an electrode coordinates file cannot be read."""

    def __init__(self, message: str, path: str | Path | None = None):
        self.path = Path(path) if path is not None else None

        if path is not None:
            message = f"{message} (path: {path})"

        super().__init__(message)
        self.error_code = "MS_POINTS"


class TimeSeriesFileError(MontageSplineError):
    """Raised when a time series file cannot be read or written."""

    def __init__(self, message: str, path: str | Path | None = None):
        self.path = Path(path) if path is not None else None

        if path is not None:
            message = f"{message} (path: {path})"

        super().__init__(message, "MS_TRACKS")


class NumericDegeneracyError(MontageSplineError):
    """Raised when a solve is requested against a singular spline system."""

    def __init__(self, message: str, condition_number: float | None = None):
        self.condition_number = condition_number

        if condition_number is not None:
            message = f"{message} (condition number: {condition_number:.3g})"

        super().__init__(message, "MS_NUMERIC")
