"""
Tracks Module

Time series containers and files, error and progress reporting, and the
interpolation engine applying a configured spline to whole recordings.
"""

from .series import (
    Marker,
    TimeSeries,
    read_time_series,
    unique_path,
    write_time_series,
)
from .reporting import (
    CollectingErrorSink,
    ErrorSink,
    LoggingErrorSink,
    ProgressReporter,
    TqdmProgress,
)
from .report import ProcessingReport, report_path_for
from .engine import (
    EngineState,
    InterpolationOutcome,
    MontageSpec,
    Target,
    TrackInterpolator,
    Transforms,
    clamp_degree,
)

__all__ = [
    "Marker",
    "TimeSeries",
    "read_time_series",
    "unique_path",
    "write_time_series",
    "CollectingErrorSink",
    "ErrorSink",
    "LoggingErrorSink",
    "ProgressReporter",
    "TqdmProgress",
    "ProcessingReport",
    "report_path_for",
    "EngineState",
    "InterpolationOutcome",
    "MontageSpec",
    "Target",
    "TrackInterpolator",
    "Transforms",
    "clamp_degree",
]
