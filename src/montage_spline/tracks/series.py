"""
Time Series Container and Default Track Files

``TimeSeries`` carries a channel x time matrix with the metadata that must
survive an interpolation unchanged: sampling rate, recording timestamp and
discrete markers.

Default file formats
--------------------
- ``.npz``: arrays ``data`` (n_channels, n_samples), ``sampling_rate_hz``,
  ``timestamp`` (ISO 8601, empty if unknown), ``channel_names``,
  ``aux_channels`` (bool mask), ``marker_positions``, ``marker_lengths``,
  ``marker_names``.
- ``.ep``: plain text, one time frame per row, one channel per column.
  Carries no metadata; the engine passes the configured sampling rate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

import numpy as np

from montage_spline.exceptions import TimeSeriesFileError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: tuple[str, ...] = ("npz", "ep")

# .ep files store no sampling rate
DEFAULT_EP_SAMPLING_RATE_HZ: float = 1000.0


@dataclass(frozen=True)
class Marker:
    """Discrete event marker, position and length in time frames."""

    position: int
    name: str
    length: int = 1


@dataclass
class TimeSeries:
    """
    Multi-channel recording.

    Attributes
    ----------
    data : np.ndarray
        Channel x time matrix, shape (n_channels, n_samples).
    sampling_rate_hz : float
        Sampling rate in Hz.
    timestamp : datetime, optional
        Recording start, None if unknown.
    markers : list[Marker]
        Discrete events, kept as they are by the interpolation.
    channel_names : tuple[str, ...]
        One name per channel; ``e1..eN`` when not provided.
    aux_channels : np.ndarray
        Boolean mask of auxiliary (non-EEG) channels.
    path : Path, optional
        File the series was read from.
    """

    data: np.ndarray
    sampling_rate_hz: float
    timestamp: datetime | None = None
    markers: list[Marker] = field(default_factory=list)
    channel_names: tuple[str, ...] = ()
    aux_channels: np.ndarray = field(default_factory=lambda: np.array([], dtype=bool))
    path: Path | None = None

    def __post_init__(self) -> None:
        self.data = np.asarray(self.data, dtype=np.float64)

        if self.data.ndim != 2:
            raise ValueError(
                f"data must have shape (n_channels, n_samples), got {self.data.shape}"
            )

        if not self.channel_names:
            self.channel_names = tuple(f"e{i + 1}" for i in range(self.n_channels))
        else:
            self.channel_names = tuple(self.channel_names)

        if len(self.channel_names) != self.n_channels:
            raise ValueError(
                f"Expected {self.n_channels} channel names, got {len(self.channel_names)}"
            )

        if self.aux_channels.size == 0:
            self.aux_channels = np.zeros(self.n_channels, dtype=bool)
        else:
            self.aux_channels = np.asarray(self.aux_channels, dtype=bool)

        if self.aux_channels.shape != (self.n_channels,):
            raise ValueError(
                f"aux_channels must have {self.n_channels} entries, "
                f"got {self.aux_channels.shape}"
            )

    @property
    def n_channels(self) -> int:
        return self.data.shape[0]

    @property
    def n_samples(self) -> int:
        return self.data.shape[1]

    @property
    def n_aux_channels(self) -> int:
        return int(self.aux_channels.sum())

    def with_data(self, data: np.ndarray, channel_names: tuple[str, ...]) -> TimeSeries:
        """Copy with new channels, same timing metadata, no aux channels."""
        return replace(
            self,
            data=data,
            channel_names=tuple(channel_names),
            aux_channels=np.zeros(len(channel_names), dtype=bool),
            markers=list(self.markers),
            path=None,
        )


# =============================================================================
# Collaborator Protocols
# =============================================================================


@runtime_checkable
class TimeSeriesReader(Protocol):
    def __call__(self, path: str | Path, sampling_rate_hz: float | None = None) -> TimeSeries:
        ...


@runtime_checkable
class TimeSeriesWriter(Protocol):
    def __call__(self, path: str | Path, series: TimeSeries) -> Path:
        ...


# =============================================================================
# File Naming
# =============================================================================


def unique_path(path: str | Path) -> Path:
    """
    Non-overwriting variant of a path.

    Returns ``path`` itself if free, else ``name_2.ext``, ``name_3.ext``...

    Examples
    --------
    >>> unique_path("/tmp/does-not-exist.npz").name
    'does-not-exist.npz'
    """
    path = Path(path)
    if not path.exists():
        return path

    for variant in range(2, 1000):
        candidate = path.with_name(f"{path.stem}_{variant}{path.suffix}")
        if not candidate.exists():
            return candidate

    raise TimeSeriesFileError("No free file name variant left", path)


def _extension(path: Path) -> str:
    return path.suffix.lstrip(".").lower()


# =============================================================================
# Readers / Writers
# =============================================================================


def read_time_series(path: str | Path, sampling_rate_hz: float | None = None) -> TimeSeries:
    """
    Read a track file.

    Parameters
    ----------
    path : str or Path
        ``.npz`` or ``.ep`` file.
    sampling_rate_hz : float, optional
        Sampling rate for formats that do not store one (``.ep``).
        Defaults to ``DEFAULT_EP_SAMPLING_RATE_HZ``.

    Returns
    -------
    TimeSeries
        The recording.

    Raises
    ------
    TimeSeriesFileError
        If the file is missing, malformed or of an unknown type.
    """
    path = Path(path)
    extension = _extension(path)

    if not path.exists():
        raise TimeSeriesFileError("Track file not found", path)

    try:
        if extension == "npz":
            series = _read_npz(path)
        elif extension == "ep":
            series = _read_ep(path, sampling_rate_hz)
        else:
            raise TimeSeriesFileError(
                f"Unsupported track file type '.{extension}', "
                f"expected one of {', '.join(SUPPORTED_EXTENSIONS)}",
                path,
            )
    except (OSError, ValueError, KeyError) as e:
        raise TimeSeriesFileError(f"Can not read track file: {e}", path) from e

    series.path = path
    logger.debug(
        "Read %d channels x %d samples from %s", series.n_channels, series.n_samples, path
    )
    return series


def _read_npz(path: Path) -> TimeSeries:
    with np.load(path, allow_pickle=False) as archive:
        data = archive["data"]
        sampling_rate = float(archive["sampling_rate_hz"])

        timestamp = None
        if "timestamp" in archive.files:
            text = str(archive["timestamp"])
            timestamp = datetime.fromisoformat(text) if text else None

        names = tuple(str(n) for n in archive["channel_names"]) if "channel_names" in archive.files else ()
        aux = archive["aux_channels"] if "aux_channels" in archive.files else np.array([], dtype=bool)

        markers = []
        if "marker_positions" in archive.files:
            for position, length, name in zip(
                archive["marker_positions"], archive["marker_lengths"], archive["marker_names"]
            ):
                markers.append(Marker(position=int(position), name=str(name), length=int(length)))

    return TimeSeries(
        data=data,
        sampling_rate_hz=sampling_rate,
        timestamp=timestamp,
        markers=markers,
        channel_names=names,
        aux_channels=aux,
    )


def _read_ep(path: Path, sampling_rate_hz: float | None) -> TimeSeries:
    if sampling_rate_hz is None:
        sampling_rate_hz = DEFAULT_EP_SAMPLING_RATE_HZ

    frames = np.loadtxt(path, ndmin=2)
    return TimeSeries(data=frames.T, sampling_rate_hz=sampling_rate_hz)


def write_time_series(path: str | Path, series: TimeSeries) -> Path:
    """
    Write a track file; the format follows the extension.

    Parameters
    ----------
    path : str or Path
        Output ``.npz`` or ``.ep`` file, overwritten if it exists.
    series : TimeSeries
        Recording to write.

    Returns
    -------
    Path
        The written file.
    """
    path = Path(path)
    extension = _extension(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        if extension == "npz":
            _write_npz(path, series)
        elif extension == "ep":
            np.savetxt(path, series.data.T, fmt="%.7g", delimiter="\t")
        else:
            raise TimeSeriesFileError(f"Unsupported track file type '.{extension}'", path)
    except OSError as e:
        raise TimeSeriesFileError(f"Can not write track file: {e}", path) from e

    logger.debug(
        "Wrote %d channels x %d samples to %s", series.n_channels, series.n_samples, path
    )
    return path


def _write_npz(path: Path, series: TimeSeries) -> None:
    # np.savez appends .npz unless given an open file
    with open(path, "wb") as f:
        np.savez(
            f,
            data=series.data,
            sampling_rate_hz=np.float64(series.sampling_rate_hz),
            timestamp=np.str_(series.timestamp.isoformat() if series.timestamp else ""),
            channel_names=np.array(series.channel_names, dtype=str),
            aux_channels=series.aux_channels,
            marker_positions=np.array([m.position for m in series.markers], dtype=np.int64),
            marker_lengths=np.array([m.length for m in series.markers], dtype=np.int64),
            marker_names=np.array([m.name for m in series.markers], dtype=str),
        )
