"""
Electrode Point Sets - Coordinates, Names and Channel Selection

Provides the immutable ``PointSet`` container used throughout the package,
the default ``.xyz`` coordinates reader/writer, and the channel-selection
parser used for landmarks and bad channels.

File Format (.xyz)
------------------
First line: ``<number of points> <radius>``. Every following line holds
``x y z name``. The order of the lines is the canonical channel order.
Coordinates are written with 17 significant digits, so a written set
reads back bit for bit.

Selection Syntax
----------------
Tokens separated by spaces, commas or semicolons. Each token is either a
channel name (case-insensitive), a 1-based index, a range ``a-b`` of names
or indices, or ``*`` for every channel. Names take precedence over indices,
so montages that use numbers as names (``"15 18"``) select by name.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

import numpy as np

from montage_spline.exceptions import PointFileError

logger = logging.getLogger(__name__)

_SELECTION_SPLIT = re.compile(r"[\s,;]+")


@dataclass(frozen=True)
class PointSet:
    """
    Ordered list of named 3D points.

    Attributes
    ----------
    xyz : np.ndarray
        Coordinates with shape (n_points, 3). Stored read-only.
    names : tuple[str, ...]
        One name per point, in the same order.

    Examples
    --------
    >>> points = PointSet.from_arrays([[0, 0, 1], [1, 0, 0]], ["Cz", "T8"])
    >>> points.n_points
    2
    >>> points.index_of("cz")
    0
    """

    xyz: np.ndarray
    names: tuple[str, ...]

    def __post_init__(self) -> None:
        xyz = np.array(self.xyz, dtype=np.float64)

        if xyz.ndim != 2 or xyz.shape[1] != 3:
            raise ValueError(f"xyz must have shape (n_points, 3), got {xyz.shape}")

        if len(self.names) != xyz.shape[0]:
            raise ValueError(
                f"Expected {xyz.shape[0]} names, got {len(self.names)}"
            )

        xyz.setflags(write=False)
        object.__setattr__(self, "xyz", xyz)
        object.__setattr__(self, "names", tuple(str(n) for n in self.names))

    @classmethod
    def from_arrays(cls, xyz: Sequence | np.ndarray, names: Sequence[str] | None = None) -> PointSet:
        """Build a point set, generating ``e1..eN`` names when none are given."""
        xyz = np.asarray(xyz, dtype=np.float64).reshape(-1, 3)
        if names is None:
            names = [f"e{i + 1}" for i in range(xyz.shape[0])]
        return cls(xyz=xyz, names=tuple(names))

    @property
    def n_points(self) -> int:
        return self.xyz.shape[0]

    def __len__(self) -> int:
        return self.n_points

    def is_empty(self) -> bool:
        return self.n_points == 0

    def index_of(self, name: str) -> int:
        """Index of a point by case-insensitive name, -1 if absent."""
        lowered = name.lower()
        for i, candidate in enumerate(self.names):
            if candidate.lower() == lowered:
                return i
        return -1

    def center(self) -> np.ndarray:
        """Centroid of all points (origin for an empty set)."""
        if self.is_empty():
            return np.zeros(3)
        return self.xyz.mean(axis=0)

    def radius(self) -> float:
        """Average distance of the points to their centroid."""
        if self.is_empty():
            return 0.0
        return float(np.linalg.norm(self.xyz - self.center(), axis=1).mean())

    def mean_point(self, selection: str) -> np.ndarray | None:
        """
        Mean position of the points picked by a selection string.

        Returns None when the selection resolves to no point at all.
        """
        mask = select_channels(selection, self.names)
        if not mask.any():
            return None
        return self.xyz[mask].mean(axis=0)

    def subset(self, mask: np.ndarray) -> PointSet:
        """Points where ``mask`` is True, keeping their relative order."""
        mask = np.asarray(mask, dtype=bool)
        names = tuple(n for n, keep in zip(self.names, mask) if keep)
        return PointSet(xyz=self.xyz[mask], names=names)

    def with_xyz(self, xyz: np.ndarray) -> PointSet:
        """Same names, new coordinates."""
        return PointSet(xyz=xyz, names=self.names)


# =============================================================================
# Channel Selection
# =============================================================================


@runtime_checkable
class ChannelSelector(Protocol):
    """Turns a selection string into a boolean mask over channel names."""

    def __call__(self, selection: str | None, names: Sequence[str]) -> np.ndarray:
        ...


def _resolve_token(token: str, lookup: dict[str, int], n_names: int) -> int | None:
    """Index of a single name or 1-based index token, None if unknown."""
    index = lookup.get(token.lower())
    if index is not None:
        return index

    if token.isdigit():
        number = int(token)
        if 1 <= number <= n_names:
            return number - 1

    return None


def select_channels(selection: str | None, names: Sequence[str]) -> np.ndarray:
    """
    Parse a channel selection string into a boolean mask.

    Parameters
    ----------
    selection : str or None
        Selection string, see module docstring. None or blank selects nothing.
    names : sequence of str
        Canonical channel names.

    Returns
    -------
    np.ndarray
        Boolean mask with one entry per name.

    Examples
    --------
    >>> select_channels("Fp1 3-4", ["Fp1", "Fp2", "F3", "F4"]).tolist()
    [True, False, True, True]
    """
    n_names = len(names)
    mask = np.zeros(n_names, dtype=bool)

    if selection is None or not selection.strip():
        return mask

    # First occurrence wins for duplicated names
    lookup: dict[str, int] = {}
    for i, name in enumerate(names):
        lookup.setdefault(name.lower(), i)

    for token in _SELECTION_SPLIT.split(selection.strip()):
        if not token:
            continue

        if token == "*":
            mask[:] = True
            continue

        index = _resolve_token(token, lookup, n_names)
        if index is not None:
            mask[index] = True
            continue

        if "-" in token.strip("-"):
            first, _, last = token.partition("-")
            start = _resolve_token(first, lookup, n_names)
            stop = _resolve_token(last, lookup, n_names)
            if start is not None and stop is not None:
                low, high = sorted((start, stop))
                mask[low:high + 1] = True
                continue

        logger.warning("Ignoring unknown channel '%s' in selection '%s'", token, selection)

    return mask


# =============================================================================
# Coordinates Files
# =============================================================================


@runtime_checkable
class PointFileReader(Protocol):
    """Reads an ordered list of named points from a file."""

    def __call__(self, path: str | Path) -> PointSet:
        ...


def read_points(path: str | Path) -> PointSet:
    """
    Read an ``.xyz`` electrode coordinates file.

    Parameters
    ----------
    path : str or Path
        Coordinates file.

    Returns
    -------
    PointSet
        Points in file order.

    Raises
    ------
    PointFileError
        If the file is missing, malformed or holds no point.
    """
    path = Path(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = [line.split() for line in f if line.strip()]
    except OSError as e:
        raise PointFileError(f"Can not open electrodes coordinates file: {e}", path) from e

    if not lines:
        raise PointFileError("Electrodes coordinates file is empty", path)

    header, rows = lines[0], lines[1:]

    try:
        declared = int(header[0])
    except (ValueError, IndexError) as e:
        raise PointFileError("Invalid header, expected '<count> <radius>'", path) from e

    if declared <= 0 or len(rows) < declared:
        raise PointFileError(
            f"Header declares {declared} points, file holds {len(rows)}", path
        )

    xyz = np.empty((declared, 3))
    names = []

    for i, row in enumerate(rows[:declared]):
        if len(row) < 3:
            raise PointFileError(f"Missing coordinates on point {i + 1}", path)
        try:
            xyz[i] = [float(v) for v in row[:3]]
        except ValueError as e:
            raise PointFileError(f"Invalid coordinates on point {i + 1}: {row}", path) from e
        names.append(row[3] if len(row) > 3 else f"e{i + 1}")

    logger.debug("Read %d points from %s", declared, path)

    return PointSet(xyz=xyz, names=tuple(names))


def write_points(path: str | Path, points: PointSet) -> Path:
    """
    Write a point set to an ``.xyz`` file.

    Parameters
    ----------
    path : str or Path
        Output file, overwritten if it exists.
    points : PointSet
        Points to write.

    Returns
    -------
    Path
        The written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        f.write(f"{points.n_points}\t{points.radius():.17g}\n")
        for (x, y, z), name in zip(points.xyz, points.names):
            f.write(f"{x:.17g}\t{y:.17g}\t{z:.17g}\t{name}\n")

    logger.debug("Wrote %d points to %s", points.n_points, path)

    return path
