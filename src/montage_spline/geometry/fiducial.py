"""
Fiducial Normalization - Canonical Coordinate Frame from Landmarks

Computes the 4x4 affine transform that brings an electrode montage into
"fiducial space":

- re-centering on the middle of the front/rear/left/right landmarks,
- re-orienting to X = front, Y = left, Z = top,
- rescaling each axis independently to unit length.

The result is a 12-parameter affine transform. It is computed solely from
the landmark anchors and not from any best-fitting sphere or ellipsoid, so
two montages sharing the same landmark labels coregister together once
both are transformed to fiducial space.

Math
----
    center = (front + rear + left + right) / 4
    B      = [front - center | (left - right) / 2 | top - center]
    M      = B^-1 @ T(-center)

When the top axis is null (flat or grid layouts), it is replaced by the
normalized cross product of the front and left axes.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, fields

import numpy as np

from montage_spline.exceptions import ConfigurationError
from montage_spline.geometry.constants import NUM_LANDMARKS
from montage_spline.geometry.points import PointSet

logger = logging.getLogger(__name__)


class Normalization(enum.Enum):
    """How a montage is brought into fiducial space."""

    ALREADY_NORMALIZED = "already_normalized"
    FIDUCIAL = "fiducial"


@dataclass(frozen=True)
class FiducialLandmarks:
    """
    Five landmark selection strings.

    Each string selects one or more points by name; the landmark anchor is
    the mean of the selected points (e.g. ``rear="O1 O2"``).

    Examples
    --------
    >>> lm = FiducialLandmarks("Fpz", "T7", "Cz", "T8", "Oz")
    >>> lm.is_complete()
    True
    >>> FiducialLandmarks().is_empty()
    True
    """

    front: str = ""
    left: str = ""
    top: str = ""
    right: str = ""
    rear: str = ""

    def as_tuple(self) -> tuple[str, str, str, str, str]:
        return (self.front, self.left, self.top, self.right, self.rear)

    def items(self) -> list[tuple[str, str]]:
        return [(f.name, getattr(self, f.name)) for f in fields(self)]

    def count_provided(self) -> int:
        return sum(1 for value in self.as_tuple() if value and value.strip())

    def is_complete(self) -> bool:
        return self.count_provided() == NUM_LANDMARKS

    def is_empty(self) -> bool:
        return self.count_provided() == 0

    def normalization(self) -> Normalization:
        """Fiducial normalization with all 5 landmarks, none otherwise."""
        return Normalization.FIDUCIAL if self.is_complete() else Normalization.ALREADY_NORMALIZED

    def check_complete(self, side: str | None = None) -> None:
        """
        Enforce the "all 5 or none" rule.

        Raises
        ------
        ConfigurationError
            If between 1 and 4 landmarks were provided.
        """
        count = self.count_provided()
        if 0 < count < NUM_LANDMARKS:
            raise ConfigurationError(
                f"Not all landmarks have been provided ({count} of {NUM_LANDMARKS}); "
                "can not compute a proper fiducial normalization. "
                "Provide all 5 landmarks, or none to use coordinates as they are.",
                side=side,
            )


# =============================================================================
# Homogeneous Matrix Helpers
# =============================================================================


def identity_transform() -> np.ndarray:
    """4x4 identity."""
    return np.eye(4)


def is_identity(matrix: np.ndarray) -> bool:
    return bool(np.array_equal(matrix, np.eye(4)))


def normalize_homogeneous(matrix: np.ndarray) -> np.ndarray:
    """Divide by the bottom-right coefficient, then force it to exactly 1."""
    matrix = np.array(matrix, dtype=np.float64)
    if matrix[3, 3] != 0:
        matrix /= matrix[3, 3]
    matrix[3, 3] = 1.0
    return matrix


def invert_transform(matrix: np.ndarray) -> np.ndarray:
    return np.linalg.inv(matrix)


def apply_transform(xyz: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Apply a 4x4 affine transform to an (n, 3) array of points.

    Parameters
    ----------
    xyz : np.ndarray
        Points with shape (n_points, 3).
    matrix : np.ndarray
        Homogeneous transform with shape (4, 4).

    Returns
    -------
    np.ndarray
        Transformed points with shape (n_points, 3).
    """
    xyz = np.asarray(xyz, dtype=np.float64)
    homogeneous = np.hstack([xyz, np.ones((xyz.shape[0], 1))])
    out = homogeneous @ matrix.T
    w = out[:, 3:4]
    w = np.where(w == 0, 1.0, w)
    return out[:, :3] / w


# =============================================================================
# Fiducial Transform
# =============================================================================


def compute_fiducial_transform(points: PointSet, landmarks: FiducialLandmarks) -> np.ndarray:
    """
    Compute the transform to fiducial space from 5 landmark groups.

    Parameters
    ----------
    points : PointSet
        Montage holding every point referenced by the landmarks.
    landmarks : FiducialLandmarks
        Complete landmark description.

    Returns
    -------
    np.ndarray
        Normalized 4x4 homogeneous transform.

    Raises
    ------
    ConfigurationError
        If any landmark resolves to no point, or the landmarks are
        degenerate (collinear front and left axes).
    """
    anchors = {}
    for label, selection in landmarks.items():
        anchor = points.mean_point(selection)
        if anchor is None:
            raise ConfigurationError(
                f"Landmark '{label}' ({selection!r}) does not match any electrode"
            )
        anchors[label] = anchor

    front, left, top = anchors["front"], anchors["left"], anchors["top"]
    right, rear = anchors["right"], anchors["rear"]

    # Middle of front-rear and left-right, robust to rather flat models
    center = (front + rear + left + right) / 4

    center_front = front - center
    center_top = top - center
    center_left = (left - right) / 2

    if not np.any(center_top):
        center_top = np.cross(center_front, center_left)
        norm = np.linalg.norm(center_top)
        if norm > 0:
            center_top = center_top / norm
        logger.debug("Null top axis, using a synthesized orthogonal axis")

    basis = np.eye(4)
    basis[:3, 0] = center_front
    basis[:3, 1] = center_left
    basis[:3, 2] = center_top

    try:
        transform = np.linalg.inv(basis)
    except np.linalg.LinAlgError as e:
        raise ConfigurationError(
            "Landmarks are degenerate, can not build a fiducial coordinate system"
        ) from e

    # Center to origin, applied before the change of basis
    translation = np.eye(4)
    translation[:3, 3] = -center
    transform = transform @ translation

    return normalize_homogeneous(transform)


def fiducial_transform_or_identity(
    points: PointSet,
    landmarks: FiducialLandmarks,
    normalization: Normalization,
) -> np.ndarray:
    """Fiducial transform, or identity when coordinates are trusted as they are."""
    if normalization is Normalization.FIDUCIAL:
        return compute_fiducial_transform(points, landmarks)
    return identity_transform()
