"""
Space Projection - Fiducial Points to Kernel Space

Each interpolation family works on its own representation of the
fiducial-space points:

- planar: 3D points are unfolded onto the X-Y plane, preserving the arc
  length from the top pole (coordinates bounded to [-pi, pi]),
- spherical: points are normalized to the unit sphere,
- volumetric: fiducial coordinates are used as they are (approximately,
  not exactly, bounded to [-1, 1]).
"""

from __future__ import annotations

import enum

import numpy as np

from montage_spline.geometry.constants import NON_NULL_EPSILON
from montage_spline.geometry.fiducial import apply_transform
from montage_spline.geometry.points import PointSet


class KernelSpace(enum.Enum):
    """Representation of the points expected by a kernel family."""

    PLANAR = "planar"
    SPHERICAL = "spherical"
    VOLUMETRIC = "volumetric"


def _non_null(values: np.ndarray) -> np.ndarray:
    return np.where(values == 0, NON_NULL_EPSILON, values)


def project_to_plane(xyz: np.ndarray) -> np.ndarray:
    """
    Unfold a near-spherical cloud of points onto the X-Y plane.

    Input is expected in ALS orientation (X front, Y left, Z top); output
    keeps X and Y orientation and sets Z to 0.

    For each point, with r the planar radius and arc = atan2(r, z):

        (x, y, z) -> (x * arc / r, y * arc / r, 0)

    Parameters
    ----------
    xyz : np.ndarray
        Points with shape (n_points, 3).

    Returns
    -------
    np.ndarray
        Flattened points with shape (n_points, 3).
    """
    xyz = np.array(xyz, dtype=np.float64)

    rxy = np.hypot(xyz[:, 0], xyz[:, 1])
    # Unfolded arc length from the top pole
    arc = _non_null(np.arctan2(rxy, xyz[:, 2]))
    scale = arc / _non_null(rxy)

    xyz[:, 0] *= scale
    xyz[:, 1] *= scale
    xyz[:, 2] = 0.0

    return xyz


def normalize_to_sphere(xyz: np.ndarray) -> np.ndarray:
    """Scale every point to unit length; null points stay at the origin."""
    xyz = np.array(xyz, dtype=np.float64)
    norms = np.linalg.norm(xyz, axis=1, keepdims=True)
    return np.divide(xyz, norms, out=np.zeros_like(xyz), where=norms > 0)


def transform_to_fiducial(
    points: PointSet,
    transform: np.ndarray,
    space: KernelSpace,
) -> PointSet:
    """
    Apply the fiducial transform, then project to the kernel space.

    Parameters
    ----------
    points : PointSet
        Montage in its file coordinates.
    transform : np.ndarray
        4x4 transform to fiducial space (identity if already normalized).
    space : KernelSpace
        Target representation.

    Returns
    -------
    PointSet
        Same names, projected coordinates.
    """
    xyz = apply_transform(points.xyz, transform)

    if space is KernelSpace.PLANAR:
        xyz = project_to_plane(xyz)
    elif space is KernelSpace.SPHERICAL:
        xyz = normalize_to_sphere(xyz)

    return points.with_xyz(xyz)
