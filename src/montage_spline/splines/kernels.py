"""
Spline Kernels - Pairwise Interpolation Kernel Functions

Thin-plate kernel (planar and volumetric splines):

    r2 = |p - q|^2
    K  = r2^(m-1) * ln(r2),     K = 0 when r2 == 0

Spherical kernels (points on the unit sphere, c = cos(angle(p, q))):

    K = 1/(4 pi) * sum_{n=1..N} (2n+1) / (n(n+1))^e * P_n(c)

with e = m for the potential spline and e = m - 1 for the current density
spline (surface Laplacian of the potential). Legendre polynomials follow
the recurrence n P_n = (2n-1) c P_(n-1) - (n-1) P_(n-2), evaluated in
extended precision.

All functions are vectorized: they take (n, 3) and (k, 3) arrays and
return the (n, k) kernel matrix. Scalar helpers wrap them for single pairs.
"""

from __future__ import annotations

import numpy as np

from montage_spline.geometry.constants import FOUR_PI, NUM_LEGENDRE_TERMS


def _as_points(points: np.ndarray) -> np.ndarray:
    return np.asarray(points, dtype=np.float64).reshape(-1, 3)


def squared_distances(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    """Pairwise squared Euclidean distances, shape (len(p), len(q))."""
    p, q = _as_points(p), _as_points(q)
    diff = p[:, np.newaxis, :] - q[np.newaxis, :, :]
    return np.sum(diff * diff, axis=-1)


def cosine_matrix(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    """
    Pairwise cosine of the angle between position vectors.

    Null vectors give a cosine of 0; values are clipped to [-1, 1].
    """
    p, q = _as_points(p), _as_points(q)
    dots = np.sum(p[:, np.newaxis, :] * q[np.newaxis, :, :], axis=-1)
    norms = np.linalg.norm(p, axis=1)[:, np.newaxis] * np.linalg.norm(q, axis=1)[np.newaxis, :]
    cosines = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
    return np.clip(cosines, -1.0, 1.0)


def thin_plate_kernel_matrix(p: np.ndarray, q: np.ndarray, degree: int) -> np.ndarray:
    """
    Thin-plate kernel r2^(degree-1) * ln(r2) for every pair.

    Parameters
    ----------
    p : np.ndarray
        Points with shape (n, 3).
    q : np.ndarray
        Points with shape (k, 3).
    degree : int
        Spline degree (>= 1).

    Returns
    -------
    np.ndarray
        Kernel matrix with shape (n, k). Coincident pairs are exactly 0.
    """
    r2 = squared_distances(p, q)
    kernel = np.zeros_like(r2)
    nonzero = r2 != 0
    kernel[nonzero] = r2[nonzero] ** (degree - 1) * np.log(r2[nonzero])
    return kernel


def legendre_series(
    cosines: np.ndarray,
    exponent: int,
    n_terms: int = NUM_LEGENDRE_TERMS,
) -> np.ndarray:
    """
    Weighted Legendre series used by the spherical splines.

    Computes 1/(4 pi) * sum_{n=1..n_terms} (2n+1)/(n(n+1))^exponent * P_n(c)
    in ``np.longdouble``.

    Parameters
    ----------
    cosines : np.ndarray
        Cosines of the angles, any shape.
    exponent : int
        Power applied to n(n+1).
    n_terms : int
        Number of Legendre terms.

    Returns
    -------
    np.ndarray
        Series values (float64), same shape as ``cosines``.
    """
    c = np.asarray(cosines, dtype=np.longdouble)

    p_nm2 = np.ones_like(c)  # P0
    p_nm1 = c.copy()  # P1
    total = np.zeros_like(c)

    for n in range(1, n_terms + 1):
        if n == 1:
            p_n = c
        else:
            p_n = ((2 * n - 1) * c * p_nm1 - (n - 1) * p_nm2) / n
            p_nm2, p_nm1 = p_nm1, p_n

        weight = np.longdouble(2 * n + 1) / np.longdouble(n * (n + 1)) ** exponent
        total += weight * p_n

    return (total / np.longdouble(FOUR_PI)).astype(np.float64)


def spherical_kernel_matrix(p: np.ndarray, q: np.ndarray, degree: int) -> np.ndarray:
    """Spherical spline (potential) kernel for every pair."""
    return legendre_series(cosine_matrix(p, q), degree)


def current_density_kernel_matrix(p: np.ndarray, q: np.ndarray, degree: int) -> np.ndarray:
    """Spherical current density kernel: exponent reduced by one."""
    return legendre_series(cosine_matrix(p, q), degree - 1)


# =============================================================================
# Scalar Helpers
# =============================================================================


def thin_plate_kernel(p: np.ndarray, q: np.ndarray, degree: int) -> float:
    """Thin-plate kernel for a single pair of points."""
    return float(thin_plate_kernel_matrix(p, q, degree)[0, 0])


def spherical_kernel(p: np.ndarray, q: np.ndarray, degree: int) -> float:
    """Spherical spline kernel for a single pair of points."""
    return float(spherical_kernel_matrix(p, q, degree)[0, 0])


def current_density_kernel(p: np.ndarray, q: np.ndarray, degree: int) -> float:
    """Current density kernel for a single pair of points."""
    return float(current_density_kernel_matrix(p, q, degree)[0, 0])
