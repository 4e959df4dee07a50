"""
Spline System - Matrix Assembly and One-Time Factorization

The interpolation weights solve the symmetric, loosely sparse system

    ( K   E ) ( w )   ( v )
    ( E'  0 ) ( q ) = ( 0 )

where K[i, j] = kernel(src_i, src_j), E[i, t] = monomial_t(src_i) and v
holds the source channel values of one time frame. The matrix depends only
on the source geometry, so it is factorized once per configuration and the
factorization is reused for every time frame of every file.
"""

from __future__ import annotations

import logging
import warnings

import numpy as np
import scipy.linalg
from scipy.linalg import lapack

from montage_spline.exceptions import NumericDegeneracyError
from montage_spline.splines.methods import SplineStrategy, polynomial_powers

logger = logging.getLogger(__name__)


def system_size(strategy: SplineStrategy, n_points: int, degree: int) -> int:
    """Number of rows (and columns) of the spline matrix."""
    return n_points + strategy.polynomial_term_count(degree)


def build_spline_matrix(strategy: SplineStrategy, xyz: np.ndarray, degree: int) -> np.ndarray:
    """
    Assemble the symmetric spline matrix for a set of source points.

    Parameters
    ----------
    strategy : SplineStrategy
        Spline family.
    xyz : np.ndarray
        Source points in kernel space, shape (n_points, 3).
    degree : int
        Spline degree.

    Returns
    -------
    np.ndarray
        Matrix with shape (n_points + E, n_points + E), exactly symmetric,
        with a null bottom-right E x E block.
    """
    xyz = np.asarray(xyz, dtype=np.float64)
    n_points = xyz.shape[0]
    size = system_size(strategy, n_points, degree)

    A = np.zeros((size, size))

    # One kernel value per unordered pair, mirrored across the diagonal
    kernel = strategy.system_kernel(xyz, xyz, degree)
    lower = np.tril(kernel)
    A[:n_points, :n_points] = lower + np.tril(kernel, -1).T

    terms = strategy.polynomial_terms(polynomial_powers(xyz, degree), degree)
    A[:n_points, n_points:] = terms
    A[n_points:, :n_points] = terms.T

    return A


def find_duplicate_positions(xyz: np.ndarray, tolerance: float = 0.0) -> list[tuple[int, int]]:
    """Pairs of points closer than ``tolerance`` (exact duplicates by default)."""
    xyz = np.asarray(xyz, dtype=np.float64)
    diff = xyz[:, np.newaxis, :] - xyz[np.newaxis, :, :]
    distances = np.sqrt(np.sum(diff * diff, axis=-1))
    rows, cols = np.nonzero(np.triu(distances <= tolerance, k=1))
    return list(zip(rows.tolist(), cols.tolist()))


class SplineSolver:
    """
    LU factorization of a spline matrix, solved many times.

    The factorization is computed in the constructor and never modified
    afterwards, so ``solve`` can be called concurrently as long as each
    caller owns its right-hand side and output buffers.

    Parameters
    ----------
    matrix : np.ndarray
        Square spline matrix.

    Attributes
    ----------
    size : int
        System size.
    is_singular : bool
        True if the factorization hit an exactly null pivot.
    condition_number : float
        1-norm condition number estimate (inf when singular).

    Examples
    --------
    >>> solver = SplineSolver(np.array([[2.0, 0.0], [0.0, 4.0]]))
    >>> solver.solve(np.array([2.0, 2.0]))
    array([1. , 0.5])
    """

    def __init__(self, matrix: np.ndarray):
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise ValueError(f"Spline matrix must be square, got {matrix.shape}")

        self.size = matrix.shape[0]

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", scipy.linalg.LinAlgWarning)
            self._lu, self._piv = scipy.linalg.lu_factor(matrix, check_finite=True)

        self._lu.setflags(write=False)
        self._piv.setflags(write=False)

        self.is_singular = bool(np.any(np.diag(self._lu) == 0))
        self.condition_number = self._estimate_condition(matrix)

    def _estimate_condition(self, matrix: np.ndarray) -> float:
        if self.is_singular:
            return float("inf")

        anorm = np.linalg.norm(matrix, 1)
        rcond, info = lapack.dgecon(np.array(self._lu), anorm, norm="1")
        if info != 0 or rcond <= 0:
            return float("inf")
        return float(1.0 / rcond)

    def check_solvable(self) -> None:
        """
        Raises
        ------
        NumericDegeneracyError
            If the factorization is singular.
        """
        if self.is_singular:
            raise NumericDegeneracyError(
                "Spline matrix is singular, check for duplicated electrode positions "
                "or too few electrodes for the requested degree",
                condition_number=self.condition_number,
            )

    def solve(self, rhs: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
        """
        Solve A x = rhs.

        Parameters
        ----------
        rhs : np.ndarray
            Right-hand side, shape (size,) or (size, k). Not modified.
        out : np.ndarray, optional
            Caller-owned buffer receiving the solution. A Fortran-ordered
            float64 buffer is solved in place, without any allocation.

        Returns
        -------
        np.ndarray
            Solution, ``out`` itself when given.
        """
        if out is None:
            return scipy.linalg.lu_solve((self._lu, self._piv), rhs, check_finite=False)

        out[...] = rhs
        solution = scipy.linalg.lu_solve(
            (self._lu, self._piv), out, overwrite_b=True, check_finite=False
        )
        if solution is not out:
            # Buffers LAPACK can not use directly are solved on a copy
            out[...] = solution
        return out
