"""
Spline Evaluation at Destination Electrodes

For solved weights X (n_sources kernel weights followed by E polynomial
coefficients) and destination j:

    value(j) = sum_i X[i] * K[j, i]  +  sum_t X[n + t] * monomial_t(dest_j)

Both the destination kernel rows and the destination powers x^d, y^d, z^d
(d = 0..degree-1) depend only on the geometry, so they are cached once per
configuration. The evaluation itself runs n_time_frames x n_destinations
times per file.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from montage_spline.splines.methods import SplineStrategy, polynomial_powers


@dataclass(frozen=True)
class DestinationCache:
    """
    Geometry-only quantities needed at destination electrodes.

    Attributes
    ----------
    kernel : np.ndarray
        Destination-to-source kernel, shape (n_dest, n_sources).
    powers : np.ndarray
        Destination coordinates raised to 0..degree-1, shape (degree, n_dest, 3).
    terms : np.ndarray
        Polynomial factors per destination, shape (n_dest, E), built from
        ``powers`` in the same term order as the spline matrix.
    """

    kernel: np.ndarray
    powers: np.ndarray
    terms: np.ndarray

    @classmethod
    def build(
        cls,
        strategy: SplineStrategy,
        source_xyz: np.ndarray,
        dest_xyz: np.ndarray,
        degree: int,
    ) -> DestinationCache:
        """Compute the kernel rows and powers for every destination."""
        kernel = strategy.destination_kernel(dest_xyz, source_xyz, degree)
        powers = polynomial_powers(dest_xyz, degree)
        terms = strategy.destination_terms(powers, degree)

        for array in (kernel, powers, terms):
            array.setflags(write=False)

        return cls(kernel=kernel, powers=powers, terms=terms)

    @property
    def n_dest(self) -> int:
        return self.kernel.shape[0]

    @property
    def n_sources(self) -> int:
        return self.kernel.shape[1]


class SplineEvaluator:
    """
    Reconstructs destination values from solved spline weights.

    Parameters
    ----------
    cache : DestinationCache
        Read-only destination geometry.
    """

    def __init__(self, cache: DestinationCache):
        self.cache = cache
        self._n_sources = cache.n_sources

    def evaluate(self, weights: np.ndarray, dest_index: int) -> float:
        """Value at a single destination for one weight vector."""
        n = self._n_sources
        kernel_part = self.cache.kernel[dest_index] @ weights[:n]
        polynomial_part = self.cache.terms[dest_index] @ weights[n:]
        return float(kernel_part + polynomial_part)

    def evaluate_many(self, weights: np.ndarray, dest_indices: np.ndarray | None = None) -> np.ndarray:
        """
        Values at several destinations.

        Parameters
        ----------
        weights : np.ndarray
            Solution vector (size,) or a block of solutions (size, k).
        dest_indices : np.ndarray, optional
            Destinations to evaluate; all of them when None.

        Returns
        -------
        np.ndarray
            Shape (len(dest_indices),) or (len(dest_indices), k).
        """
        n = self._n_sources
        kernel = self.cache.kernel
        terms = self.cache.terms

        if dest_indices is not None:
            kernel = kernel[dest_indices]
            terms = terms[dest_indices]

        return kernel @ weights[:n] + terms @ weights[n:]
