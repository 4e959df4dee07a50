"""
Splines Module

Interpolation kernels, per-method strategies, spline matrix assembly,
factorization and evaluation at destination electrodes.
"""

from .kernels import (
    current_density_kernel,
    legendre_series,
    spherical_kernel,
    thin_plate_kernel,
)
from .methods import (
    DEFAULT_METHOD,
    InterpolationMethod,
    SplineStrategy,
    get_strategy,
    parse_method,
    polynomial_powers,
)
from .system import (
    SplineSolver,
    build_spline_matrix,
    find_duplicate_positions,
    system_size,
)
from .evaluator import (
    DestinationCache,
    SplineEvaluator,
)

__all__ = [
    "current_density_kernel",
    "legendre_series",
    "spherical_kernel",
    "thin_plate_kernel",
    "DEFAULT_METHOD",
    "InterpolationMethod",
    "SplineStrategy",
    "get_strategy",
    "parse_method",
    "polynomial_powers",
    "SplineSolver",
    "build_spline_matrix",
    "find_duplicate_positions",
    "system_size",
    "DestinationCache",
    "SplineEvaluator",
]
