"""
Interpolation Methods - One Strategy Object per Spline Family

Each ``InterpolationMethod`` resolves once, at configuration time, to a
strategy exposing everything that differs between families:

- the kernel used inside the spline matrix and the one used at destinations,
- the number and ordering of the polynomial terms,
- the polynomial part of the evaluation from cached destination powers,
- whether an exact source/destination position match may bypass the spline.

Polynomial term order (must be identical for the matrix and the evaluation):

- planar:     x^(d-k) * y^k             for d < m, k <= d
- volumetric: x^(d-k) * y^(k-g) * z^g   for d < m, k <= d, g <= k
- spherical:  1
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

import numpy as np

from montage_spline.geometry.projection import KernelSpace
from montage_spline.splines import kernels


class InterpolationMethod(enum.Enum):
    """Spline families, with their file infix and display title."""

    PLANAR_SPLINE = ("surface", "iSurfS", "Surface Spline", KernelSpace.PLANAR)
    SPHERICAL_SPLINE = ("spherical", "iSphS", "Spherical Spline", KernelSpace.SPHERICAL)
    SPHERICAL_CURRENT_DENSITY_SPLINE = (
        "currentdensity",
        "CD.iSphS",
        "Current Density with Spherical Spline",
        KernelSpace.SPHERICAL,
    )
    VOLUMETRIC_SPLINE = ("3d", "i3DS", "3D Spline", KernelSpace.VOLUMETRIC)

    def __init__(self, key: str, infix: str, title: str, space: KernelSpace):
        self.key = key
        self.infix = infix
        self.title = title
        self.space = space


DEFAULT_METHOD = InterpolationMethod.VOLUMETRIC_SPLINE

_METHOD_ALIASES: dict[str, InterpolationMethod] = {
    "surface": InterpolationMethod.PLANAR_SPLINE,
    "planar": InterpolationMethod.PLANAR_SPLINE,
    "2d": InterpolationMethod.PLANAR_SPLINE,
    "spherical": InterpolationMethod.SPHERICAL_SPLINE,
    "currentdensity": InterpolationMethod.SPHERICAL_CURRENT_DENSITY_SPLINE,
    "current_density": InterpolationMethod.SPHERICAL_CURRENT_DENSITY_SPLINE,
    "csd": InterpolationMethod.SPHERICAL_CURRENT_DENSITY_SPLINE,
    "3d": InterpolationMethod.VOLUMETRIC_SPLINE,
    "volumetric": InterpolationMethod.VOLUMETRIC_SPLINE,
}


def parse_method(value: str | InterpolationMethod) -> InterpolationMethod:
    """
    Resolve a method from its key, an alias or its enum name.

    Raises
    ------
    ValueError
        If the name is unknown.
    """
    if isinstance(value, InterpolationMethod):
        return value

    normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
    if normalized in _METHOD_ALIASES:
        return _METHOD_ALIASES[normalized]

    for method in InterpolationMethod:
        if method.name.lower() == normalized:
            return method

    available = ", ".join(sorted(_METHOD_ALIASES))
    raise ValueError(f"Unknown interpolation method '{value}'. Available: {available}")


def polynomial_powers(xyz: np.ndarray, degree: int) -> np.ndarray:
    """
    Coordinates raised to the powers 0..degree-1.

    Returns
    -------
    np.ndarray
        Array with shape (degree, n_points, 3); index 0 is exactly 1.
    """
    xyz = np.asarray(xyz, dtype=np.float64)
    powers = np.empty((degree,) + xyz.shape)
    powers[0] = 1.0
    for d in range(1, degree):
        powers[d] = xyz ** d
    return powers


# =============================================================================
# Strategies
# =============================================================================


@dataclass(frozen=True)
class SplineStrategy:
    """Behavior shared by every spline family; subclasses fill the gaps."""

    method: InterpolationMethod

    allows_exact_copy = True

    def system_kernel(self, p: np.ndarray, q: np.ndarray, degree: int) -> np.ndarray:
        raise NotImplementedError

    def destination_kernel(self, p: np.ndarray, q: np.ndarray, degree: int) -> np.ndarray:
        return self.system_kernel(p, q, degree)

    def kernel(self, p: np.ndarray, q: np.ndarray, degree: int) -> float:
        """Kernel value for a single pair, as used at destinations."""
        return float(self.destination_kernel(p, q, degree)[0, 0])

    def polynomial_term_count(self, degree: int) -> int:
        raise NotImplementedError

    def polynomial_terms(self, powers: np.ndarray, degree: int) -> np.ndarray:
        """Monomials of each point, shape (n_points, E), from cached powers."""
        raise NotImplementedError

    def destination_terms(self, powers: np.ndarray, degree: int) -> np.ndarray:
        """Polynomial factors applied to the trailing weights at destinations."""
        return self.polynomial_terms(powers, degree)

    def evaluate_polynomial(self, powers: np.ndarray, weights: np.ndarray, degree: int) -> np.ndarray:
        """Polynomial part of the evaluation, one value per point in ``powers``."""
        return self.destination_terms(powers, degree) @ weights


class PlanarStrategy(SplineStrategy):
    def system_kernel(self, p, q, degree):
        return kernels.thin_plate_kernel_matrix(p, q, degree)

    def polynomial_term_count(self, degree: int) -> int:
        return degree * (degree + 1) // 2

    def polynomial_terms(self, powers, degree):
        columns = []
        for d in range(degree):
            for k in range(d + 1):
                columns.append(powers[d - k][:, 0] * powers[k][:, 1])
        return np.column_stack(columns)


class VolumetricStrategy(SplineStrategy):
    def system_kernel(self, p, q, degree):
        return kernels.thin_plate_kernel_matrix(p, q, degree)

    def polynomial_term_count(self, degree: int) -> int:
        return degree * (degree + 1) * (degree + 2) // 6

    def polynomial_terms(self, powers, degree):
        columns = []
        for d in range(degree):
            for k in range(d + 1):
                for g in range(k + 1):
                    columns.append(
                        powers[d - k][:, 0] * powers[k - g][:, 1] * powers[g][:, 2]
                    )
        return np.column_stack(columns)


class SphericalStrategy(SplineStrategy):
    def system_kernel(self, p, q, degree):
        return kernels.spherical_kernel_matrix(p, q, degree)

    def polynomial_term_count(self, degree: int) -> int:
        return 1

    def polynomial_terms(self, powers, degree):
        return np.ones((powers.shape[1], 1))


class CurrentDensityStrategy(SphericalStrategy):
    """
    Current density from the spherical potential spline.

    The matrix is the potential spline's; destinations use the Laplacian
    kernel, where the constant term vanishes. Values are a derived quantity,
    so an exact position match never short-circuits the evaluation.
    """

    allows_exact_copy = False

    def destination_kernel(self, p, q, degree):
        return kernels.current_density_kernel_matrix(p, q, degree)

    def destination_terms(self, powers, degree):
        return np.zeros((powers.shape[1], 1))


_STRATEGIES: dict[InterpolationMethod, type[SplineStrategy]] = {
    InterpolationMethod.PLANAR_SPLINE: PlanarStrategy,
    InterpolationMethod.SPHERICAL_SPLINE: SphericalStrategy,
    InterpolationMethod.SPHERICAL_CURRENT_DENSITY_SPLINE: CurrentDensityStrategy,
    InterpolationMethod.VOLUMETRIC_SPLINE: VolumetricStrategy,
}


def get_strategy(method: InterpolationMethod | str) -> SplineStrategy:
    """Resolve the strategy object for a method (or method name)."""
    method = parse_method(method)
    return _STRATEGIES[method](method)
