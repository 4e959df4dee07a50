"""
Numerical Constants for Montage Spline Interpolation

Spline formulas and their references:
- Surface spline: Perrin, Pernier, Bertrand, Giard & Echallier,
  "Mapping of Scalp Potentials by Surface Spline Interpolation",
  Electroenceph. Clin. Neurophysiol., 1987.
- Spherical spline and current density: Perrin, Pernier, Bertrand &
  Echallier, "Spherical Splines for Scalp Potential and Current Density
  Mapping", Electroenceph. Clin. Neurophysiol., 1989 (corrigendum 1990).
- 3D spline: T. C. Ferree, "Spline Interpolation of the Scalp EEG",
  EGI Technical Note, 2000.
"""

from __future__ import annotations

import numpy as np

# =============================================================================
# Spline Degree
# =============================================================================

# Following the articles' convention, polynomial degree = spline degree - 1
MIN_SPLINE_DEGREE: int = 1
MAX_SPLINE_DEGREE: int = 4  # degree 4 tends to produce odd results on real data
DEFAULT_SPLINE_DEGREE: int = 2  # lowest overall error in simulations, fewest outliers

# Range accepted by the command line (the engine itself clamps to [1, 4])
CLI_MIN_SPLINE_DEGREE: int = 2

# =============================================================================
# Spherical Splines
# =============================================================================

NUM_LEGENDRE_TERMS: int = 51
FOUR_PI: float = 4.0 * np.pi

# =============================================================================
# Geometry Tolerances
# =============================================================================

# Relative distance under which two electrodes are considered at the same place
SINGLE_FLOAT_EPSILON: float = float(np.finfo(np.float32).eps)

# Replacement for null denominators in the planar unfolding
NON_NULL_EPSILON: float = 1e-30

# Sentinel for "no matching source electrode"
INVALID_INDEX: int = -1

# =============================================================================
# Landmarks
# =============================================================================

LANDMARK_NAMES: tuple[str, ...] = ("front", "left", "top", "right", "rear")
NUM_LANDMARKS: int = len(LANDMARK_NAMES)

# =============================================================================
# File Naming
# =============================================================================

XYZ_EXTENSION: str = "xyz"
REPORT_EXTENSION: str = "vrb"
INFIX_EXCLUDED: str = "Excl"
INFIX_FIDUCIAL: str = "Fiducial"
INFIX_FROM: str = "From"
INFIX_DEST: str = "Dest"
INFIX_TO_COREGISTERED: str = ".To."
