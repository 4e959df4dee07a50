"""
Geometry Module

Electrode point sets, coordinate files, channel selection, fiducial
normalization and projection to the kernel spaces.
"""

from .constants import *
from .points import (
    PointSet,
    read_points,
    write_points,
    select_channels,
)
from .fiducial import (
    FiducialLandmarks,
    Normalization,
    apply_transform,
    compute_fiducial_transform,
    fiducial_transform_or_identity,
    invert_transform,
)
from .projection import (
    KernelSpace,
    normalize_to_sphere,
    project_to_plane,
    transform_to_fiducial,
)
