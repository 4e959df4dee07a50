"""
Montage Spline - Spatial Spline Interpolation of EEG Recordings

This package contains the implementations for:
- Geometry: Electrode point sets, fiducial normalization and projections
- Splines: Kernels, per-method strategies, matrix assembly and solving
- Tracks: Time series files and the batch interpolation engine
- Presets: Landmarks of common electrode caps

Usage:
    # After installing with: pip install -e .
    from montage_spline.tracks import TrackInterpolator, MontageSpec, Target
    from montage_spline.presets import get_landmarks
    from montage_spline.config import load_config
"""

__version__ = "0.1.0"
__all__ = ["geometry", "splines", "tracks", "presets", "validation", "config"]
