"""
Shared fixtures: a 32-electrode hemispherical cap and a recording on it.
"""

from __future__ import annotations

from datetime import datetime

import numpy as np
import pytest

from montage_spline.config import get_default_config
from montage_spline.geometry.fiducial import FiducialLandmarks
from montage_spline.geometry.points import PointSet, write_points
from montage_spline.tracks.series import Marker, TimeSeries, write_time_series

RADIUS = 10.0
N_ELECTRODES = 32
BAD_CHANNELS = "E5 E14"
BAD_INDEX = [4, 13]

# Equator position -> landmark name (12 electrodes, 30 degrees apart)
_EQUATOR_NAMES = {0: "Fpz", 3: "T7", 6: "Oz", 9: "T8"}


def hemisphere_montage(radius: float = RADIUS) -> PointSet:
    """
    Cz, then rings of 7, 12 and 12 electrodes at 30, 60 and 90 degrees
    from the vertex. X points front, Y left, Z top.
    """
    xyz = [[0.0, 0.0, radius]]
    names = ["Cz"]

    for polar_deg, count in ((30, 7), (60, 12), (90, 12)):
        polar = np.radians(polar_deg)
        for k in range(count):
            azimuth = 2 * np.pi * k / count
            xyz.append([
                radius * np.sin(polar) * np.cos(azimuth),
                radius * np.sin(polar) * np.sin(azimuth),
                radius * np.cos(polar),
            ])
            if polar_deg == 90 and k in _EQUATOR_NAMES:
                names.append(_EQUATOR_NAMES[k])
            else:
                names.append(f"E{len(names) + 1}")

    return PointSet.from_arrays(np.array(xyz), names)


@pytest.fixture
def montage() -> PointSet:
    return hemisphere_montage()


@pytest.fixture
def landmarks() -> FiducialLandmarks:
    return FiducialLandmarks(front="Fpz", left="T7", top="Cz", right="T8", rear="Oz")


@pytest.fixture
def montage_file(tmp_path, montage):
    return write_points(tmp_path / "cap32.xyz", montage)


@pytest.fixture
def engine_config() -> dict:
    config = get_default_config()
    config["parallel"]["workers"] = 2
    config["parallel"]["chunk_frames"] = 16
    return config


@pytest.fixture
def recording() -> TimeSeries:
    rng = np.random.default_rng(42)
    return TimeSeries(
        data=rng.normal(size=(N_ELECTRODES, 100)),
        sampling_rate_hz=500.0,
        timestamp=datetime(2024, 3, 14, 9, 26, 53),
        markers=[Marker(10, "stim"), Marker(55, "resp", length=3)],
    )


@pytest.fixture
def recording_file(tmp_path, recording):
    return write_time_series(tmp_path / "rec.npz", recording)
