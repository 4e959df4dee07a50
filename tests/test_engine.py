"""
Tests for the tracks interpolation engine.

Covers configuration, exact copies, bad channel repair, montage transfer,
file naming, processing reports and cleanup of intermediate files.
"""

from __future__ import annotations

import numpy as np
import pytest

from montage_spline.geometry.constants import INVALID_INDEX
from montage_spline.geometry.fiducial import FiducialLandmarks
from montage_spline.geometry.points import PointSet, read_points, write_points
from montage_spline.splines import DestinationCache, SplineEvaluator, get_strategy
from montage_spline.tracks import (
    CollectingErrorSink,
    InterpolationOutcome,
    MontageSpec,
    Target,
    TimeSeries,
    TrackInterpolator,
    read_time_series,
    write_time_series,
)
from montage_spline.tracks.engine import EngineState, clamp_degree, resolve_temp_dir

from conftest import BAD_CHANNELS, BAD_INDEX, N_ELECTRODES

GOOD_INDEX = [i for i in range(N_ELECTRODES) if i not in BAD_INDEX]


def _write_recording(path, data: np.ndarray, rate: float = 500.0):
    return write_time_series(path, TimeSeries(data=data, sampling_rate_hz=rate))


def _nearest_good(montage: PointSet, index: int, count: int = 6) -> np.ndarray:
    """Indices of the ``count`` good electrodes closest to electrode ``index``."""
    good = np.asarray(GOOD_INDEX)
    distances = np.linalg.norm(montage.xyz[good] - montage.xyz[index], axis=1)
    return good[np.argsort(distances, kind="stable")[:count]]


def _assert_within_neighbors(out: np.ndarray, montage: PointSet, tol: float) -> None:
    for bad in BAD_INDEX:
        neighbors = out[_nearest_good(montage, bad)]
        low = neighbors.min(axis=0) - tol
        high = neighbors.max(axis=0) + tol

        outside = (out[bad] < low) | (out[bad] > high)
        assert not outside.any(), f"channel {bad + 1} out of range at frames {np.flatnonzero(outside)}"


class RecordingProgress:
    """Progress reporter keeping every call."""

    def __init__(self):
        self.ranges = []
        self.advanced = 0
        self.finished = False

    def set_range(self, level, total):
        self.ranges.append((level, total))

    def advance(self, level, amount=1):
        self.advanced += amount

    def finish(self):
        self.finished = True


# =============================================================================
# Configuration
# =============================================================================


class TestConfiguration:
    """Tests for ``set`` and its shortcuts."""

    def test_unconfigured_engine_refuses_files(self, engine_config, recording_file) -> None:
        """Test that interpolating before ``set`` fails and reports once."""
        engine = TrackInterpolator(engine_config)
        sink = CollectingErrorSink()

        outcome = engine.interpolate_tracks(recording_file, error_sink=sink)

        assert isinstance(outcome, InterpolationOutcome)
        assert not outcome
        assert "not been configured" in outcome.message
        assert len(sink) == 1

    def test_silent_failure_reports_nothing(self, engine_config, recording_file) -> None:
        """Test that silent mode fails without touching the error sink."""
        engine = TrackInterpolator(engine_config)
        sink = CollectingErrorSink()
        assert not engine.interpolate_tracks(recording_file, silent=True, error_sink=sink)
        assert len(sink) == 0

    @pytest.mark.parametrize("degree, expected", [(-3, 1), (0, 1), (1, 1), (3, 3), (4, 4), (9, 4)])
    def test_degree_is_clamped(self, engine_config, montage_file, tmp_path, degree, expected) -> None:
        """Test that out of range degrees are clamped to 1..4."""
        engine = TrackInterpolator(engine_config)
        assert engine.set_bad_channels("spherical", degree, montage_file, BAD_CHANNELS, temp_path=tmp_path)
        assert engine.degree == expected
        assert clamp_degree(degree) == expected

    def test_incomplete_from_landmarks(self, engine_config, montage_file, tmp_path) -> None:
        """Test that 2 of 5 From landmarks fail the configuration."""
        engine = TrackInterpolator(engine_config)
        sink = CollectingErrorSink()

        ok = engine.set_bad_channels(
            "3d", 2, montage_file, BAD_CHANNELS,
            landmarks=FiducialLandmarks(front="Fpz", left="T7"),
            temp_path=tmp_path, error_sink=sink,
        )

        assert not ok
        assert not engine.is_configured
        assert "'From' montage" in sink.messages[0][1]

    def test_incomplete_to_landmarks(self, engine_config, montage_file, tmp_path, landmarks) -> None:
        """Test that a single To landmark fails the configuration."""
        engine = TrackInterpolator(engine_config)
        sink = CollectingErrorSink()

        ok = engine.set_montage_transfer(
            "3d", 2, montage_file, montage_file,
            from_landmarks=landmarks,
            to_landmarks=FiducialLandmarks(top="Cz"),
            temp_path=tmp_path, error_sink=sink,
        )

        assert not ok
        assert "'To' montage" in sink.messages[0][1]

    def test_other_montage_requires_destination(self, engine_config, montage_file, tmp_path) -> None:
        """Test that a transfer without a To montage is refused."""
        engine = TrackInterpolator(engine_config)
        sink = CollectingErrorSink()
        assert not engine.set("3d", 2, Target.OTHER_MONTAGE, MontageSpec(montage_file), error_sink=sink)
        assert len(sink) == 1

    def test_missing_coordinates_file(self, engine_config, tmp_path) -> None:
        """Test that a missing coordinates file reports the points error code."""
        engine = TrackInterpolator(engine_config)
        sink = CollectingErrorSink()
        assert not engine.set_bad_channels("3d", 2, tmp_path / "nope.xyz", "E5", error_sink=sink)
        assert "MS_POINTS" in sink.messages[0][1]

    def test_every_channel_bad(self, engine_config, montage_file, tmp_path) -> None:
        """Test that at least one good electrode is needed."""
        engine = TrackInterpolator(engine_config)
        sink = CollectingErrorSink()
        assert not engine.set_bad_channels("3d", 2, montage_file, "*", temp_path=tmp_path, error_sink=sink)
        assert "Every electrode" in sink.messages[0][1]

    def test_failed_set_leaves_no_temp_files(self, engine_config, montage_file, tmp_path) -> None:
        """Test that files exported before a failure are deleted."""
        engine = TrackInterpolator(engine_config)
        engine.set_montage_transfer(
            "3d", 2, montage_file, tmp_path / "missing.xyz",
            temp_path=tmp_path, silent=True,
        )
        assert sorted(p.name for p in tmp_path.iterdir()) == ["cap32.xyz"]

    def test_string_target_and_method(self, engine_config, montage_file, tmp_path) -> None:
        """Test that targets and methods can be given by name."""
        engine = TrackInterpolator(engine_config)
        ok = engine.set(
            "Surface", 2, "back_to_original",
            MontageSpec(montage_file, bad_channels="E5"), temp_path=tmp_path,
        )
        assert ok
        assert engine.state is EngineState.READY
        assert engine.target is Target.BACK_TO_ORIGINAL

    def test_reset_forgets_configuration(self, engine_config, montage_file, tmp_path) -> None:
        """Test that ``reset`` drops the configuration but not the files."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)
        created = engine.temp_files

        engine.reset()

        assert not engine.is_configured
        assert engine.solver is None
        assert engine.temp_files == []
        # Files are forgotten, not deleted
        assert all(p.exists() for p in created)

    def test_temp_dir_resolution(self, tmp_path) -> None:
        """Test temp folders from a folder, a file, or the system default."""
        file_in_dir = tmp_path / "rec.npz"
        assert resolve_temp_dir(tmp_path) == tmp_path
        assert resolve_temp_dir(file_in_dir) == tmp_path
        assert resolve_temp_dir(None).is_dir()


# =============================================================================
# Geometry set up by ``set``
# =============================================================================


class TestConfiguredGeometry:
    """Tests for the montages, transforms and matches computed by ``set``."""

    def test_bad_channel_montages(self, engine_config, montage_file, tmp_path, landmarks) -> None:
        """Test that bad channels leave the source set but stay destinations."""
        engine = TrackInterpolator(engine_config)
        assert engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)

        assert engine.from_original_points.n_points == N_ELECTRODES
        assert engine.from_points.n_points == N_ELECTRODES - 2
        assert "E5" not in engine.from_points.names
        assert engine.dest_points.names == engine.from_original_points.names

        np.testing.assert_array_equal(engine.position_matches, np.arange(N_ELECTRODES))
        assert engine.need_to_solve

    def test_bad_channel_temp_files(self, engine_config, montage_file, tmp_path, landmarks) -> None:
        """Test the names of the files exported for a bad channel repair."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)

        names = sorted(p.name for p in engine.temp_files)
        assert names == [
            "cap32.DestFiducial.xyz",
            "cap32.Excl.FromFiducial.xyz",
            "cap32.Excl.xyz",
        ]
        assert read_points(tmp_path / "cap32.Excl.xyz").n_points == N_ELECTRODES - 2

    def test_excluded_montage_file_is_exact(self, engine_config, montage_file, tmp_path, montage) -> None:
        """Test that the reduced montage keeps the coordinates bit for bit."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        reduced = read_points(tmp_path / "cap32.Excl.xyz")
        np.testing.assert_array_equal(reduced.xyz, montage.xyz[GOOD_INDEX])

    def test_transfer_temp_files(self, engine_config, montage_file, tmp_path, montage, landmarks) -> None:
        """Test the names of the files exported for a montage transfer."""
        other = write_points(tmp_path / "cap20.xyz", montage.subset(np.arange(N_ELECTRODES) < 20))
        engine = TrackInterpolator(engine_config)
        engine.set_montage_transfer("3d", 2, montage_file, other, temp_path=tmp_path)

        names = sorted(p.name for p in engine.temp_files)
        assert names == [
            "cap20.DestFiducial.xyz",
            "cap20.To.cap32.xyz",
            "cap32.FromFiducial.xyz",
            "cap32.To.cap20.xyz",
        ]

    def test_fiducial_points_are_normalized(self, engine_config, montage_file, tmp_path, landmarks) -> None:
        """Test that spherical methods put both montages on the unit sphere."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("spherical", 2, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)

        np.testing.assert_allclose(np.linalg.norm(engine.from_fiducial_points.xyz, axis=1), 1.0)
        np.testing.assert_allclose(np.linalg.norm(engine.dest_fiducial_points.xyz, axis=1), 1.0)

    def test_back_to_original_transforms_are_identity_between_montages(
        self, engine_config, montage_file, tmp_path, landmarks
    ) -> None:
        """Test that a montage onto itself needs no coregistration."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)

        transforms = engine.transforms
        np.testing.assert_array_equal(transforms.dest_to_from, np.eye(4))
        np.testing.assert_array_equal(transforms.from_to_dest, np.eye(4))
        np.testing.assert_allclose(transforms.from_to_fid @ transforms.fid_to_from, np.eye(4), atol=1e-12)

    def test_transfer_coregisters_montages(self, engine_config, montage_file, tmp_path, montage, landmarks) -> None:
        """Test that a moved and scaled copy of the cap is brought back onto it."""
        moved = write_points(tmp_path / "moved.xyz", montage.with_xyz(montage.xyz * 2 + 5))
        engine = TrackInterpolator(engine_config)
        engine.set_montage_transfer("3d", 2, montage_file, moved, landmarks, landmarks, temp_path=tmp_path)

        coregistered = read_points(tmp_path / "moved.To.cap32.xyz")
        np.testing.assert_allclose(coregistered.xyz, read_points(montage_file).xyz, atol=1e-9)

    def test_position_matches_are_read_only(self, engine_config, montage_file, tmp_path) -> None:
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)
        with pytest.raises(ValueError):
            engine.position_matches[0] = 5

    def test_current_density_never_copies(self, engine_config, montage_file, tmp_path, landmarks) -> None:
        """Test that current density solves every destination, even on identical montages."""
        engine = TrackInterpolator(engine_config)
        engine.set_montage_transfer("currentdensity", 3, montage_file, montage_file, landmarks, landmarks,
                                    temp_path=tmp_path)

        assert np.all(engine.position_matches == INVALID_INDEX)
        assert engine.need_to_solve

    def test_duplicated_positions_warn(self, engine_config, tmp_path, montage, caplog) -> None:
        """Test that two electrodes at one position are logged."""
        xyz = np.array(montage.xyz)
        xyz[1] = xyz[2]
        path = write_points(tmp_path / "dup.xyz", montage.with_xyz(xyz))

        engine = TrackInterpolator(engine_config)
        assert engine.set_bad_channels("3d", 2, path, "E30", temp_path=tmp_path)
        assert "share the same position" in caplog.text


# =============================================================================
# Application
# =============================================================================


class TestInterpolation:
    """Tests for ``interpolate_tracks``."""

    def test_identical_montage_is_bit_exact(self, engine_config, montage_file, tmp_path, landmarks, recording_file) -> None:
        """Test that a transfer onto the same cap copies every channel unchanged."""
        engine = TrackInterpolator(engine_config)
        assert engine.set_montage_transfer("spherical", 2, montage_file, montage_file, landmarks, landmarks,
                                           temp_path=tmp_path)
        assert not engine.need_to_solve

        outcome = engine.interpolate_tracks(recording_file)

        assert outcome
        np.testing.assert_array_equal(
            read_time_series(outcome.output_path).data, read_time_series(recording_file).data
        )

    @pytest.mark.parametrize("method", ["surface", "spherical", "3d"])
    def test_exact_copies_agree_with_general_solve(
        self, engine_config, montage_file, tmp_path, landmarks, recording_file, method
    ) -> None:
        """Test that copied channels equal the solved spline at their electrodes."""
        engine = TrackInterpolator(engine_config)
        assert engine.set_bad_channels(method, 2, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)

        data = read_time_series(recording_file).data
        out = read_time_series(engine.interpolate_tracks(recording_file).output_path).data

        # Every time frame solved at once, then evaluated at every destination
        rhs = np.zeros((engine.solver.size, data.shape[1]))
        rhs[:len(GOOD_INDEX)] = data[GOOD_INDEX]
        weights = engine.solver.solve(rhs)

        cache = DestinationCache.build(
            get_strategy(method),
            engine.from_fiducial_points.xyz,
            engine.dest_fiducial_points.xyz,
            engine.degree,
        )
        spline = SplineEvaluator(cache).evaluate_many(weights)

        np.testing.assert_array_equal(out[GOOD_INDEX], data[GOOD_INDEX])
        np.testing.assert_allclose(spline[GOOD_INDEX], out[GOOD_INDEX], atol=1e-7)
        np.testing.assert_allclose(spline[BAD_INDEX], out[BAD_INDEX], atol=1e-7)

    def test_shortcut_equals_generic_set(self, engine_config, montage_file, tmp_path, landmarks, recording_file) -> None:
        """Test that ``set_bad_channels`` is ``set`` with the original montage as target."""
        first = TrackInterpolator(engine_config)
        first.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)
        out_first = first.interpolate_tracks(recording_file, infix="shortcut")

        second = TrackInterpolator(engine_config)
        second.set("3d", 2, Target.BACK_TO_ORIGINAL, MontageSpec(montage_file, landmarks, BAD_CHANNELS),
                   temp_path=tmp_path)
        out_second = second.interpolate_tracks(recording_file, infix="generic")

        np.testing.assert_array_equal(first.position_matches, second.position_matches)
        np.testing.assert_allclose(
            read_time_series(out_first.output_path).data,
            read_time_series(out_second.output_path).data,
            atol=1e-12,
        )

    def test_planar_repair_keeps_good_channels(
        self, engine_config, montage_file, tmp_path, montage, landmarks
    ) -> None:
        """Test a planar degree 1 repair: 30 channels unchanged, 2 within their neighbors."""
        engine = TrackInterpolator(engine_config)
        assert engine.set_bad_channels("surface", 1, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)

        # Degree 1 reproduces a uniform potential, one level per time frame
        levels = np.random.default_rng(21).normal(scale=40.0, size=60)
        data = np.tile(levels, (N_ELECTRODES, 1))
        data[BAD_INDEX] = 1e6

        path = _write_recording(tmp_path / "levels.npz", data)
        out = read_time_series(engine.interpolate_tracks(path).output_path).data

        np.testing.assert_array_equal(out[GOOD_INDEX], data[GOOD_INDEX])
        _assert_within_neighbors(out, montage, tol=1e-6)

    def test_smooth_repair_within_neighbors(
        self, engine_config, montage_file, tmp_path, montage, landmarks
    ) -> None:
        """Test that rebuilt channels stay within their 6 nearest good neighbors every frame."""
        engine = TrackInterpolator(engine_config)
        assert engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)

        # Potential varying from vertex to ears, slope and offset changing over time
        rng = np.random.default_rng(22)
        slopes = rng.normal(scale=5.0, size=80)
        offsets = rng.normal(scale=20.0, size=80)
        data = np.outer(montage.xyz[:, 2], slopes) + offsets
        data[BAD_INDEX] = -1e6

        path = _write_recording(tmp_path / "smooth.npz", data)
        out = read_time_series(engine.interpolate_tracks(path).output_path).data

        np.testing.assert_array_equal(out[GOOD_INDEX], data[GOOD_INDEX])
        _assert_within_neighbors(out, montage, tol=1e-6)

    def test_bad_channel_content_is_ignored(self, engine_config, montage_file, tmp_path, recording) -> None:
        """Test that whatever bad channels hold does not change the output."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("spherical", 3, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        clean = recording.data.copy()
        clean[BAD_INDEX] = 0.0
        noisy = recording.data.copy()
        noisy[BAD_INDEX] = -7e5

        out_clean = engine.interpolate_tracks(_write_recording(tmp_path / "clean.npz", clean)).output_path
        out_noisy = engine.interpolate_tracks(_write_recording(tmp_path / "noisy.npz", noisy)).output_path

        np.testing.assert_allclose(
            read_time_series(out_clean).data, read_time_series(out_noisy).data, atol=1e-12
        )

    @pytest.mark.parametrize("method", ["surface", "spherical", "3d"])
    def test_constant_field_reproduced(self, engine_config, montage_file, tmp_path, landmarks, method) -> None:
        """Test that a constant potential stays constant on rebuilt channels."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels(method, 2, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)

        path = _write_recording(tmp_path / "flat.npz", np.full((N_ELECTRODES, 40), 12.5))
        out = read_time_series(engine.interpolate_tracks(path).output_path).data

        np.testing.assert_allclose(out, 12.5, atol=1e-6)

    def test_linear_field_reproduced_by_3d_spline(self, engine_config, montage_file, tmp_path, landmarks, montage) -> None:
        """Test that the 3D degree 2 spline rebuilds a linear potential."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)

        # Potential growing from back to front, over 3 time frames
        field = np.outer(montage.xyz[:, 0], [1.0, -2.0, 0.5])
        path = _write_recording(tmp_path / "gradient.npz", field)
        out = read_time_series(engine.interpolate_tracks(path).output_path).data

        np.testing.assert_allclose(out[BAD_INDEX], field[BAD_INDEX], atol=1e-3)

    def test_current_density_of_constant_field_is_zero(self, engine_config, montage_file, tmp_path, landmarks) -> None:
        """Test that a uniform potential has no current density."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("currentdensity", 3, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)

        path = _write_recording(tmp_path / "flat.npz", np.full((N_ELECTRODES, 10), 4.0))
        out = read_time_series(engine.interpolate_tracks(path).output_path).data

        np.testing.assert_allclose(out, 0.0, atol=1e-6)

    def test_transfer_to_smaller_montage(self, engine_config, montage_file, tmp_path, montage, landmarks, recording_file) -> None:
        """Test a transfer onto every other electrode of the same cap."""
        subset = montage.subset(np.arange(N_ELECTRODES) % 2 == 0)
        dest = write_points(tmp_path / "cap16.xyz", subset)

        engine = TrackInterpolator(engine_config)
        engine.set_montage_transfer("spherical", 2, montage_file, dest, landmarks, temp_path=tmp_path)

        outcome = engine.interpolate_tracks(recording_file)
        result = read_time_series(outcome.output_path)

        assert result.n_channels == 16
        assert result.channel_names == subset.names
        # Every destination electrode sits on a source electrode
        np.testing.assert_array_equal(result.data, read_time_series(recording_file).data[::2])

    def test_metadata_preserved(self, engine_config, montage_file, tmp_path, recording, recording_file) -> None:
        """Test that rate, timestamp, markers and length pass through."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        result = read_time_series(engine.interpolate_tracks(recording_file).output_path)

        assert result.sampling_rate_hz == recording.sampling_rate_hz
        assert result.timestamp == recording.timestamp
        assert result.markers == recording.markers
        assert result.n_samples == recording.n_samples

    def test_ep_sampling_rate_from_engine_config(self, engine_config, montage_file, tmp_path, recording) -> None:
        """Test that .ep recordings are read at the engine's configured rate."""
        engine_config["io"]["ep_sampling_rate_hz"] = 250.0
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        path = write_time_series(tmp_path / "rec.ep", recording)
        result = read_time_series(engine.interpolate_tracks(path).output_path)

        assert result.sampling_rate_hz == 250.0

    def test_series_reader_receives_configured_rate(self, engine_config, montage_file, tmp_path, recording) -> None:
        """Test that an injected reader is called with the configured rate."""
        calls = []

        def reader(path, sampling_rate_hz=None):
            calls.append(sampling_rate_hz)
            return TimeSeries(data=recording.data, sampling_rate_hz=sampling_rate_hz, path=tmp_path / "mem.ep")

        engine_config["io"]["ep_sampling_rate_hz"] = 128.0
        engine = TrackInterpolator(engine_config, series_reader=reader)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        assert engine.interpolate_tracks(tmp_path / "mem.ep")
        assert calls == [128.0]

    def test_single_worker_matches_threads(self, engine_config, montage_file, tmp_path, recording_file) -> None:
        """Test that thread count and chunk size do not change the result."""
        threaded = TrackInterpolator(engine_config)
        threaded.set_bad_channels("spherical", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)
        out_threaded = threaded.interpolate_tracks(recording_file, infix="threads").output_path

        serial_config = dict(engine_config, parallel={"workers": 1, "chunk_frames": 1000})
        serial = TrackInterpolator(serial_config)
        serial.set_bad_channels("spherical", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)
        out_serial = serial.interpolate_tracks(recording_file, infix="serial").output_path

        np.testing.assert_allclose(
            read_time_series(out_threaded).data, read_time_series(out_serial).data, atol=1e-10
        )

    def test_progress_reported_per_chunk(self, engine_config, montage_file, tmp_path, recording_file) -> None:
        """Test one progress step per chunk of time frames."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        progress = RecordingProgress()
        engine.interpolate_tracks(recording_file, progress=progress)

        # 100 frames in chunks of 16
        assert progress.ranges == [(1, 7)]
        assert progress.advanced == 7

    def test_in_memory_series(self, engine_config, montage_file, tmp_path, recording) -> None:
        """Test that in-memory series need a path to name their output."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        sink = CollectingErrorSink()
        assert not engine.interpolate_tracks(recording, error_sink=sink)
        assert "no path" in sink.messages[0][1]

        recording.path = tmp_path / "memory.npz"
        assert engine.interpolate_tracks(recording)


# =============================================================================
# Per-file Failures
# =============================================================================


class TestFileFailures:
    """Files that can not be processed fail alone, the engine stays ready."""

    def test_aux_channels_rejected(self, engine_config, montage_file, tmp_path, recording) -> None:
        """Test that recordings with auxiliary channels are refused."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        aux = np.zeros(N_ELECTRODES, dtype=bool)
        aux[-1] = True
        series = TimeSeries(data=recording.data, sampling_rate_hz=500.0, aux_channels=aux)
        path = write_time_series(tmp_path / "aux.npz", series)

        outcome = engine.interpolate_tracks(path, silent=True)
        assert not outcome
        assert "auxiliary" in outcome.message
        assert engine.state is EngineState.READY

    def test_channel_count_mismatch(self, engine_config, montage_file, tmp_path) -> None:
        """Test that the channel count must equal the From electrode count."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        path = _write_recording(tmp_path / "short.npz", np.zeros((N_ELECTRODES - 1, 10)))
        outcome = engine.interpolate_tracks(path, silent=True)

        assert not outcome
        assert "31 channels" in outcome.message

    def test_missing_file(self, engine_config, montage_file, tmp_path) -> None:
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        outcome = engine.interpolate_tracks(tmp_path / "nope.npz", silent=True)
        assert not outcome
        assert "MS_TRACKS" in outcome.message

    def test_singular_system_only_fails_when_solving(self, engine_config, tmp_path) -> None:
        """Test that a singular matrix only matters when something must be solved."""
        # Two electrodes at the same place, the third one is bad
        points = PointSet.from_arrays([[0, 0, 1], [0, 0, 1], [1, 0, 0]], ["A", "B", "C"])
        path = write_points(tmp_path / "tiny.xyz", points)

        engine = TrackInterpolator(engine_config)
        assert engine.set_bad_channels("3d", 1, path, "C", temp_path=tmp_path)
        assert engine.solver.is_singular

        recording = _write_recording(tmp_path / "tiny.npz", np.ones((3, 5)))
        outcome = engine.interpolate_tracks(recording, silent=True)
        assert not outcome
        assert "singular" in outcome.message

        # Nothing to solve: exact copies only
        assert engine.set_bad_channels("3d", 1, path, "", temp_path=tmp_path)
        assert engine.interpolate_tracks(recording)


# =============================================================================
# Output Files
# =============================================================================


class TestOutputFiles:
    """Tests for output naming, reports and cleanup."""

    def test_default_output_name(self, engine_config, montage_file, tmp_path, recording_file) -> None:
        """Test the method, degree and electrode count infix."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        outcome = engine.interpolate_tracks(recording_file)
        assert outcome.output_path == tmp_path / "rec.i3DS2.To.32.npz"

    def test_infix_and_extension(self, engine_config, montage_file, tmp_path, recording_file) -> None:
        """Test that a given infix and extension replace the defaults."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("spherical", 3, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        outcome = engine.interpolate_tracks(recording_file, infix="fixed", output_extension="ep")
        assert outcome.output_path == tmp_path / "rec.fixed.ep"
        assert read_time_series(outcome.output_path).n_channels == N_ELECTRODES

    def test_never_overwrites(self, engine_config, montage_file, tmp_path, recording_file) -> None:
        """Test that a second run gets a _2 variant."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        first = engine.interpolate_tracks(recording_file).output_path
        second = engine.interpolate_tracks(recording_file).output_path

        assert first != second
        assert second.name == "rec.i3DS2.To.32_2.npz"
        assert first.exists() and second.exists()

    def test_report_written(self, engine_config, montage_file, tmp_path, landmarks, recording_file) -> None:
        """Test the content of the .vrb report of a bad channel repair."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("spherical", 2, montage_file, BAD_CHANNELS, landmarks, temp_path=tmp_path)

        output = engine.interpolate_tracks(recording_file).output_path
        report = (output.parent / f"{output.name}.vrb").read_text(encoding="utf-8")

        assert report.startswith("Tracks Interpolation")
        assert "E5 E14" in report
        assert "Spherical Spline" in report
        assert "Fiducial Front:" in report
        assert "Identical to 'From' space" in report
        assert "Number of markers:" in report

    def test_transfer_report_mentions_coregistration(self, engine_config, montage_file, tmp_path, landmarks,
                                                     recording_file) -> None:
        """Test that a transfer report describes the coregistration."""
        engine = TrackInterpolator(engine_config)
        engine.set_montage_transfer("3d", 2, montage_file, montage_file, landmarks, landmarks, temp_path=tmp_path)

        output = engine.interpolate_tracks(recording_file).output_path
        report = (output.parent / f"{output.name}.vrb").read_text(encoding="utf-8")

        assert "Another space" in report
        assert "Coregistration method:" in report

    def test_files_cleanup(self, engine_config, montage_file, tmp_path, recording_file) -> None:
        """Test that cleanup deletes exported files only, engine still usable."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        created = engine.temp_files
        assert created and all(p.exists() for p in created)

        engine.files_cleanup()

        assert engine.temp_files == []
        assert not any(p.exists() for p in created)
        assert montage_file.exists()
        # Engine remains usable
        assert engine.interpolate_tracks(recording_file)

    def test_cleanup_tolerates_deleted_files(self, engine_config, montage_file, tmp_path) -> None:
        """Test that files already deleted by hand do not fail the cleanup."""
        engine = TrackInterpolator(engine_config)
        engine.set_bad_channels("3d", 2, montage_file, BAD_CHANNELS, temp_path=tmp_path)

        engine.temp_files[0].unlink()
        engine.files_cleanup()
        assert engine.temp_files == []
