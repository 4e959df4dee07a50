"""
Tracks Interpolation Engine

Remaps multi-channel recordings from one electrode montage onto another,
or rebuilds the bad channels of a recording on its own montage.

Configuration (``set``) is done once per batch:

1. read the 'From' montage, optionally writing and reading back a reduced
   copy without the bad channels,
2. read the 'To' montage (the original 'From' montage when going back to
   the original electrodes),
3. compute the transforms to fiducial space and between the two montages,
4. project both montages to the kernel space of the chosen method,
5. build and factorize the spline matrix, cache the destination kernel
   rows and polynomial powers,
6. find the destinations sitting exactly on an original 'From' electrode.

Every file (``interpolate_tracks``) then reuses all of the above read-only,
solving the time frames in parallel chunks, each worker owning its own
right-hand side and solution buffers.

Usage:
    from montage_spline.tracks import TrackInterpolator, MontageSpec, Target

    engine = TrackInterpolator()
    engine.set("spherical", 3, Target.BACK_TO_ORIGINAL,
               MontageSpec("cap.xyz", bad_channels="T7 O2"))
    outcome = engine.interpolate_tracks("subject01.npz")
    engine.files_cleanup()
"""

from __future__ import annotations

import enum
import logging
import os
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import numpy as np

from montage_spline.config import load_config
from montage_spline.exceptions import ConfigurationError, MontageSplineError
from montage_spline.geometry.constants import (
    INFIX_DEST,
    INFIX_EXCLUDED,
    INFIX_FIDUCIAL,
    INFIX_FROM,
    INFIX_TO_COREGISTERED,
    INVALID_INDEX,
    MAX_SPLINE_DEGREE,
    MIN_SPLINE_DEGREE,
    SINGLE_FLOAT_EPSILON,
    XYZ_EXTENSION,
)
from montage_spline.geometry.fiducial import (
    FiducialLandmarks,
    Normalization,
    apply_transform,
    fiducial_transform_or_identity,
    identity_transform,
    invert_transform,
    is_identity,
    normalize_homogeneous,
)
from montage_spline.geometry.points import PointSet, read_points, select_channels, write_points
from montage_spline.geometry.projection import transform_to_fiducial
from montage_spline.splines.evaluator import DestinationCache, SplineEvaluator
from montage_spline.splines.methods import InterpolationMethod, SplineStrategy, get_strategy, parse_method
from montage_spline.splines.system import SplineSolver, build_spline_matrix, find_duplicate_positions
from montage_spline.tracks.report import ProcessingReport, report_path_for
from montage_spline.tracks.reporting import FRAME_LEVEL, ErrorSink, LoggingErrorSink, ProgressReporter
from montage_spline.tracks.series import TimeSeries, read_time_series, unique_path, write_time_series

logger = logging.getLogger(__name__)

INTERPOLATION_TITLE = "Tracks Interpolation"


class Target(enum.Enum):
    """Where the interpolated channels live."""

    BACK_TO_ORIGINAL = "back_to_original"
    OTHER_MONTAGE = "other_montage"


class EngineState(enum.Enum):
    UNCONFIGURED = "unconfigured"
    READY = "ready"
    APPLYING = "applying"


@dataclass(frozen=True)
class MontageSpec:
    """
    One side of an interpolation.

    Attributes
    ----------
    xyz_file : str or Path
        Electrodes coordinates file.
    landmarks : FiducialLandmarks
        All 5 landmarks for a fiducial normalization, or none to use the
        coordinates as they are.
    bad_channels : str
        Channel selection excluded from the source (ignored on the 'To' side).
    """

    xyz_file: str | Path
    landmarks: FiducialLandmarks = field(default_factory=FiducialLandmarks)
    bad_channels: str = ""


@dataclass(frozen=True)
class Transforms:
    """4x4 transforms computed by ``set``."""

    from_to_fid: np.ndarray
    fid_to_from: np.ndarray
    dest_to_fid: np.ndarray
    dest_to_from: np.ndarray
    from_to_dest: np.ndarray


@dataclass(frozen=True)
class InterpolationOutcome:
    """Result of one file; truthy on success."""

    ok: bool
    output_path: Path | None = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.ok


def clamp_degree(degree: int) -> int:
    """Spline degree forced into [MIN_SPLINE_DEGREE, MAX_SPLINE_DEGREE]."""
    return int(min(max(int(degree), MIN_SPLINE_DEGREE), MAX_SPLINE_DEGREE))


def resolve_temp_dir(temp_path: str | Path | None) -> Path:
    """Directory for intermediate files: the given one, a file's parent, or the system temp."""
    if temp_path is None or str(temp_path) == "":
        return Path(tempfile.gettempdir())

    temp_path = Path(temp_path)
    if temp_path.is_dir():
        return temp_path
    return temp_path.parent


class TrackInterpolator:
    """
    Spline interpolation of recordings between electrode montages.

    Parameters
    ----------
    config : dict, optional
        Configuration as returned by ``load_config``; loaded when None.
    point_reader : callable, optional
        Electrodes coordinates reader, ``read_points`` by default.
    series_reader : callable, optional
        Time series reader, ``read_time_series`` by default. Called with
        the configured ``sampling_rate_hz`` for formats that store none.
    series_writer : callable, optional
        Time series writer, ``write_time_series`` by default.

    Examples
    --------
    >>> engine = TrackInterpolator()
    >>> engine.is_configured
    False
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        point_reader: Callable[[str | Path], PointSet] = read_points,
        series_reader: Callable[..., TimeSeries] = read_time_series,
        series_writer: Callable[[str | Path, TimeSeries], Path] = write_time_series,
    ):
        self.config = config if config is not None else load_config()
        self._point_reader = point_reader
        self._series_reader = series_reader
        self._series_writer = series_writer
        self._temp_files: list[Path] = []
        self.reset()

    # =========================================================================
    # State
    # =========================================================================

    def reset(self) -> None:
        """Forget the whole configuration; temp files are left on disk."""
        self.state = EngineState.UNCONFIGURED
        self.method: InterpolationMethod | None = None
        self.degree: int | None = None
        self.target = Target.BACK_TO_ORIGINAL

        self._source: MontageSpec | None = None
        self._destination: MontageSpec | None = None
        self._from_original_file: Path | None = None
        self._from_file: Path | None = None
        self._dest_file: Path | None = None
        self._temp_dir: Path | None = None
        self._temp_files = []

        self._from_original: PointSet | None = None
        self._from: PointSet | None = None
        self._dest: PointSet | None = None
        self._from_fid: PointSet | None = None
        self._dest_fid: PointSet | None = None
        self._transforms: Transforms | None = None

        self._strategy: SplineStrategy | None = None
        self._solver: SplineSolver | None = None
        self._evaluator: SplineEvaluator | None = None
        self._matches: np.ndarray | None = None

        self._good_mask: np.ndarray | None = None
        self._good_index: np.ndarray | None = None
        self._copy_dest: np.ndarray | None = None
        self._copy_src: np.ndarray | None = None
        self._solve_dest: np.ndarray | None = None
        self._need_to_solve = False
        self._apply_chunk: Callable | None = None

    @property
    def is_configured(self) -> bool:
        return self.state is not EngineState.UNCONFIGURED

    @property
    def need_to_solve(self) -> bool:
        """False when every destination is an exact copy of a good source channel."""
        return self._need_to_solve

    @property
    def from_original_points(self) -> PointSet | None:
        return self._from_original

    @property
    def from_points(self) -> PointSet | None:
        return self._from

    @property
    def dest_points(self) -> PointSet | None:
        return self._dest

    @property
    def from_fiducial_points(self) -> PointSet | None:
        return self._from_fid

    @property
    def dest_fiducial_points(self) -> PointSet | None:
        return self._dest_fid

    @property
    def transforms(self) -> Transforms | None:
        return self._transforms

    @property
    def position_matches(self) -> np.ndarray | None:
        """Index into the original 'From' montage per destination, -1 for none."""
        if self._matches is None:
            return None
        matches = self._matches.copy()
        matches.setflags(write=False)
        return matches

    @property
    def solver(self) -> SplineSolver | None:
        return self._solver

    @property
    def temp_files(self) -> list[Path]:
        return list(self._temp_files)

    # =========================================================================
    # Configuration
    # =========================================================================

    def set(
        self,
        method: InterpolationMethod | str,
        degree: int,
        target: Target | str,
        source: MontageSpec,
        destination: MontageSpec | None = None,
        temp_path: str | Path | None = None,
        silent: bool = False,
        error_sink: ErrorSink | None = None,
    ) -> bool:
        """
        Configure an interpolation for a whole batch of files.

        Parameters
        ----------
        method : InterpolationMethod or str
            Spline family.
        degree : int
            Spline degree, silently clamped to [1, 4].
        target : Target or str
            Back to the original electrodes, or to another montage.
        source : MontageSpec
            'From' montage, landmarks and bad channels.
        destination : MontageSpec, optional
            'To' montage, required for ``Target.OTHER_MONTAGE``.
        temp_path : str or Path, optional
            Directory (or a file within it) for intermediate coordinates
            files. System temp directory when None.
        silent : bool
            Do not report failures to the error sink.
        error_sink : ErrorSink, optional
            Receives failure reports; logs them by default.

        Returns
        -------
        bool
            True if configured. On failure the engine is reset.
        """
        sink = error_sink if error_sink is not None else LoggingErrorSink()

        self.reset()

        try:
            self._configure(method, degree, Target(target), source, destination, temp_path)
        except (MontageSplineError, ValueError, OSError) as e:
            logger.debug("Configuration failed: %s", e)
            if not silent:
                sink.report(INTERPOLATION_TITLE, str(e))
            self.files_cleanup()
            self.reset()
            return False

        self.state = EngineState.READY
        return True

    def set_bad_channels(
        self,
        method: InterpolationMethod | str,
        degree: int,
        xyz_file: str | Path,
        bad_channels: str,
        landmarks: FiducialLandmarks | None = None,
        temp_path: str | Path | None = None,
        silent: bool = False,
        error_sink: ErrorSink | None = None,
    ) -> bool:
        """Configure the repair of bad channels on their own montage."""
        source = MontageSpec(xyz_file, landmarks or FiducialLandmarks(), bad_channels)
        return self.set(
            method, degree, Target.BACK_TO_ORIGINAL, source,
            temp_path=temp_path, silent=silent, error_sink=error_sink,
        )

    def set_montage_transfer(
        self,
        method: InterpolationMethod | str,
        degree: int,
        from_xyz_file: str | Path,
        to_xyz_file: str | Path,
        from_landmarks: FiducialLandmarks | None = None,
        to_landmarks: FiducialLandmarks | None = None,
        temp_path: str | Path | None = None,
        silent: bool = False,
        error_sink: ErrorSink | None = None,
    ) -> bool:
        """Configure the projection of recordings onto another montage."""
        source = MontageSpec(from_xyz_file, from_landmarks or FiducialLandmarks())
        destination = MontageSpec(to_xyz_file, to_landmarks or FiducialLandmarks())
        return self.set(
            method, degree, Target.OTHER_MONTAGE, source, destination,
            temp_path=temp_path, silent=silent, error_sink=error_sink,
        )

    def _configure(
        self,
        method: InterpolationMethod | str,
        degree: int,
        target: Target,
        source: MontageSpec,
        destination: MontageSpec | None,
        temp_path: str | Path | None,
    ) -> None:
        self.method = parse_method(method)
        self.degree = clamp_degree(degree)
        self.target = target

        if target is Target.OTHER_MONTAGE and destination is None:
            raise ConfigurationError("No destination electrodes coordinates file given", side="To")

        if target is Target.BACK_TO_ORIGINAL:
            destination = None

        source.landmarks.check_complete("From")
        if destination is not None:
            destination.landmarks.check_complete("To")

        self._source = source
        self._destination = destination
        self._temp_dir = resolve_temp_dir(temp_path)

        self._read_montages()
        self._set_transforms()
        self._export_temp_points()
        self._set_spline()

        logger.info(
            "%s degree %d: %d source electrodes (%d excluded) to %d destination electrodes",
            self.method.title,
            self.degree,
            self._from.n_points,
            self._from_original.n_points - self._from.n_points,
            self._dest.n_points,
        )

    def _read_montages(self) -> None:
        self._from_original_file = Path(self._source.xyz_file)
        self._from_original = self._point_reader(self._from_original_file)

        bad_channels = self._source.bad_channels or ""
        bad_mask = select_channels(bad_channels, self._from_original.names)
        self._good_mask = ~bad_mask
        self._good_index = np.flatnonzero(self._good_mask)

        if not self._good_mask.any():
            raise ConfigurationError("Every electrode is marked as bad", side="From")

        if bad_channels.strip():
            excl_path = unique_path(
                self._temp_dir / f"{self._from_original_file.stem}.{INFIX_EXCLUDED}{self._from_original_file.suffix}"
            )
            self._export(excl_path, self._from_original.subset(self._good_mask))
            self._from_file = excl_path
        else:
            self._from_file = self._from_original_file

        self._from = self._point_reader(self._from_file)

        if self.target is Target.BACK_TO_ORIGINAL:
            self._dest_file = self._from_original_file
        else:
            self._dest_file = Path(self._destination.xyz_file)

        self._dest = self._point_reader(self._dest_file)

    def _set_transforms(self) -> None:
        from_landmarks = self._source.landmarks
        from_to_fid = fiducial_transform_or_identity(
            self._from_original, from_landmarks, from_landmarks.normalization()
        )
        if from_landmarks.normalization() is Normalization.FIDUCIAL:
            fid_to_from = invert_transform(from_to_fid)
        else:
            fid_to_from = identity_transform()

        if self.target is Target.BACK_TO_ORIGINAL:
            dest_to_fid = from_to_fid
        else:
            dest_landmarks = self._destination.landmarks
            dest_to_fid = fiducial_transform_or_identity(
                self._dest, dest_landmarks, dest_landmarks.normalization()
            )

        # Montage-to-montage transform only shows how the two montages overlap
        if self.target is Target.BACK_TO_ORIGINAL or (
            is_identity(dest_to_fid) and is_identity(fid_to_from)
        ):
            dest_to_from = identity_transform()
            from_to_dest = identity_transform()
        else:
            dest_to_from = normalize_homogeneous(fid_to_from @ dest_to_fid)
            from_to_dest = invert_transform(dest_to_from)

        self._transforms = Transforms(
            from_to_fid=from_to_fid,
            fid_to_from=fid_to_from,
            dest_to_fid=dest_to_fid,
            dest_to_from=dest_to_from,
            from_to_dest=from_to_dest,
        )

    def _export(self, path: Path, points: PointSet) -> None:
        write_points(path, points)
        self._temp_files.append(path)

    def _export_temp_points(self) -> None:
        transforms = self._transforms
        from_stem = self._from_file.stem
        dest_stem = self._dest_file.stem

        if self.target is Target.OTHER_MONTAGE:
            self._export(
                unique_path(self._temp_dir / f"{dest_stem}{INFIX_TO_COREGISTERED}{from_stem}.{XYZ_EXTENSION}"),
                self._dest.with_xyz(apply_transform(self._dest.xyz, transforms.dest_to_from)),
            )
            self._export(
                unique_path(self._temp_dir / f"{from_stem}{INFIX_TO_COREGISTERED}{dest_stem}.{XYZ_EXTENSION}"),
                self._from.with_xyz(apply_transform(self._from.xyz, transforms.from_to_dest)),
            )

        space = self.method.space
        self._from_fid = transform_to_fiducial(self._from, transforms.from_to_fid, space)
        self._dest_fid = transform_to_fiducial(self._dest, transforms.dest_to_fid, space)

        # Forced From/Dest infixes: both montages can come from the same file
        self._export(
            unique_path(self._temp_dir / f"{from_stem}.{INFIX_FROM}{INFIX_FIDUCIAL}.{XYZ_EXTENSION}"),
            self._from_fid,
        )
        self._export(
            unique_path(self._temp_dir / f"{dest_stem}.{INFIX_DEST}{INFIX_FIDUCIAL}.{XYZ_EXTENSION}"),
            self._dest_fid,
        )

    def _set_spline(self) -> None:
        self._strategy = get_strategy(self.method)

        matrix = build_spline_matrix(self._strategy, self._from_fid.xyz, self.degree)
        self._solver = SplineSolver(matrix)
        self._check_conditioning()

        cache = DestinationCache.build(
            self._strategy, self._from_fid.xyz, self._dest_fid.xyz, self.degree
        )
        self._evaluator = SplineEvaluator(cache)

        self._matches = self._match_positions()
        self._plan_destinations()

    def _check_conditioning(self) -> None:
        duplicates = find_duplicate_positions(self._from_fid.xyz)
        for i, j in duplicates:
            logger.warning(
                "Electrodes '%s' and '%s' share the same position",
                self._from_fid.names[i],
                self._from_fid.names[j],
            )

        max_condition = float(self.config["solver"]["max_condition_number"])
        if self._solver.is_singular:
            logger.warning(
                "Spline matrix is singular; only exact electrode copies can be computed"
            )
        elif self._solver.condition_number > max_condition:
            logger.warning(
                "Spline matrix is ill-conditioned (condition number %.3g > %.3g)",
                self._solver.condition_number,
                max_condition,
            )

    def _match_positions(self) -> np.ndarray:
        """Destinations located on an original 'From' electrode."""
        n_dest = self._dest.n_points
        matches = np.full(n_dest, INVALID_INDEX, dtype=np.int64)

        if not self._strategy.allows_exact_copy:
            return matches

        if self.target is Target.BACK_TO_ORIGINAL:
            return np.arange(n_dest, dtype=np.int64)

        # All original points, including the bad ones
        all_from_fid = transform_to_fiducial(
            self._from_original, self._transforms.from_to_fid, self.method.space
        )
        radius = (all_from_fid.radius() + self._dest_fid.radius()) / 2
        if radius == 0:
            return matches

        diff = self._dest_fid.xyz[:, np.newaxis, :] - all_from_fid.xyz[np.newaxis, :, :]
        close = np.linalg.norm(diff, axis=-1) / radius < SINGLE_FLOAT_EPSILON

        found = close.any(axis=1)
        # First match wins
        matches[found] = np.argmax(close[found], axis=1)
        return matches

    def _plan_destinations(self) -> None:
        copyable = self._matches != INVALID_INDEX
        copyable[copyable] = self._good_mask[self._matches[copyable]]

        self._copy_dest = np.flatnonzero(copyable)
        self._copy_src = self._matches[copyable]
        self._solve_dest = np.flatnonzero(~copyable)
        self._need_to_solve = self._solve_dest.size > 0

        # Picked once, run for every chunk of every file
        self._apply_chunk = self._interpolate_chunk if self._need_to_solve else self._copy_chunk

        logger.debug(
            "%d destinations copied, %d interpolated",
            self._copy_dest.size,
            self._solve_dest.size,
        )

    # =========================================================================
    # Application
    # =========================================================================

    def interpolate_tracks(
        self,
        tracks: str | Path | TimeSeries,
        infix: str = "",
        output_extension: str | None = None,
        silent: bool = False,
        error_sink: ErrorSink | None = None,
        progress: ProgressReporter | None = None,
    ) -> InterpolationOutcome:
        """
        Interpolate one recording and write the result next to it.

        Parameters
        ----------
        tracks : str, Path or TimeSeries
            Recording file, or an already loaded series (which must carry a
            ``path`` used to name the output).
        infix : str
            Output name infix; defaults to method, degree and destination count.
        output_extension : str, optional
            ``npz`` or ``ep``; configured default when None.
        silent : bool
            Do not report failures to the error sink.
        error_sink : ErrorSink, optional
            Receives failure reports; logs them by default.
        progress : ProgressReporter, optional
            Receives time-frame progress.

        Returns
        -------
        InterpolationOutcome
            Success flag, output path and failure message.
        """
        sink = error_sink if error_sink is not None else LoggingErrorSink()

        if self.state is not EngineState.READY:
            message = "Interpolation has not been configured"
            if not silent:
                sink.report(INTERPOLATION_TITLE, message)
            return InterpolationOutcome(False, None, message)

        if output_extension is None:
            output_extension = self.config["io"]["output_extension"]

        self.state = EngineState.APPLYING
        try:
            output_path = self._interpolate_file(tracks, infix, output_extension, progress)
        except (MontageSplineError, ValueError, OSError) as e:
            logger.debug("Interpolation failed: %s", e)
            if not silent:
                sink.report(INTERPOLATION_TITLE, str(e))
            return InterpolationOutcome(False, None, str(e))
        finally:
            self.state = EngineState.READY

        return InterpolationOutcome(True, output_path, "")

    def _interpolate_file(
        self,
        tracks: str | Path | TimeSeries,
        infix: str,
        output_extension: str,
        progress: ProgressReporter | None,
    ) -> Path:
        if isinstance(tracks, TimeSeries):
            series = tracks
        else:
            series = self._series_reader(
                tracks, sampling_rate_hz=float(self.config["io"]["ep_sampling_rate_hz"])
            )

        if series.n_aux_channels:
            raise ConfigurationError(
                f"File has {series.n_aux_channels} auxiliary channels, "
                "which can not be interpolated"
            )

        if series.n_channels != self._from_original.n_points:
            raise ConfigurationError(
                f"File has {series.n_channels} channels, but "
                f"'{self._from_original_file.name}' has {self._from_original.n_points} electrodes"
            )

        if self._good_index.size != self._from.n_points:
            raise ConfigurationError(
                f"{self._good_index.size} good channels do not match the "
                f"{self._from.n_points} source electrodes"
            )

        if self._need_to_solve:
            self._solver.check_solvable()

        output_path = unique_path(self._output_path_for(series, infix, output_extension))

        data_out = self._apply(series.data, progress)

        self._series_writer(output_path, series.with_data(data_out, self._dest.names))
        self._write_report(series, output_path)

        logger.info("Interpolated %s -> %s", series.path, output_path)
        return output_path

    def _output_path_for(self, series: TimeSeries, infix: str, output_extension: str) -> Path:
        if series.path is None:
            raise ConfigurationError("Time series has no path to name its output after")

        base = Path(series.path)
        extension = output_extension.lstrip(".")

        if infix:
            name = f"{base.stem}.{infix}.{extension}"
        else:
            name = (
                f"{base.stem}.{self.method.infix}{self.degree}"
                f"{INFIX_TO_COREGISTERED}{self._dest.n_points}.{extension}"
            )
        return base.with_name(name)

    def _worker_count(self) -> int:
        workers = int(self.config["parallel"]["workers"])
        if workers <= 0:
            workers = os.cpu_count() or 1
        return workers

    def _apply(self, data: np.ndarray, progress: ProgressReporter | None) -> np.ndarray:
        """Output channels for every time frame, chunks run in parallel."""
        n_samples = data.shape[1]
        chunk = max(1, int(self.config["parallel"]["chunk_frames"]))
        starts = range(0, n_samples, chunk)

        output = np.empty((self._dest.n_points, n_samples))
        scratch = threading.local()

        if progress is not None:
            progress.set_range(FRAME_LEVEL, len(starts))

        def run(start: int) -> None:
            stop = min(start + chunk, n_samples)
            self._apply_chunk(data, output, start, stop, scratch, chunk)
            if progress is not None:
                progress.advance(FRAME_LEVEL)

        workers = min(self._worker_count(), len(starts))

        if workers <= 1:
            for start in starts:
                run(start)
        else:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                # Consuming the results re-raises worker exceptions
                list(executor.map(run, starts))

        return output

    def _copy_chunk(self, data, output, start, stop, scratch, chunk) -> None:
        output[self._copy_dest, start:stop] = data[self._copy_src, start:stop]

    def _interpolate_chunk(self, data, output, start, stop, scratch, chunk) -> None:
        if not hasattr(scratch, "rhs"):
            # Once per worker thread; polynomial rows stay at 0
            scratch.rhs = np.zeros((self._solver.size, chunk))
            scratch.solution = np.empty((self._solver.size, chunk), order="F")

        width = stop - start
        rhs = scratch.rhs[:, :width]
        solution = scratch.solution[:, :width]

        rhs[:self._from.n_points] = data[self._good_index, start:stop]
        self._solver.solve(rhs, out=solution)

        output[self._solve_dest, start:stop] = self._evaluator.evaluate_many(solution, self._solve_dest)

        if self._copy_dest.size:
            # Plain copies, no rounding
            output[self._copy_dest, start:stop] = data[self._copy_src, start:stop]

    # =========================================================================
    # Report & Cleanup
    # =========================================================================

    def _put_normalization(self, report: ProcessingReport, landmarks: FiducialLandmarks) -> None:
        if landmarks.normalization() is Normalization.FIDUCIAL:
            report.put("Re-orient, center & normalize:", "Transforming to a fiducial coordinate system")
            for label, selection in landmarks.items():
                report.put(f"Fiducial {label.capitalize()}:", selection)
        else:
            report.put("Re-orient, center & normalize:", "Using electrodes coordinates from file 'as is'")

    def _write_report(self, series: TimeSeries, output_path: Path) -> Path:
        report_path = report_path_for(output_path)
        report = ProcessingReport(INTERPOLATION_TITLE)

        report.topic("Files:")
        report.put("Input file:", series.path)
        report.put("Output file:", output_path)
        report.put("Report file (this):", report_path)

        report.topic("'From' space:")
        report.put("Electrodes coordinates file:", self._from_original_file)
        bad_names = [n for n, good in zip(self._from_original.names, self._good_mask) if not good]
        report.put("Number of bad electrodes:", len(bad_names))
        report.put("Bad electrodes:", " ".join(bad_names) if bad_names else "None")
        self._put_normalization(report, self._source.landmarks)

        report.topic("'To' space:")
        if self.target is Target.BACK_TO_ORIGINAL:
            report.put("Destination space is:", "Identical to 'From' space")
        else:
            report.put("Destination space is:", "Another space")
            report.put("Electrodes coordinates file:", self._dest_file)
            self._put_normalization(report, self._destination.landmarks)

            report.topic("Coregistration between 'From' and 'To' spaces:")
            coregistered = not is_identity(self._transforms.from_to_dest)
            report.put(
                "Coregistration method:",
                "Affine transformation (12 parameters)" if coregistered else "None",
            )

        report.topic("Interpolation:")
        report.put("Interpolation method:", self.method.title)
        report.put("Degree of the spline:", self.degree)
        report.put("Exactly copied electrodes:", self._copy_dest.size)
        report.put("Interpolated electrodes:", self._solve_dest.size)
        report.put("Condition number:", f"{self._solver.condition_number:.3g}")

        report.topic("Time series:")
        report.put("Number of time frames:", series.n_samples)
        report.put("Sampling frequency [Hz]:", series.sampling_rate_hz)
        report.put("Number of markers:", len(series.markers))

        return report.write(report_path)

    def files_cleanup(self) -> None:
        """Delete the intermediate coordinates files written by ``set``."""
        for path in self._temp_files:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            logger.debug("Deleted %s", path)
        self._temp_files = []
