"""
Montage Spline Command Line Interface

Batch interpolation of recordings: rebuilding bad channels on their own
montage, or projecting recordings onto another montage. The engine is
configured once, then applied to every file; one failing file does not
stop the batch.

Usage:
    montage-spline --from-xyz cap64.xyz --bad-channels "T7 O2" \\
        --method spherical --degree 3 subject01.npz subject02.npz

    montage-spline --from-xyz cap64.xyz --from-preset auto \\
        --to-xyz cap32.xyz --to-preset 10_10_t7_t8 --method 3d *.npz
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from montage_spline import __version__
from montage_spline.config import load_config
from montage_spline.exceptions import MontageSplineError
from montage_spline.geometry.constants import CLI_MIN_SPLINE_DEGREE, MAX_SPLINE_DEGREE
from montage_spline.geometry.fiducial import FiducialLandmarks
from montage_spline.geometry.points import read_points
from montage_spline.logging_config import setup_logging
from montage_spline.presets import detect_landmarks, get_landmarks
from montage_spline.splines.methods import InterpolationMethod, parse_method
from montage_spline.tracks.engine import MontageSpec, Target, TrackInterpolator
from montage_spline.tracks.reporting import FILE_LEVEL, TqdmProgress
from montage_spline.validation import validate_config_file, validate_landmarks, validate_montage

logger = logging.getLogger(__name__)

METHOD_CHOICES = [method.key for method in InterpolationMethod]
EXTENSION_CHOICES = ["npz", "ep"]
AUTO_PRESET = "auto"

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    """Argument parser of the ``montage-spline`` command."""
    parser = argparse.ArgumentParser(
        prog="montage-spline",
        description="Spatial spline interpolation of EEG recordings between electrode montages.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    source = parser.add_argument_group("'From' montage")
    source.add_argument("--from-xyz", required=True, help="From electrodes coordinates file")
    for label in ("front", "left", "top", "right", "rear"):
        source.add_argument(f"--from-{label}", default="", help=f"From {label} landmark")
    source.add_argument(
        "--from-preset",
        default="",
        help=f"From landmarks preset name, or '{AUTO_PRESET}' to detect them",
    )
    source.add_argument("--bad-channels", default="", help="Bad electrodes to rebuild")

    dest = parser.add_argument_group("'To' montage")
    dest.add_argument("--to-xyz", default="", help="To electrodes coordinates file")
    for label in ("front", "left", "top", "right", "rear"):
        dest.add_argument(f"--to-{label}", default="", help=f"To {label} landmark")
    dest.add_argument(
        "--to-preset",
        default="",
        help=f"To landmarks preset name, or '{AUTO_PRESET}' to detect them",
    )

    interp = parser.add_argument_group("Interpolation")
    interp.add_argument("--method", choices=METHOD_CHOICES, default=None, help="Interpolation method")
    interp.add_argument(
        "--degree",
        type=int,
        default=None,
        help=f"Spline degree, in [{CLI_MIN_SPLINE_DEGREE}..{MAX_SPLINE_DEGREE}] range",
    )

    files = parser.add_argument_group("Files")
    files.add_argument("--input-dir", default="", help="Directory of relative input paths")
    files.add_argument("--infix", default="", help="Infix of the output file names")
    files.add_argument("--ext", choices=EXTENSION_CHOICES, default=None, help="Output file type")
    files.add_argument("--no-cleanup", action="store_true", help="Keep intermediate files")
    files.add_argument("--config", default=None, help="YAML configuration file")
    files.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    files.add_argument("--log-file", default=None, help="Also write a DEBUG log to this file")
    files.add_argument("--no-progress", action="store_true", help="Hide progress bars")
    files.add_argument("files", nargs="*", help="Recordings to interpolate")

    return parser


def _resolve(path: str, input_dir: Path | None) -> Path:
    path = Path(path)
    if input_dir is not None and not path.is_absolute():
        return input_dir / path
    return path


def _landmarks_from_args(
    args: argparse.Namespace,
    side: str,
    xyz_file: Path | None,
) -> FiducialLandmarks:
    """Explicit landmark options, else the preset, else none."""
    explicit = FiducialLandmarks(
        front=getattr(args, f"{side}_front"),
        left=getattr(args, f"{side}_left"),
        top=getattr(args, f"{side}_top"),
        right=getattr(args, f"{side}_right"),
        rear=getattr(args, f"{side}_rear"),
    )
    preset = getattr(args, f"{side}_preset")

    if not explicit.is_empty() or not preset:
        return explicit

    if preset.lower() != AUTO_PRESET:
        return get_landmarks(preset)

    if xyz_file is None:
        raise MontageSplineError(f"Can not detect '{side}' landmarks without a coordinates file")

    detected = detect_landmarks(read_points(xyz_file).names)
    if detected is None:
        raise MontageSplineError(
            f"Could not detect landmarks in '{xyz_file.name}', provide them explicitly"
        )

    key, landmarks = detected
    logger.info("'%s' landmarks detected as %s: %s", side, key, landmarks)
    return landmarks


def _report_issues(result) -> None:
    for warning in result.warnings:
        logger.warning(warning)
    for error in result.errors:
        logger.error(error)
    if result.errors:
        for suggestion in result.recovery_suggestions:
            logger.info("Suggestion: %s", suggestion)


def main(argv: list[str] | None = None) -> int:
    """Entry point of the ``montage-spline`` command; returns the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_file)

    if args.config:
        validation = validate_config_file(args.config)
        _report_issues(validation)
        if not validation.is_valid:
            return EXIT_USAGE
    config = load_config(args.config)

    input_dir = Path(args.input_dir) if args.input_dir else None
    files = [_resolve(f, input_dir) for f in args.files]

    if not files:
        logger.error("No input files provided!")
        return EXIT_USAGE

    from_xyz = _resolve(args.from_xyz, input_dir)
    to_xyz = _resolve(args.to_xyz, input_dir) if args.to_xyz else None

    try:
        from_landmarks = _landmarks_from_args(args, "from", from_xyz)
        to_landmarks = _landmarks_from_args(args, "to", to_xyz)
    except (MontageSplineError, KeyError) as e:
        logger.error("%s", e)
        return EXIT_USAGE

    from_check = validate_landmarks(from_landmarks, side="From")
    if not from_check.is_valid:
        logger.error("You must either provide the 5 'From' landmarks, or none at all!")
        return EXIT_USAGE

    if not to_landmarks.is_empty():
        if to_xyz is None:
            logger.error(
                "You can not specify 'To' landmarks without providing a 'To' electrodes file!"
            )
            return EXIT_USAGE
        if not validate_landmarks(to_landmarks, side="To").is_valid:
            logger.error("You must either provide the 5 'To' landmarks, or none at all!")
            return EXIT_USAGE

    if not args.bad_channels.strip() and to_xyz is None:
        logger.error(
            "You have not specified either bad electrodes nor a different target space!"
        )
        return EXIT_USAGE

    method = parse_method(args.method or config["interpolation"]["method"])

    degree = args.degree if args.degree is not None else int(config["interpolation"]["degree"])
    if not CLI_MIN_SPLINE_DEGREE <= degree <= MAX_SPLINE_DEGREE:
        logger.error(
            "Spline degree should be in [%d..%d] range!", CLI_MIN_SPLINE_DEGREE, MAX_SPLINE_DEGREE
        )
        return EXIT_USAGE

    extension = args.ext or config["io"]["output_extension"]
    cleanup = not args.no_cleanup and bool(config["cleanup"]["delete_temp_files"])

    engine = TrackInterpolator(config)
    source = MontageSpec(from_xyz, from_landmarks, args.bad_channels)

    if to_xyz is not None:
        target = Target.OTHER_MONTAGE
        destination = MontageSpec(to_xyz, to_landmarks)
    else:
        target = Target.BACK_TO_ORIGINAL
        destination = None

    # Temp files go next to the first recording
    if not engine.set(method, degree, target, source, destination, temp_path=files[0]):
        return EXIT_FAILURES

    _report_issues(validate_montage(engine.from_points, method, degree))

    progress = TqdmProgress(disable=args.no_progress)
    progress.set_range(FILE_LEVEL, len(files))
    failures = 0

    try:
        for path in files:
            outcome = engine.interpolate_tracks(
                path, infix=args.infix, output_extension=extension, progress=progress
            )
            if outcome:
                logger.info("Saved %s", outcome.output_path)
            else:
                failures += 1
            progress.advance(FILE_LEVEL)
    finally:
        progress.finish()
        if cleanup:
            engine.files_cleanup()

    if failures:
        logger.error("%d of %d files could not be interpolated", failures, len(files))
        return EXIT_FAILURES

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
