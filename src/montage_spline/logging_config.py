"""
Logging Configuration

Attaches handlers to the 'montage_spline' logger for command-line runs.
Library modules only create child loggers, so importing the package never
alters the host application's logging.

Console records go through ``tqdm.write`` and do not tear the progress
bars of a batch run.
"""
import logging
import sys
from typing import Optional, Union

from tqdm import tqdm

PACKAGE_LOGGER = "montage_spline"

CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s"


class TqdmLoggingHandler(logging.StreamHandler):
    """Stream handler printing above active tqdm bars."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=self.stream)
            self.flush()
        except Exception:
            self.handleError(record)


def parse_level(level: Union[int, str]) -> int:
    """
    Numeric logging level from a level or its name.

    Raises:
        ValueError: If the name is not a standard level.
    """
    if isinstance(level, int):
        return level

    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown logging level '{level}'")
    return value


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    stream=None,
) -> logging.Logger:
    """
    Configures the logger for the 'montage_spline' namespace.

    Args:
        level: Logging level, numeric or by name (e.g. "DEBUG").
        log_file: Optional path to save logs to; always records DEBUG
            with module and line, whatever the console level.
        stream: Console stream, stderr by default so that stdout stays free.

    Returns:
        The configured package logger.
    """
    level = parse_level(level)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(min(level, logging.DEBUG) if log_file else level)

    # Calling again replaces the handlers instead of duplicating records
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = TqdmLoggingHandler(stream if stream is not None else sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")

    return logger
