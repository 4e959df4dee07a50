"""
Error Sinks and Progress Reporters

The engine never decides on its own how to surface a failure or how to
show progress: both are injected. Errors go to an ``ErrorSink``; progress
goes to an optional two-level ``ProgressReporter`` (level 0 counts files,
level 1 counts time-frame chunks inside the current file).
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol, runtime_checkable

from tqdm import tqdm

logger = logging.getLogger(__name__)

FILE_LEVEL = 0
FRAME_LEVEL = 1


@runtime_checkable
class ErrorSink(Protocol):
    """Receives user-facing error reports."""

    def report(self, title: str, message: str) -> None:
        ...


@runtime_checkable
class ProgressReporter(Protocol):
    """Best-effort hierarchical progress; never affects results."""

    def set_range(self, level: int, total: int) -> None:
        ...

    def advance(self, level: int, amount: int = 1) -> None:
        ...

    def finish(self) -> None:
        ...


class LoggingErrorSink:
    """Default sink: errors go to the package log."""

    def report(self, title: str, message: str) -> None:
        logger.error("%s: %s", title, message)


class CollectingErrorSink:
    """
    Keeps every report in memory.

    Examples
    --------
    >>> sink = CollectingErrorSink()
    >>> sink.report("Interpolation", "Missing file")
    >>> sink.messages
    [('Interpolation', 'Missing file')]
    """

    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def report(self, title: str, message: str) -> None:
        self.messages.append((title, message))

    def __len__(self) -> int:
        return len(self.messages)


class TqdmProgress:
    """
    Two progress bars, one per level.

    ``advance`` may be called from worker threads; updates are serialized.
    """

    def __init__(self, disable: bool = False):
        self._disable = disable
        self._bars: dict[int, tqdm] = {}
        self._lock = threading.Lock()

    def set_range(self, level: int, total: int) -> None:
        with self._lock:
            bar = self._bars.pop(level, None)
            if bar is not None:
                bar.close()
            self._bars[level] = tqdm(
                total=total,
                position=level,
                leave=level == FILE_LEVEL,
                desc="Files" if level == FILE_LEVEL else "Frames",
                disable=self._disable,
            )

    def advance(self, level: int, amount: int = 1) -> None:
        with self._lock:
            bar = self._bars.get(level)
            if bar is not None:
                bar.update(amount)

    def finish(self) -> None:
        with self._lock:
            for bar in self._bars.values():
                bar.close()
            self._bars.clear()
