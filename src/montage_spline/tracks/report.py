"""
Processing Report

Human-readable ``.vrb`` text file written next to each interpolated output,
recording the input and output files, both montages, the landmarks, the
coregistration and the interpolation method.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from montage_spline.geometry.constants import REPORT_EXTENSION

LABEL_WIDTH = 32


def report_path_for(output_path: str | Path) -> Path:
    """``out.npz`` -> ``out.npz.vrb``"""
    output_path = Path(output_path)
    return output_path.with_name(f"{output_path.name}.{REPORT_EXTENSION}")


@dataclass
class ProcessingReport:
    """
    Line-oriented report builder.

    Examples
    --------
    >>> report = ProcessingReport("Tracks Interpolation")
    >>> report.topic("Files:")
    >>> report.put("Input file:", "a.npz")
    >>> "Input file:" in report.render()
    True
    """

    title: str
    lines: list[str] = field(default_factory=list)

    def topic(self, name: str) -> None:
        self.lines.append("")
        self.lines.append(name)
        self.lines.append("-" * len(name))

    def put(self, label: str, value: object = "") -> None:
        self.lines.append(f"{label:<{LABEL_WIDTH}} {value}".rstrip())

    def blank(self) -> None:
        self.lines.append("")

    def render(self) -> str:
        header = [self.title, "=" * len(self.title)]
        return "\n".join(header + self.lines) + "\n"

    def write(self, path: str | Path) -> Path:
        path = Path(path)
        path.write_text(self.render(), encoding="utf-8")
        return path
