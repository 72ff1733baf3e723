"""Report-side exports: chart CSV, download names, mineral probability bars."""

from __future__ import annotations

import re
from collections.abc import Sequence

from geoprospector.models.report import ChartPoint, MineralProbability, Report

CHART_CSV_HEADER = "depth_m,resistivity_ohmm,magnetic_susceptibility_si"
DEFAULT_EXPORT_NAME = "geophysical_data.csv"


def _format_number(value: float) -> str:
    # 120.0 -> "120", 0.0031 -> "0.0031"
    if value.is_integer():
        return str(int(value))
    return repr(value)


def chart_to_csv(points: Sequence[ChartPoint]) -> str:
    rows = [
        ",".join(
            _format_number(v) for v in (p.depth, p.resistivity, p.magnetic_susceptibility)
        )
        for p in points
    ]
    return "\n".join([CHART_CSV_HEADER, *rows])


def export_filename(report: Report | None) -> str:
    if report is None:
        return DEFAULT_EXPORT_NAME
    stem = re.sub(r"\s+", "_", report.title)
    return f"{stem}_data.csv"


def mineral_probabilities(report: Report) -> list[MineralProbability]:
    """Illustrative per-mineral bar heights, stable for a given mineral name."""
    return [
        MineralProbability(name=m, probability=60 + sum(ord(ch) for ch in m) % 35)
        for m in report.mineral_potential
    ]
