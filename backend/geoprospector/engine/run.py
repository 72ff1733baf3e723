"""AnalysisRun: the single mutable state object for one user-triggered run.

Results are written through the orchestrator, which checks the run id
before every write so a superseded run can never overwrite a newer one.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from geoprospector.engine.status import AnalysisStatus
from geoprospector.models.geo import Coordinate, Target
from geoprospector.models.report import ChartPoint, NearbyPlace, Report


@dataclass
class AnalysisRun:
    """State of one run. Run 0 is the idle placeholder before any run starts."""

    run_id: int = 0
    location_label: str = ""
    use_deep_reasoning: bool = False
    mineral_focus: str = ""
    target: Target | None = None
    started_at: float = field(default_factory=time.time)

    status: AnalysisStatus = AnalysisStatus.IDLE
    # Every status entered, in order (UPLOADING first for real runs)
    status_history: list[AnalysisStatus] = field(default_factory=list)

    # --- Required results (committed together at fan-in) ---
    report: Report | None = None
    chart_data: list[ChartPoint] = field(default_factory=list)
    # "parsed" | "fallback"
    extraction_outcome: str | None = None

    # --- Optional deep pass ---
    deep_analysis: str | None = None

    # --- Side calls, independent of status ---
    quick_scan: str = ""
    nearby_places: list[NearbyPlace] = field(default_factory=list)

    # User-visible failure notice when status is ERROR
    error: str | None = None

    # Bumped on every committed write; stream consumers poll it
    version: int = 0

    @property
    def center(self) -> Coordinate | None:
        return self.target.point if self.target is not None else None

    @property
    def settled(self) -> bool:
        return self.status.is_terminal
