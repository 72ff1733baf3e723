"""API response models."""

from __future__ import annotations

from pydantic import Field

from geoprospector.engine.run import AnalysisRun
from geoprospector.engine.selection import TargetSelection
from geoprospector.engine.status import AnalysisStatus
from geoprospector.models.geo import Coordinate
from geoprospector.models.report import (
    CamelModel,
    ChartPoint,
    MineralProbability,
    NearbyPlace,
    Report,
)
from geoprospector.reporting import mineral_probabilities


class HealthResponse(CamelModel):
    status: str = "ok"
    version: str = "0.1.0"
    llm_configured: bool = False


class TargetResponse(CamelModel):
    point: Coordinate
    boundary: list[Coordinate] = Field(default_factory=list)
    use_boundary: bool = False
    area_enforced: bool = False
    self_intersecting: bool = False
    # What a run started now would be addressed at
    resolved_point: Coordinate

    @classmethod
    def from_selection(cls, selection: TargetSelection) -> TargetResponse:
        return cls(
            point=selection.point,
            boundary=list(selection.boundary),
            use_boundary=selection.use_boundary,
            area_enforced=selection.area_enforced,
            self_intersecting=selection.self_intersecting,
            resolved_point=selection.resolve().point,
        )


class BoundaryImportResponse(CamelModel):
    vertex_count: int
    rows_skipped: int = 0
    delimiter: str
    lat_column: int
    lng_column: int
    has_header: bool
    detected_by: str
    warnings: list[str] = Field(default_factory=list)
    target: TargetResponse


class RunSnapshot(CamelModel):
    run_id: int
    status: AnalysisStatus
    status_history: list[AnalysisStatus] = Field(default_factory=list)
    location_label: str = ""
    use_deep_reasoning: bool = False
    mineral_focus: str = ""
    center: Coordinate | None = None
    report: Report | None = None
    extraction_outcome: str | None = None
    chart_data: list[ChartPoint] = Field(default_factory=list)
    mineral_chart: list[MineralProbability] = Field(default_factory=list)
    deep_analysis: str | None = None
    quick_scan: str = ""
    nearby_places: list[NearbyPlace] = Field(default_factory=list)
    error: str | None = None
    version: int = 0

    @classmethod
    def from_run(cls, run: AnalysisRun) -> RunSnapshot:
        return cls(
            run_id=run.run_id,
            status=run.status,
            status_history=list(run.status_history),
            location_label=run.location_label,
            use_deep_reasoning=run.use_deep_reasoning,
            mineral_focus=run.mineral_focus,
            center=run.center,
            report=run.report,
            extraction_outcome=run.extraction_outcome,
            chart_data=list(run.chart_data),
            mineral_chart=mineral_probabilities(run.report) if run.report else [],
            deep_analysis=run.deep_analysis,
            quick_scan=run.quick_scan,
            nearby_places=list(run.nearby_places),
            error=run.error,
            version=run.version,
        )


class QuickScanResponse(CamelModel):
    text: str


class ChatResponse(CamelModel):
    answer: str
    ok: bool = True
