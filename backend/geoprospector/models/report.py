"""Report data model: the structured output of an analysis run."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from geoprospector.models.geo import Coordinate


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Report(CamelModel):
    title: str
    location: str
    geological_summary: str
    mineral_potential: list[str] = Field(default_factory=list)
    nearby_projects: list[str] = Field(default_factory=list)
    recommendations: str
    risk_assessment: str
    sources: list[str] = Field(default_factory=list)
    raw_markdown: str

    # Stitched in by the caller, never read from model output
    target_minerals: str | None = None
    boundary: list[Coordinate] | None = None
    center: Coordinate | None = None
    map_snapshot: str | None = None
    is_deep_analysis: bool = False


class ChartPoint(CamelModel):
    depth: float = Field(..., ge=0.0)
    resistivity: float
    magnetic_susceptibility: float


class NearbyPlace(CamelModel):
    title: str
    uri: str | None = None


class MineralProbability(CamelModel):
    name: str
    probability: int
