"""API request models."""

from __future__ import annotations

from pydantic import Field

from geoprospector.models.llm import ChatTurn
from geoprospector.models.report import CamelModel


class BoundaryModeRequest(CamelModel):
    enabled: bool = Field(..., description="Enforce the plotted area as the analysis boundary")


class BoundaryImportRequest(CamelModel):
    filename: str = Field(..., description="Original file name, must end in .csv")
    content: str = Field(..., description="Raw delimited text")


class AnalysisRequest(CamelModel):
    location_label: str = Field(default="", description="Operator's name for the target")
    use_deep_reasoning: bool = Field(default=False, description="Also run the deep-reasoning pass")
    mineral_focus: str = Field(default="", description="Commodity of interest, e.g. 'lithium'")
    map_snapshot: str | None = Field(default=None, description="Image reference of the live map")


class ChatRequest(CamelModel):
    message: str = Field(..., description="Operator's message")
    history: list[ChatTurn] = Field(default_factory=list, description="Previous turns")
    image_base64: str | None = Field(default=None, description="Optional JPEG, base64 encoded")
