"""Model gateway contract: call profiles, request payloads, normalised results."""

from __future__ import annotations

import enum
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


class CallProfile(str, enum.Enum):
    """Latency/capability tier. The request/response contract is the same for all."""

    FAST = "fast"
    DEFAULT = "default"
    DEEP = "deep"
    STRUCTURED = "structured"


class ChatTurn(BaseModel):
    role: Literal["user", "model"]
    text: str


class PromptPayload(BaseModel):
    """Everything the gateway needs to make one call."""

    task: str
    instructions: str
    # Retrieval grounding (web search) for provenance
    grounded: bool = False
    # Strict output schema; requires the structured profile
    output_schema: dict[str, Any] | None = None
    system: str | None = None
    history: list[ChatTurn] = Field(default_factory=list)
    image_base64: str | None = None

    @model_validator(mode="after")
    def _grounding_excludes_schema(self) -> PromptPayload:
        if self.grounded and self.output_schema is not None:
            raise ValueError("grounded calls cannot request schema-validated output")
        return self


class PlainResponse(BaseModel):
    kind: Literal["plain"] = "plain"
    text: str


class SearchGroundedResponse(BaseModel):
    kind: Literal["search_grounded"] = "search_grounded"
    text: str
    grounding_references: list[str] = Field(default_factory=list)


class StructuredResponse(BaseModel):
    kind: Literal["structured"] = "structured"
    text: str
    data: Any = None


GatewayResponse = PlainResponse | SearchGroundedResponse | StructuredResponse


class GatewayResult(BaseModel):
    """The only shape the rest of the pipeline sees."""

    profile: CallProfile
    text: str
    provenance: list[str] = Field(default_factory=list)
