"""Prompt templates and payload builders per task.

Every builder is deterministic: the same target, boundary and filters give
byte-identical instructions (coordinates go through ``format_for_prompt``).
"""

from __future__ import annotations

from collections.abc import Sequence

from geoprospector.geo.primitives import format_for_prompt, is_enforceable
from geoprospector.models.geo import Coordinate, Target
from geoprospector.models.llm import ChatTurn, PromptPayload

# Field name → semantic type. The extractor validates model output against this.
REPORT_FIELDS: dict[str, str] = {
    "title": "string: project title",
    "location": "string: location description",
    "geologicalSummary": "string: detailed geological summary",
    "mineralPotential": "array of strings: minerals with potential",
    "nearbyProjects": "array of strings: nearby mining projects",
    "recommendations": "string: exploration recommendations",
    "riskAssessment": "string: geological and operational risks",
    "sources": "array of strings: URLs of sources found via search",
    "rawMarkdown": "string: full markdown version of the report including all sections",
}

CHART_SCHEMA: dict = {
    "title": "borehole_log",
    "description": "Simulated borehole log or depth sounding.",
    "type": "object",
    "properties": {
        "points": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "depth": {"type": "number", "description": "metres, incrementing"},
                    "resistivity": {"type": "number", "description": "Ohm-m"},
                    "magneticSusceptibility": {"type": "number", "description": "SI units"},
                },
                "required": ["depth", "resistivity", "magneticSusceptibility"],
            },
        }
    },
    "required": ["points"],
}

_REPORT_TEMPLATE = """Perform a comprehensive geological and geophysical evaluation for a mining project at {location_context}.
{area_prompt}{focus_prompt}
You are simulating an advanced GeoAI pipeline.
1. ACT AS A SENIOR GEOLOGIST.
2. Use web search to find real geological data, active mining projects, and stratigraphy for this specific region (national geological surveys, mineral resource departments, USGS or local surveys).
3. SIMULATE the results of analyzing Sentinel-2 spectral data and airborne magnetic surveys for this area. What likely anomalies would exist here based on the known regional geology?
4. Structure the report as a professional "Preliminary Economic Assessment" (PEA) chapter.

CRITICAL: Output PURE JSON text. Do NOT wrap it in markdown code fences.
The JSON object must have exactly these fields:
{schema}"""

_BOUNDARY_CLAUSE = (
    ". \nANALYSIS BOUNDARY: The analysis MUST be strictly focused within the polygon "
    "defined by these coordinates: {vertices}."
)

_AREA_PROMPT = (
    "Evaluate the geological continuity and structural containment within this "
    "specific polygonal boundary.\n"
)

_FOCUS_PROMPT = (
    "TARGET COMMODITY: Focus the evaluation on {minerals}. Prioritise deposit models, "
    "indicator minerals and pathfinder anomalies relevant to it.\n"
)

_CHART_TEMPLATE = """Generate {count} data points representing a simulated borehole log or depth sounding at {coords}.
Each point has:
- depth (meters, incrementing from the surface)
- resistivity (Ohm-m, realistic values for the likely geology)
- magneticSusceptibility (SI units)

Base the values on the likely geology of this real-world location."""

_DEEP_TEMPLATE = """Conduct an extremely deep, theoretical geological analysis of the area at {coords} ({label}).

Consider:
- Deep crustal structures and tectonic history.
- Hydrothermal fluid flow pathways.
- Potential for hidden/blind deposits under cover.
- Compare with similar geological settings globally.

Provide a highly technical, dense geological treatise."""

_QUICK_SCAN_TEMPLATE = (
    "Provide a 1-sentence quick geological summary of the area at coordinates {coords}. "
    "Fast response needed."
)

_NEARBY_TEMPLATE = """List active mining operations or significant geological sites near latitude {lat}, longitude {lng}.
Answer as a bulleted list, one site per line, formatted "- [Site name](URL)" when a source URL is known and "- Site name" otherwise."""

_CHAT_SYSTEM = """You are GeoProspector's field assistant: a senior exploration geologist helping an operator interpret targets, geophysics, satellite imagery and mining reports.
Be concise and technical. When the operator shares an image (core photo, outcrop, map), describe what is geologically relevant in it before answering."""


def describe_schema(fields: dict[str, str]) -> str:
    return "\n".join(f'- "{name}": {kind}' for name, kind in fields.items())


def format_boundary(boundary: Sequence[Coordinate]) -> str:
    return ", ".join(f"[{format_for_prompt(p)}]" for p in boundary)


def describe_target(target: Target, location_label: str = "") -> str:
    coords = format_for_prompt(target.point)
    if location_label:
        return f"coordinates: {coords} ({location_label})"
    return f"coordinates: {coords}"


def build_report_prompt(
    target: Target,
    boundary: Sequence[Coordinate] | None = None,
    mineral_focus: str | None = None,
    location_label: str = "",
) -> PromptPayload:
    """Full exploration report request (search grounded, schema described in text)."""
    if boundary is None:
        boundary = target.boundary

    location_context = describe_target(target, location_label)
    area_prompt = ""
    if is_enforceable(boundary):
        location_context += _BOUNDARY_CLAUSE.format(vertices=format_boundary(boundary))
        area_prompt = _AREA_PROMPT

    focus = (mineral_focus or "").strip()
    focus_prompt = _FOCUS_PROMPT.format(minerals=focus) if focus else ""

    instructions = _REPORT_TEMPLATE.format(
        location_context=location_context,
        area_prompt=area_prompt,
        focus_prompt=focus_prompt,
        schema=describe_schema(REPORT_FIELDS),
    )
    return PromptPayload(task="report", instructions=instructions, grounded=True)


def build_chart_prompt(point: Coordinate, count: int = 20) -> PromptPayload:
    return PromptPayload(
        task="chart",
        instructions=_CHART_TEMPLATE.format(count=count, coords=format_for_prompt(point)),
        output_schema=CHART_SCHEMA,
    )


def build_deep_prompt(point: Coordinate, location_label: str = "") -> PromptPayload:
    return PromptPayload(
        task="deep",
        instructions=_DEEP_TEMPLATE.format(coords=format_for_prompt(point), label=location_label),
    )


def build_quick_scan_prompt(point: Coordinate) -> PromptPayload:
    return PromptPayload(
        task="quick_scan",
        instructions=_QUICK_SCAN_TEMPLATE.format(coords=format_for_prompt(point)),
    )


def build_nearby_prompt(point: Coordinate) -> PromptPayload:
    return PromptPayload(
        task="nearby",
        instructions=_NEARBY_TEMPLATE.format(lat=f"{point.lat:.5f}", lng=f"{point.lng:.5f}"),
        grounded=True,
    )


def build_chat_prompt(
    history: Sequence[ChatTurn],
    message: str,
    image_base64: str | None = None,
) -> PromptPayload:
    text = f"Analyze this image: {message}" if image_base64 else message
    return PromptPayload(
        task="chat",
        instructions=text,
        system=_CHAT_SYSTEM,
        history=list(history),
        image_base64=image_base64,
    )


def get_all_templates() -> dict[str, str]:
    return {
        "report": _REPORT_TEMPLATE,
        "chart": _CHART_TEMPLATE,
        "deep": _DEEP_TEMPLATE,
        "quick_scan": _QUICK_SCAN_TEMPLATE,
        "nearby": _NEARBY_TEMPLATE,
        "chat": _CHAT_SYSTEM,
    }
