"""Turn raw model text into validated records.

The report path never raises: output that doesn't fit the schema becomes a
fallback Report carrying the raw text verbatim, tagged ``fallback`` so the
caller can log it. Chart data is stricter: the structured profile promises
JSON, so a malformed payload is an error for the caller to handle.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ValidationError

from geoprospector.geo.primitives import format_for_prompt
from geoprospector.llm.prompts import REPORT_FIELDS
from geoprospector.models.geo import Coordinate
from geoprospector.models.report import ChartPoint, NearbyPlace, Report

logger = logging.getLogger(__name__)

FALLBACK_TEXT = "Analysis complete but formatting failed."

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")
_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")
_NUMBERED = re.compile(r"^\s*\d+[.)]")
_MD_LINK = re.compile(r"\[([^\]]+)\]\((https?://[^)\s]+)\)")
_BARE_URL = re.compile(r"https?://\S+")

# Array-typed report fields; null or missing reads as empty
_LIST_FIELDS = tuple(name for name, kind in REPORT_FIELDS.items() if kind.startswith("array"))


@dataclass(frozen=True)
class ExtractionContext:
    """What the caller knows about the request. Never guessed from model text."""

    location_label: str = ""
    target: Coordinate | None = None
    target_minerals: str | None = None
    boundary: Sequence[Coordinate] | None = None
    center: Coordinate | None = None
    map_snapshot: str | None = None
    is_deep_analysis: bool = False


class ExtractionResult(BaseModel):
    outcome: Literal["parsed", "fallback"]
    report: Report

    @property
    def degraded(self) -> bool:
        return self.outcome == "fallback"


def strip_fences(text: str) -> str:
    """Remove a markdown code fence wrapped around the payload."""
    stripped = _FENCE_OPEN.sub("", text.strip())
    stripped = _FENCE_CLOSE.sub("", stripped)
    return stripped.strip()


def merge_sources(*groups: Iterable[str]) -> list[str]:
    """Exact-string dedup across groups, first-seen order. Empty strings are dropped."""
    merged: dict[str, None] = {}
    for group in groups:
        for source in group:
            if source and source not in merged:
                merged[source] = None
    return list(merged)


def render_markdown(report: Report) -> str:
    lines = [f"# {report.title}", "", f"**Location:** {report.location}", ""]
    lines += ["## Geological Summary", "", report.geological_summary, ""]
    if report.mineral_potential:
        lines += ["## Mineral Potential", ""]
        lines += [f"- {m}" for m in report.mineral_potential]
        lines.append("")
    if report.nearby_projects:
        lines += ["## Nearby Projects", ""]
        lines += [f"- {p}" for p in report.nearby_projects]
        lines.append("")
    lines += ["## Recommendations", "", report.recommendations, ""]
    lines += ["## Risk Assessment", "", report.risk_assessment, ""]
    if report.sources:
        lines += ["## Sources", ""]
        lines += [f"- {s}" for s in report.sources]
    return "\n".join(lines).strip() + "\n"


def parse_report(raw: str) -> Report | None:
    """Strict parse into the report schema, or None.

    Null or absent array fields become empty lists and an absent
    ``rawMarkdown`` is rendered from the other fields; anything else that
    fails validation rejects the payload.
    """
    cleaned = strip_fences(raw)
    match = re.search(r"\{[\s\S]*\}", cleaned)
    if match:
        cleaned = match.group(0)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    # Caller-owned fields are dropped even if the model invents them
    fields = {k: v for k, v in data.items() if k in REPORT_FIELDS}
    for name in _LIST_FIELDS:
        if fields.get(name) is None:
            fields[name] = []
    if fields.get("rawMarkdown") is None:
        fields["rawMarkdown"] = ""
    try:
        report = Report.model_validate(fields)
    except ValidationError as e:
        logger.debug("Report JSON failed validation: %s", e)
        return None

    if not report.raw_markdown.strip():
        report.raw_markdown = render_markdown(report)
    return report


def fallback_report(raw: str, context: ExtractionContext) -> Report:
    text = raw if raw.strip() else FALLBACK_TEXT
    label = context.location_label or (format_for_prompt(context.target) if context.target else "Target Area")
    location = format_for_prompt(context.target) if context.target else label
    return Report(
        title=f"Exploration Report: {label}",
        location=location,
        geological_summary=text,
        recommendations="Review raw output.",
        risk_assessment="N/A",
        raw_markdown=text,
    )


def extract(
    raw: str,
    provenance: Sequence[str] = (),
    context: ExtractionContext | None = None,
) -> ExtractionResult:
    """Raw report text + grounding provenance → Report. Never raises."""
    ctx = context or ExtractionContext()

    report = parse_report(raw)
    outcome: Literal["parsed", "fallback"] = "parsed"
    if report is None:
        logger.warning("Report output did not match the schema (%d chars), using fallback", len(raw))
        report = fallback_report(raw, ctx)
        outcome = "fallback"

    report.sources = merge_sources(report.sources, provenance)

    report.target_minerals = ctx.target_minerals or None
    report.boundary = list(ctx.boundary) if ctx.boundary else None
    report.center = ctx.center
    report.map_snapshot = ctx.map_snapshot
    report.is_deep_analysis = ctx.is_deep_analysis

    return ExtractionResult(outcome=outcome, report=report)


def parse_chart_points(text: str) -> list[ChartPoint]:
    """Structured chart payload → points, in the order produced.

    Accepts ``{"points": [...]}`` or a bare array. Raises ValueError when
    the payload is not JSON or a point fails validation.
    """
    data = json.loads(strip_fences(text))
    if isinstance(data, dict):
        data = data.get("points")
    if not isinstance(data, list):
        raise ValueError("chart payload has no point array")
    try:
        return [ChartPoint.model_validate(item) for item in data]
    except ValidationError as e:
        raise ValueError(f"invalid chart point: {e}") from e


def parse_nearby_places(text: str) -> list[NearbyPlace]:
    """List-like lines of free text → places. Other lines are ignored."""
    places: list[NearbyPlace] = []
    for line in text.splitlines():
        if "- " not in line and not _NUMBERED.match(line):
            continue
        title = _LIST_MARKER.sub("", line, count=1).strip()
        uri = None

        link = _MD_LINK.search(title)
        if link:
            uri = link.group(2)
            title = _MD_LINK.sub(lambda m: m.group(1), title, count=1)
        else:
            bare = _BARE_URL.search(title)
            if bare:
                uri = bare.group(0).rstrip(".,;")
                title = _BARE_URL.sub("", title, count=1)

        title = title.replace("**", "").strip(" -:")
        if title:
            places.append(NearbyPlace(title=title, uri=uri))
    return places
