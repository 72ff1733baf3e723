"""Shared test fixtures. No test talks to a real model."""

from __future__ import annotations

import asyncio
import json

import pytest

from geoprospector.config import Settings
from geoprospector.engine.orchestrator import AnalysisOrchestrator
from geoprospector.models.geo import Coordinate
from geoprospector.models.llm import CallProfile, GatewayResult, PromptPayload


REPORT_JSON = json.dumps({
    "title": "Bushveld Platinum Prospect",
    "location": "Western Limb, Bushveld Complex, South Africa",
    "geologicalSummary": "Layered mafic intrusion hosting the Merensky Reef and UG2 chromitite.",
    "mineralPotential": ["Platinum", "Palladium", "Chromite"],
    "nearbyProjects": ["Mogalakwena", "Impala Rustenburg"],
    "recommendations": "Infill drilling along strike of the UG2 layer.",
    "riskAssessment": "Potholes and faulting disrupt reef continuity.",
    "sources": ["https://www.geoscience.org.za/", "https://www.usgs.gov/"],
    "rawMarkdown": "# Bushveld Platinum Prospect\n\nLayered mafic intrusion.",
})

CHART_POINTS = [
    {"depth": float(i * 10), "resistivity": 100.0 + i * 5.5, "magneticSusceptibility": 0.001 * (i + 1)}
    for i in range(20)
]

CHART_JSON = json.dumps({"points": CHART_POINTS})

NEARBY_TEXT = """Here are sites near the target:
- [Mogalakwena Mine](https://www.angloamericanplatinum.com/mogalakwena)
- Impala Rustenburg
Some closing remark."""

QUICK_SCAN_TEXT = "Layered mafic-ultramafic intrusion with PGM-bearing reefs."

DEEP_TEXT = "Deep crustal magma staging beneath the Transvaal basin..."

TRIANGLE = [
    Coordinate(lat=1.0, lng=1.0),
    Coordinate(lat=1.0, lng=2.0),
    Coordinate(lat=2.0, lng=1.5),
]


class FakeGateway:
    """Scripted gateway keyed by payload task.

    ``responses`` values are text or a full GatewayResult; ``errors`` values
    are raised instead; ``gates`` hold a call until the event is set.
    """

    configured = True

    def __init__(
        self,
        responses: dict[str, object] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.responses = {
            "report": REPORT_JSON,
            "chart": CHART_JSON,
            "quick_scan": QUICK_SCAN_TEXT,
            "nearby": NEARBY_TEXT,
            "deep": DEEP_TEXT,
            "chat": "Looks like a chromitite seam.",
        }
        self.responses.update(responses or {})
        self.errors = errors or {}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[CallProfile, PromptPayload]] = []

    def tasks_called(self) -> list[str]:
        return [payload.task for _, payload in self.calls]

    async def invoke(self, profile: CallProfile, payload: PromptPayload) -> GatewayResult:
        self.calls.append((profile, payload))
        gate = self.gates.get(payload.task)
        if gate is not None:
            await gate.wait()
        if payload.task in self.errors:
            raise self.errors[payload.task]
        response = self.responses.get(payload.task, "")
        if isinstance(response, GatewayResult):
            return response
        return GatewayResult(profile=profile, text=str(response))


def make_settings(**overrides) -> Settings:
    values = {"anthropic_api_key": "", "stage_delays_ms": [0, 0, 0, 0]}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def orchestrator(fake_gateway: FakeGateway, test_settings: Settings) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(fake_gateway, test_settings)


@pytest.fixture
def triangle() -> list[Coordinate]:
    return list(TRIANGLE)
