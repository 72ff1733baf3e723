"""Tests for the analysis orchestrator, driven by the scripted FakeGateway."""

from __future__ import annotations

import asyncio

import pytest

from geoprospector.engine.orchestrator import (
    FAILURE_NOTICE,
    NO_DATA_TEXT,
    SCANNING_PLACEHOLDER,
    AnalysisOrchestrator,
)
from geoprospector.engine.status import AnalysisStatus
from geoprospector.geo.primitives import tile_snapshot_url
from geoprospector.llm.gateway import GatewayError
from geoprospector.models.llm import CallProfile, GatewayResult
from tests.conftest import (
    DEEP_TEXT,
    QUICK_SCAN_TEXT,
    REPORT_JSON,
    TRIANGLE,
    FakeGateway,
    make_settings,
)

S = AnalysisStatus

FULL_HISTORY = [
    S.UPLOADING,
    S.FETCHING_SATELLITE,
    S.PROCESSING_GEOPHYSICS,
    S.SCRAPING_DATA,
    S.ANALYZING_AI,
    S.COMPLETE,
]


def run_to_end(orchestrator: AnalysisOrchestrator, **kwargs):
    """Start one run and wait for every task it spawned."""

    async def scenario():
        run = orchestrator.start_analysis(kwargs.pop("location_label", "Rustenburg"), **kwargs)
        await orchestrator.wait_for_run(run.run_id)
        await orchestrator.drain()
        return run

    return asyncio.run(scenario())


async def _until(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def _terminal_count(history) -> int:
    return sum(1 for s in history if s.is_terminal)


class TestHappyPath:
    def test_complete(self, orchestrator, fake_gateway):
        run = run_to_end(orchestrator)
        assert run.status == S.COMPLETE
        assert run.status_history == FULL_HISTORY
        assert run.report.title == "Bushveld Platinum Prospect"
        assert len(run.chart_data) == 20
        assert run.extraction_outcome == "parsed"
        assert run.quick_scan == QUICK_SCAN_TEXT
        assert [p.title for p in run.nearby_places] == ["Mogalakwena Mine", "Impala Rustenburg"]
        assert run.deep_analysis is None
        assert run.error is None

    def test_profiles_per_call(self, orchestrator, fake_gateway):
        run_to_end(orchestrator)
        profiles = {payload.task: profile for profile, payload in fake_gateway.calls}
        assert profiles == {
            "quick_scan": CallProfile.FAST,
            "nearby": CallProfile.FAST,
            "report": CallProfile.DEFAULT,
            "chart": CallProfile.STRUCTURED,
        }

    def test_caller_fields_attached(self, orchestrator):
        run = run_to_end(orchestrator, mineral_focus=" Platinum ")
        report = run.report
        assert report.target_minerals == "Platinum"
        assert report.center == run.center
        assert report.boundary is None
        assert report.map_snapshot == tile_snapshot_url(run.center, 14)

    def test_supplied_snapshot_wins(self, orchestrator):
        run = run_to_end(orchestrator, map_snapshot="data:image/png;base64,AAAA")
        assert run.report.map_snapshot == "data:image/png;base64,AAAA"

    def test_area_target(self, orchestrator, fake_gateway):
        orchestrator.selection.replace_boundary(list(TRIANGLE))
        run = run_to_end(orchestrator)
        assert run.target.is_area
        assert run.report.boundary == TRIANGLE
        assert run.center.lat == pytest.approx(4.0 / 3.0)
        report_payload = next(p for _, p in fake_gateway.calls if p.task == "report")
        assert "ANALYSIS BOUNDARY" in report_payload.instructions

    def test_provenance_merged(self, test_settings):
        gateway = FakeGateway(responses={
            "report": GatewayResult(
                profile=CallProfile.DEFAULT,
                text=REPORT_JSON,
                provenance=["https://www.usgs.gov/", "https://mrd.example.org/"],
            ),
        })
        run = run_to_end(AnalysisOrchestrator(gateway, test_settings))
        assert run.report.sources == [
            "https://www.geoscience.org.za/",
            "https://www.usgs.gov/",
            "https://mrd.example.org/",
        ]

    def test_unstructured_report_still_completes(self, test_settings):
        gateway = FakeGateway(responses={"report": "not json at all"})
        run = run_to_end(AnalysisOrchestrator(gateway, test_settings), location_label="Rustenburg")
        assert run.status == S.COMPLETE
        assert run.extraction_outcome == "fallback"
        assert run.report.raw_markdown == "not json at all"
        assert run.report.title == "Exploration Report: Rustenburg"


class TestDeepReasoning:
    def test_deep_pass(self, orchestrator, fake_gateway):
        run = run_to_end(orchestrator, use_deep_reasoning=True)
        assert run.status == S.COMPLETE
        assert run.deep_analysis == DEEP_TEXT
        assert run.report.is_deep_analysis
        assert (CallProfile.DEEP, "deep") in [(p, payload.task) for p, payload in fake_gateway.calls]

    def test_deep_failure_is_not_fatal(self, test_settings):
        gateway = FakeGateway(errors={"deep": GatewayError(CallProfile.DEEP, "overloaded")})
        run = run_to_end(AnalysisOrchestrator(gateway, test_settings), use_deep_reasoning=True)
        assert run.status == S.COMPLETE
        assert run.deep_analysis is None
        assert not run.report.is_deep_analysis

    def test_empty_deep_text_left_unset(self, test_settings):
        gateway = FakeGateway(responses={"deep": ""})
        run = run_to_end(AnalysisOrchestrator(gateway, test_settings), use_deep_reasoning=True)
        assert run.deep_analysis is None


class TestFailures:
    def test_report_failure(self, test_settings):
        gateway = FakeGateway(errors={"report": GatewayError(CallProfile.DEFAULT, "rate limited")})
        run = run_to_end(AnalysisOrchestrator(gateway, test_settings))
        assert run.status == S.ERROR
        # Chart succeeded but required results are all-or-nothing
        assert run.chart_data == []
        assert run.report is None
        assert run.error.startswith(FAILURE_NOTICE)
        assert "rate limited" in run.error
        assert run.status_history[-1] == S.ERROR
        assert _terminal_count(run.status_history) == 1

    def test_chart_failure(self, test_settings):
        gateway = FakeGateway(errors={"chart": GatewayError(CallProfile.STRUCTURED, "bad schema")})
        run = run_to_end(AnalysisOrchestrator(gateway, test_settings))
        assert run.status == S.ERROR
        assert run.report is None

    def test_malformed_chart(self, test_settings):
        gateway = FakeGateway(responses={"chart": "depth,resistivity\n1,2"})
        run = run_to_end(AnalysisOrchestrator(gateway, test_settings))
        assert run.status == S.ERROR
        assert "malformed chart data" in run.error

    def test_report_failure_with_deep(self, test_settings):
        gateway = FakeGateway(errors={"report": GatewayError(CallProfile.DEFAULT, "boom")})
        run = run_to_end(AnalysisOrchestrator(gateway, test_settings), use_deep_reasoning=True)
        assert run.status == S.ERROR
        assert run.deep_analysis is None

    def test_side_call_failures_swallowed(self, test_settings):
        gateway = FakeGateway(errors={
            "quick_scan": RuntimeError("timeout"),
            "nearby": GatewayError(CallProfile.FAST, "timeout"),
        })
        run = run_to_end(AnalysisOrchestrator(gateway, test_settings))
        assert run.status == S.COMPLETE
        assert run.quick_scan == ""
        assert run.nearby_places == []


class TestRunScoping:
    def test_superseded_before_calls(self, orchestrator, fake_gateway):
        async def scenario():
            first = orchestrator.start_analysis("First")
            second = orchestrator.start_analysis("Second")
            await orchestrator.wait_for_run(second.run_id)
            await orchestrator.drain()
            return first, second

        first, second = asyncio.run(scenario())
        assert orchestrator.current is second
        assert second.status == S.COMPLETE
        assert first.status_history == [S.UPLOADING]
        assert fake_gateway.tasks_called().count("report") == 1
        assert first.quick_scan == ""

    def test_stale_results_dropped(self, test_settings):
        class SlowFirstReport(FakeGateway):
            """The first report call waits for ``release`` and returns a different title."""

            def __init__(self):
                super().__init__()
                self.release: asyncio.Event | None = None
                self.report_calls = 0

            async def invoke(self, profile, payload):
                if payload.task == "report":
                    self.report_calls += 1
                    if self.report_calls == 1:
                        self.calls.append((profile, payload))
                        await self.release.wait()
                        stale = REPORT_JSON.replace("Bushveld Platinum Prospect", "Stale Prospect")
                        return GatewayResult(profile=profile, text=stale)
                return await super().invoke(profile, payload)

        gateway = SlowFirstReport()
        orchestrator = AnalysisOrchestrator(gateway, test_settings)

        async def scenario():
            gateway.release = asyncio.Event()
            first = orchestrator.start_analysis("First")
            await _until(lambda: gateway.report_calls == 1)
            second = orchestrator.start_analysis("Second")
            await orchestrator.wait_for_run(second.run_id)
            gateway.release.set()
            await orchestrator.drain()
            return first, second

        first, second = asyncio.run(scenario())
        assert orchestrator.current is second
        assert second.report.title == "Bushveld Platinum Prospect"
        assert second.status_history == FULL_HISTORY
        assert first.report is None
        assert first.status == S.ANALYZING_AI

    def test_new_run_clears_previous_results(self, orchestrator):
        async def scenario():
            first = orchestrator.start_analysis("First")
            await orchestrator.wait_for_run(first.run_id)
            await orchestrator.drain()
            second = orchestrator.start_analysis("Second")
            snapshot = (second.report, second.chart_data, second.deep_analysis, second.status)
            await orchestrator.wait_for_run(second.run_id)
            await orchestrator.drain()
            return first, snapshot

        first, snapshot = asyncio.run(scenario())
        assert first.report is not None
        assert snapshot == (None, [], None, S.UPLOADING)

    def test_run_ids_increase(self, orchestrator):
        first = run_to_end(orchestrator)
        second = run_to_end(orchestrator)
        assert second.run_id == first.run_id + 1

    def test_finished_drivers_released(self, orchestrator):
        async def scenario():
            runs = [orchestrator.start_analysis(label) for label in ("First", "Second", "Third")]
            await orchestrator.wait_for_run(runs[-1].run_id)
            await orchestrator.drain()
            # Done callbacks run on the next loop iteration
            await asyncio.sleep(0)
            return runs

        runs = asyncio.run(scenario())
        assert orchestrator._drivers == {}
        assert runs[-1].status == S.COMPLETE


class TestQuickScan:
    def test_standalone(self, orchestrator):
        text = asyncio.run(orchestrator.quick_scan())
        assert text == QUICK_SCAN_TEXT
        assert orchestrator.current.quick_scan == QUICK_SCAN_TEXT
        assert orchestrator.current.status == S.IDLE

    def test_placeholder_while_pending(self, orchestrator, fake_gateway):
        async def scenario():
            fake_gateway.gates["quick_scan"] = asyncio.Event()
            task = asyncio.create_task(orchestrator.quick_scan())
            await _until(lambda: "quick_scan" in fake_gateway.tasks_called())
            pending = orchestrator.current.quick_scan
            fake_gateway.gates["quick_scan"].set()
            await task
            return pending

        assert asyncio.run(scenario()) == SCANNING_PLACEHOLDER

    def test_failure_gives_empty_text(self, test_settings):
        gateway = FakeGateway(errors={"quick_scan": RuntimeError("down")})
        orchestrator = AnalysisOrchestrator(gateway, test_settings)
        assert asyncio.run(orchestrator.quick_scan()) == ""

    def test_empty_answer_gives_notice(self, test_settings):
        gateway = FakeGateway(responses={"quick_scan": "  "})
        orchestrator = AnalysisOrchestrator(gateway, test_settings)
        assert asyncio.run(orchestrator.quick_scan()) == NO_DATA_TEXT
        assert orchestrator.current.quick_scan == NO_DATA_TEXT

    def test_empty_answer_during_run(self, test_settings):
        gateway = FakeGateway(responses={"quick_scan": ""})
        run = run_to_end(AnalysisOrchestrator(gateway, test_settings))
        assert run.status == S.COMPLETE
        assert run.quick_scan == NO_DATA_TEXT


def test_stage_delays_padded():
    orchestrator = AnalysisOrchestrator(FakeGateway(), make_settings(stage_delays_ms=[500]))
    assert orchestrator._stage_delays() == [0.5, 0.0, 0.0, 0.0]
