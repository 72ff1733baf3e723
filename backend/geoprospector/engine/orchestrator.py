"""Analysis orchestrator: status pacing, fan-out/fan-in of model calls, run scoping.

One run per ``start_analysis`` call:

- Side calls (quick scan, nearby sites) go out immediately and write their
  own fields whenever they land. Their failures become empty results.
- Staged statuses advance on timers, independent of any call.
- At ANALYZING_AI the report and chart calls (and the deep pass when
  requested) go out together. Report + chart are committed only after both
  settle; either failing ends the run in ERROR. The deep pass is awaited
  afterwards and can only leave its field unset.

Starting a new run does not cancel the old one's calls. Every write names
its run id and is dropped when that run is no longer current.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, Protocol

from geoprospector.config import Settings, settings
from geoprospector.engine.run import AnalysisRun
from geoprospector.engine.selection import TargetSelection
from geoprospector.engine.status import STAGED_SEQUENCE, AnalysisStatus, can_transition
from geoprospector.geo.primitives import tile_snapshot_url
from geoprospector.llm.extractor import (
    ExtractionContext,
    ExtractionResult,
    extract,
    parse_chart_points,
    parse_nearby_places,
)
from geoprospector.llm.gateway import GatewayError
from geoprospector.llm.model_router import get_profile_for_task
from geoprospector.llm.prompts import (
    build_chart_prompt,
    build_deep_prompt,
    build_nearby_prompt,
    build_quick_scan_prompt,
    build_report_prompt,
)
from geoprospector.models.geo import Target
from geoprospector.models.llm import CallProfile, GatewayResult, PromptPayload
from geoprospector.models.report import ChartPoint, NearbyPlace

logger = logging.getLogger(__name__)

FAILURE_NOTICE = "Geological Analysis Error."
SCANNING_PLACEHOLDER = "Scanning spectral signatures..."
NO_DATA_TEXT = "No data."


class Gateway(Protocol):
    async def invoke(self, profile: CallProfile, payload: PromptPayload) -> GatewayResult: ...


class AnalysisOrchestrator:
    """Owns the target selection and the current run. Lives on one event loop."""

    def __init__(self, gateway: Gateway, config: Settings | None = None) -> None:
        self.gateway = gateway
        self.config = config or settings
        self.selection = TargetSelection(max_vertices=self.config.max_boundary_vertices)
        self._run = AnalysisRun()
        self._next_run_id = 1
        self._drivers: dict[int, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def current(self) -> AnalysisRun:
        return self._run

    # --- Run trigger ---

    def start_analysis(
        self,
        location_label: str,
        use_deep_reasoning: bool = False,
        mineral_focus: str = "",
        map_snapshot: str | None = None,
    ) -> AnalysisRun:
        """Begin a new run. Must be called from the running event loop."""
        target = self.selection.resolve()
        run = AnalysisRun(
            run_id=self._next_run_id,
            location_label=location_label,
            use_deep_reasoning=use_deep_reasoning,
            mineral_focus=mineral_focus.strip(),
            target=target,
        )
        self._next_run_id += 1
        # Previous report, chart data and deep text go with the old run
        self._run = run
        self._advance(run.run_id, AnalysisStatus.UPLOADING)
        logger.info(
            "Run %d started: %s at %.5f, %.5f (area=%s, deep=%s, focus=%r)",
            run.run_id,
            location_label,
            target.point.lat,
            target.point.lng,
            target.is_area,
            use_deep_reasoning,
            run.mineral_focus,
        )

        self._spawn(self._quick_scan_side_call(run.run_id, target))
        self._spawn(self._nearby_side_call(run.run_id, target))
        driver = self._spawn(self._drive(run.run_id, target, map_snapshot))
        self._drivers[run.run_id] = driver
        driver.add_done_callback(lambda _, rid=run.run_id: self._drivers.pop(rid, None))
        return run

    async def wait_for_run(self, run_id: int | None = None) -> AnalysisRun:
        """Wait until the run's required work settles. Side calls may still be pending."""
        rid = run_id if run_id is not None else self._run.run_id
        driver = self._drivers.get(rid)
        if driver is not None:
            await asyncio.gather(driver, return_exceptions=True)
        return self._run

    async def drain(self) -> None:
        """Wait for every in-flight task, including side calls of superseded runs."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def quick_scan(self) -> str:
        """Standalone quick scan of the current target, outside the status machine."""
        run_id = self._run.run_id
        target = self.selection.resolve()
        self._commit(run_id, quick_scan=SCANNING_PLACEHOLDER)
        text = await self._scan(target)
        self._commit(run_id, quick_scan=text)
        return text

    # --- State writes ---

    def _is_current(self, run_id: int) -> bool:
        if run_id != self._run.run_id:
            logger.debug("Dropping write from superseded run %d (current %d)", run_id, self._run.run_id)
            return False
        return True

    def _advance(self, run_id: int, status: AnalysisStatus) -> bool:
        if not self._is_current(run_id):
            return False
        run = self._run
        if not can_transition(run.status, status):
            logger.debug("Run %d: ignoring %s -> %s", run_id, run.status.value, status.value)
            return False
        run.status = status
        run.status_history.append(status)
        run.version += 1
        logger.info("Run %d: %s", run_id, status.value)
        return True

    def _commit(self, run_id: int, **fields: Any) -> bool:
        if not self._is_current(run_id):
            return False
        for name, value in fields.items():
            setattr(self._run, name, value)
        self._run.version += 1
        return True

    def _fail(self, run_id: int, error: BaseException) -> None:
        detail = error.message if isinstance(error, GatewayError) else str(error)
        logger.error("Run %d failed: %s", run_id, detail)
        if self._commit(run_id, error=f"{FAILURE_NOTICE} {detail}".strip()):
            self._advance(run_id, AnalysisStatus.ERROR)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _stage_delays(self) -> list[float]:
        delays = list(self.config.stage_delays_ms)[: len(STAGED_SEQUENCE)]
        delays += [0] * (len(STAGED_SEQUENCE) - len(delays))
        return [max(d, 0) / 1000.0 for d in delays]

    # --- Required path ---

    async def _drive(self, run_id: int, target: Target, map_snapshot: str | None) -> None:
        for status, delay in zip(STAGED_SEQUENCE, self._stage_delays()):
            await asyncio.sleep(delay)
            if not self._advance(run_id, status):
                # Superseded before the calls went out
                return

        run = self._run
        context = ExtractionContext(
            location_label=run.location_label,
            target=target.point,
            target_minerals=run.mineral_focus or None,
            boundary=target.boundary,
            center=target.point,
            map_snapshot=map_snapshot or tile_snapshot_url(target.point, self.config.snapshot_tile_zoom),
        )

        deep_task = None
        if run.use_deep_reasoning:
            deep_task = self._spawn(self._deep_pass(target, run.location_label))

        report_outcome, chart_outcome = await asyncio.gather(
            self._generate_report(target, run.mineral_focus, context),
            self._generate_chart(target),
            return_exceptions=True,
        )
        for outcome in (report_outcome, chart_outcome):
            if isinstance(outcome, BaseException):
                if deep_task is not None:
                    deep_task.cancel()
                self._fail(run_id, outcome)
                return

        extraction: ExtractionResult = report_outcome
        if extraction.degraded:
            logger.warning("Run %d: report fell back to unstructured text", run_id)
        self._commit(
            run_id,
            report=extraction.report,
            chart_data=chart_outcome,
            extraction_outcome=extraction.outcome,
        )

        if deep_task is not None:
            deep_text = await deep_task
            if deep_text is not None:
                self._commit(
                    run_id,
                    deep_analysis=deep_text,
                    report=extraction.report.model_copy(update={"is_deep_analysis": True}),
                )

        self._advance(run_id, AnalysisStatus.COMPLETE)

    async def _generate_report(
        self, target: Target, mineral_focus: str, context: ExtractionContext
    ) -> ExtractionResult:
        payload = build_report_prompt(target, mineral_focus=mineral_focus, location_label=context.location_label)
        result = await self.gateway.invoke(get_profile_for_task(payload.task), payload)
        return extract(result.text, result.provenance, context)

    async def _generate_chart(self, target: Target) -> list[ChartPoint]:
        payload = build_chart_prompt(target.point, self.config.chart_point_count)
        profile = get_profile_for_task(payload.task)
        result = await self.gateway.invoke(profile, payload)
        try:
            points = parse_chart_points(result.text)
        except ValueError as e:
            raise GatewayError(profile, f"malformed chart data: {e}") from e
        if len(points) != self.config.chart_point_count:
            logger.info("Chart call returned %d points (asked for %d)", len(points), self.config.chart_point_count)
        return points

    async def _deep_pass(self, target: Target, location_label: str) -> str | None:
        payload = build_deep_prompt(target.point, location_label)
        try:
            result = await self.gateway.invoke(get_profile_for_task(payload.task), payload)
        except Exception as e:
            logger.warning("Deep reasoning pass failed, leaving it unset: %s", e)
            return None
        return result.text or None

    # --- Side calls ---

    async def _side_text(self, task: str, payload: PromptPayload) -> str | None:
        try:
            result = await self.gateway.invoke(get_profile_for_task(task), payload)
        except Exception as e:
            logger.warning("Side call %s failed: %s", task, e)
            return None
        return result.text

    async def _scan(self, target: Target) -> str:
        """Empty string on failure, a fixed notice when the model answers with nothing."""
        text = await self._side_text("quick_scan", build_quick_scan_prompt(target.point))
        if text is None:
            return ""
        return text if text.strip() else NO_DATA_TEXT

    async def _quick_scan_side_call(self, run_id: int, target: Target) -> None:
        text = await self._scan(target)
        self._commit(run_id, quick_scan=text)

    async def _nearby_side_call(self, run_id: int, target: Target) -> None:
        text = await self._side_text("nearby", build_nearby_prompt(target.point))
        places: list[NearbyPlace] = parse_nearby_places(text) if text else []
        self._commit(run_id, nearby_places=places)
