"""POST /api/analysis starts a run; GET returns the snapshot, an SSE stream and the chart export."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncGenerator
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse, StreamingResponse

from geoprospector.dependencies import get_orchestrator
from geoprospector.engine.orchestrator import AnalysisOrchestrator
from geoprospector.models.requests import AnalysisRequest
from geoprospector.models.responses import RunSnapshot
from geoprospector.reporting import chart_to_csv, export_filename

router = APIRouter()

_POLL_INTERVAL_S = 0.25


def _default_label(orchestrator: AnalysisOrchestrator) -> str:
    if orchestrator.selection.area_enforced:
        return "Plotted Polygon Area"
    return "Selected Coordinate Point"


@router.post("/analysis", response_model=RunSnapshot, status_code=202)
async def start_analysis(
    req: AnalysisRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> RunSnapshot:
    run = orchestrator.start_analysis(
        location_label=req.location_label.strip() or _default_label(orchestrator),
        use_deep_reasoning=req.use_deep_reasoning,
        mineral_focus=req.mineral_focus,
        map_snapshot=req.map_snapshot,
    )
    return RunSnapshot.from_run(run)


@router.get("/analysis", response_model=RunSnapshot)
async def get_analysis(orchestrator: AnalysisOrchestrator = Depends(get_orchestrator)) -> RunSnapshot:
    return RunSnapshot.from_run(orchestrator.current)


async def _stream_run(orchestrator: AnalysisOrchestrator) -> AsyncGenerator[str, None]:
    """Emit a snapshot whenever the current run changes, until it settles."""
    run_id = orchestrator.current.run_id
    last_version = -1
    while True:
        run = orchestrator.current
        if run.run_id != run_id:
            data = json.dumps({"type": "superseded", "runId": run.run_id})
            yield f"event: superseded\ndata: {data}\n\n"
            break
        if run.version != last_version:
            last_version = run.version
            snapshot = RunSnapshot.from_run(run).model_dump(mode="json", by_alias=True)
            yield f"event: status\ndata: {json.dumps(snapshot)}\n\n"
        if run.settled or run.run_id == 0:
            break
        await asyncio.sleep(_POLL_INTERVAL_S)

    yield f"event: done\ndata: {json.dumps({'type': 'done'})}\n\n"


@router.get("/analysis/stream")
async def stream_analysis(orchestrator: AnalysisOrchestrator = Depends(get_orchestrator)) -> StreamingResponse:
    return StreamingResponse(
        _stream_run(orchestrator),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/analysis/chart.csv", response_class=PlainTextResponse)
async def export_chart(orchestrator: AnalysisOrchestrator = Depends(get_orchestrator)) -> PlainTextResponse:
    run = orchestrator.current
    if not run.chart_data:
        raise HTTPException(status_code=404, detail="no chart data for the current run")
    return PlainTextResponse(
        chart_to_csv(run.chart_data),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(export_filename(run.report))}"},
    )
