"""POST /api/scan/quick: one-sentence scan of the current target, outside any run."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from geoprospector.dependencies import get_orchestrator
from geoprospector.engine.orchestrator import AnalysisOrchestrator
from geoprospector.models.responses import QuickScanResponse

router = APIRouter()


@router.post("/scan/quick", response_model=QuickScanResponse)
async def quick_scan(orchestrator: AnalysisOrchestrator = Depends(get_orchestrator)) -> QuickScanResponse:
    text = await orchestrator.quick_scan()
    return QuickScanResponse(text=text)
