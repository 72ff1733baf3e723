"""Health check + meta endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from geoprospector import __version__
from geoprospector.dependencies import get_gateway
from geoprospector.llm.gateway import ModelGateway
from geoprospector.models.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(gateway: ModelGateway = Depends(get_gateway)) -> HealthResponse:
    return HealthResponse(status="ok", version=__version__, llm_configured=gateway.configured)


@router.get("/prompts")
async def prompts() -> dict[str, str]:
    from geoprospector.llm.prompts import get_all_templates

    return get_all_templates()
