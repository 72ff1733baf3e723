"""FastAPI dependency injection."""

from __future__ import annotations

from functools import lru_cache

from geoprospector.config import settings
from geoprospector.engine.orchestrator import AnalysisOrchestrator
from geoprospector.llm.gateway import ModelGateway


def get_settings():
    return settings


@lru_cache
def get_gateway() -> ModelGateway:
    return ModelGateway(settings)


@lru_cache
def get_orchestrator() -> AnalysisOrchestrator:
    # Process-wide: one operator session, state held in memory only
    return AnalysisOrchestrator(get_gateway(), settings)
