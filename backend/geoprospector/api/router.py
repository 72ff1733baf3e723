"""Master API router: mounts all endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from geoprospector.api import analysis, chat, health, scan, target

api_router = APIRouter(prefix="/api")

api_router.include_router(health.router)
api_router.include_router(target.router)
api_router.include_router(analysis.router)
api_router.include_router(scan.router)
api_router.include_router(chat.router)
