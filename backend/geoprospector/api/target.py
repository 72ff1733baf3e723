"""Target selection endpoints: point, plotted boundary, CSV import."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from geoprospector.config import Settings
from geoprospector.dependencies import get_orchestrator, get_settings
from geoprospector.engine.orchestrator import AnalysisOrchestrator
from geoprospector.geo.importer import (
    BoundaryImportError,
    EmptyInputError,
    NoValidRowsError,
    TooLargeError,
    TooManyVerticesError,
    WrongExtensionError,
    import_boundary,
    validate_upload,
)
from geoprospector.models.geo import Coordinate
from geoprospector.models.requests import BoundaryImportRequest, BoundaryModeRequest
from geoprospector.models.responses import BoundaryImportResponse, TargetResponse

router = APIRouter()
logger = logging.getLogger(__name__)

_IMPORT_ERROR_STATUS: dict[type[BoundaryImportError], int] = {
    WrongExtensionError: 415,
    TooLargeError: 413,
    EmptyInputError: 422,
    NoValidRowsError: 422,
    TooManyVerticesError: 422,
}


def _import_http_error(error: BoundaryImportError) -> HTTPException:
    status = _IMPORT_ERROR_STATUS.get(type(error), 400)
    return HTTPException(status_code=status, detail=str(error))


@router.get("/target", response_model=TargetResponse)
async def get_target(orchestrator: AnalysisOrchestrator = Depends(get_orchestrator)) -> TargetResponse:
    return TargetResponse.from_selection(orchestrator.selection)


@router.put("/target/point", response_model=TargetResponse)
async def set_point(
    point: Coordinate,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> TargetResponse:
    orchestrator.selection.set_point(point)
    return TargetResponse.from_selection(orchestrator.selection)


@router.post("/boundary/points", response_model=TargetResponse)
async def add_boundary_point(
    vertex: Coordinate,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> TargetResponse:
    try:
        orchestrator.selection.add_vertex(vertex)
    except TooManyVerticesError as e:
        raise _import_http_error(e) from e
    return TargetResponse.from_selection(orchestrator.selection)


@router.delete("/boundary", response_model=TargetResponse)
async def clear_boundary(orchestrator: AnalysisOrchestrator = Depends(get_orchestrator)) -> TargetResponse:
    orchestrator.selection.clear_boundary()
    return TargetResponse.from_selection(orchestrator.selection)


@router.put("/boundary/mode", response_model=TargetResponse)
async def set_boundary_mode(
    req: BoundaryModeRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> TargetResponse:
    orchestrator.selection.set_use_boundary(req.enabled)
    return TargetResponse.from_selection(orchestrator.selection)


@router.post("/boundary/import", response_model=BoundaryImportResponse)
async def import_boundary_csv(
    req: BoundaryImportRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    config: Settings = Depends(get_settings),
) -> BoundaryImportResponse:
    try:
        validate_upload(req.filename, len(req.content.encode("utf-8")), config.csv_max_bytes)
        result = import_boundary(req.content, max_vertices=config.max_boundary_vertices)
        orchestrator.selection.replace_boundary(result.coordinates)
    except BoundaryImportError as e:
        logger.info("Rejected boundary import %r: %s", req.filename, e)
        raise _import_http_error(e) from e

    mapping = result.mapping
    return BoundaryImportResponse(
        vertex_count=len(result.coordinates),
        rows_skipped=result.rows_skipped,
        delimiter=mapping.delimiter,
        lat_column=mapping.lat_column,
        lng_column=mapping.lng_column,
        has_header=mapping.has_header,
        detected_by=mapping.detected_by,
        warnings=result.warnings,
        target=TargetResponse.from_selection(orchestrator.selection),
    )
