"""FastAPI routes for the export service."""

from __future__ import annotations

import time
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import FileResponse

from .config import ExportSettings
from .dependencies import (
    get_engine,
    get_settings,
    get_storage,
    require_access,
    require_download,
)
from .engine import ExportEngine
from .models import (
    ExportableSearchResult,
    ExportCancellationRequest,
    ExportDataRequest,
    ExportProviderInfo,
    ExportPushNotification,
)
from .registry import ExportedTypeInfo
from .security import Principal
from .storage import LocalExportFileStorage

router = APIRouter(prefix="/api/export", tags=["export"])


@router.get("/health")
async def health_check(settings: ExportSettings = Depends(get_settings)) -> Dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "version": settings.version,
        "timestamp": time.time(),
    }


@router.get("/knowntypes", response_model=List[ExportedTypeInfo])
def get_known_types(
    engine: ExportEngine = Depends(get_engine),
    _: Principal = Depends(require_access),
) -> List[ExportedTypeInfo]:
    """List the types that can be exported."""
    return [definition.info() for definition in engine.known_types()]


@router.get("/providers", response_model=List[ExportProviderInfo])
def get_providers(
    engine: ExportEngine = Depends(get_engine),
    _: Principal = Depends(require_access),
) -> List[ExportProviderInfo]:
    """List the available export providers."""
    return engine.describe_providers()


@router.post("/data", response_model=ExportableSearchResult)
def get_data(
    export_request: ExportDataRequest,
    engine: ExportEngine = Depends(get_engine),
    principal: Principal = Depends(require_access),
) -> ExportableSearchResult:
    """Return one page of the requested data together with its total count."""
    return engine.preview(export_request, principal)


@router.post("/run", response_model=ExportPushNotification)
def run_export(
    export_request: ExportDataRequest,
    engine: ExportEngine = Depends(get_engine),
    principal: Principal = Depends(require_access),
) -> ExportPushNotification:
    """Start an export job and return its notification."""
    return engine.start(export_request, principal)


@router.post("/task/cancel")
def cancel_export(
    cancellation_request: ExportCancellationRequest,
    engine: ExportEngine = Depends(get_engine),
    _: Principal = Depends(require_access),
) -> Response:
    """Cancel an export job. Unknown and finished jobs are accepted silently."""
    engine.cancel(cancellation_request.job_id)
    return Response(status_code=200)


@router.get("/task/{job_id}", response_model=ExportPushNotification)
def get_export_task(
    job_id: str,
    engine: ExportEngine = Depends(get_engine),
    _: Principal = Depends(require_access),
) -> ExportPushNotification:
    """Return the latest notification of an export job."""
    notification = engine.get_job_notification(job_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Export job not found")
    return notification


@router.get("/download/{file_name}")
def download_export_file(
    file_name: str,
    storage: LocalExportFileStorage = Depends(get_storage),
    _: Principal = Depends(require_download),
) -> FileResponse:
    """Serve a published export file; ``Range`` requests get a partial response."""
    return FileResponse(
        path=storage.published_path(file_name),
        filename=file_name,
        media_type=storage.content_type(file_name),
    )


__all__ = ["router"]
