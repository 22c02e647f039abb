"""Application factory for the export service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from .config import ExportSettings
from .errors import AuthorizationDenied, DataSourceError, ExportError
from .registry import ExportedTypeDefinition
from .routes import router
from .state import ExportState, initialize_state


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthorizationDenied)
    async def _authorization_denied(request: Request, exc: AuthorizationDenied) -> Response:
        # No body: the policy and its reasons stay server-side.
        return Response(status_code=401)

    @app.exception_handler(DataSourceError)
    async def _data_source_error(request: Request, exc: DataSourceError) -> JSONResponse:
        request.app.state.export_state.logger.error(
            "export_data_request_failed", path=request.url.path, error=str(exc)
        )
        return JSONResponse(status_code=exc.status_code, content={"detail": "Failed to retrieve export data"})

    @app.exception_handler(ExportError)
    async def _export_error(request: Request, exc: ExportError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


def create_app(
    settings: Optional[ExportSettings] = None,
    export_types: Iterable[ExportedTypeDefinition] = (),
    state: Optional[ExportState] = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance."""
    export_state = state or initialize_state(settings, export_types=export_types)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        export_state.logger.info("export_service_started", export_dir=str(export_state.settings.export_dir))
        try:
            yield
        finally:
            export_state.engine.shutdown()
            export_state.logger.info("export_service_stopped")

    app = FastAPI(
        title=export_state.settings.service_name,
        description="Export of registered entity types as background jobs",
        version=export_state.settings.version,
        lifespan=lifespan,
    )
    app.state.export_state = export_state

    _register_exception_handlers(app)
    app.include_router(router)

    return app


__all__ = ["create_app"]
