"""Application state helpers for the export service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from structlog.stdlib import BoundLogger

from .config import ExportSettings
from .engine import ExportEngine
from .jobs import BackgroundJobRunner
from .logging import configure_logging
from .notifications import NotificationChannel
from .providers import ExportProviderSet, default_provider_set
from .registry import ExportedTypeDefinition, KnownExportTypesRegistry
from .security import AuthorizationGate
from .storage import LocalExportFileStorage


@dataclass
class ExportState:
    """Container for runtime components attached to the FastAPI app."""

    settings: ExportSettings
    engine: ExportEngine
    logger: BoundLogger

    @property
    def storage(self) -> LocalExportFileStorage:
        return self.engine.storage


def initialize_state(
    settings: Optional[ExportSettings] = None,
    export_types: Iterable[ExportedTypeDefinition] = (),
    providers: Optional[ExportProviderSet] = None,
) -> ExportState:
    """Construct the export state using provided or default settings."""
    resolved_settings = settings or ExportSettings()
    logger = configure_logging(resolved_settings.log_level)

    storage = LocalExportFileStorage(resolved_settings.ensure_export_dir())
    engine = ExportEngine(
        registry=KnownExportTypesRegistry(),
        gate=AuthorizationGate(),
        providers=providers or default_provider_set(),
        storage=storage,
        channel=NotificationChannel(),
        runner=BackgroundJobRunner(
            max_workers=resolved_settings.max_workers,
            retained_jobs=resolved_settings.retained_jobs,
        ),
        default_page_size=resolved_settings.default_page_size,
        logger=logger,
    )
    for definition in export_types:
        engine.register_export_type(definition)

    return ExportState(settings=resolved_settings, engine=engine, logger=logger)


__all__ = ["ExportState", "initialize_state"]
