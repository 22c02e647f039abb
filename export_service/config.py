"""Configuration helpers for the export service."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ExportSettings(BaseSettings):
    """Runtime configuration for the export service.

    Values come from ``EXPORT_*`` environment variables. The export directory
    is created up-front; for local development we fall back to ``./exports``
    when the configured location cannot be created.
    """

    model_config = SettingsConfigDict(env_prefix="EXPORT_")

    service_name: str = "Export Service"
    version: str = "1.0.0"
    log_level: str = "INFO"

    export_dir: Path = Path("/app/exports")
    default_page_size: int = 50
    max_workers: int = 4
    retained_jobs: int = 1000

    def ensure_export_dir(self) -> Path:
        """Guarantee the export directory exists, falling back when necessary."""
        try:
            self.export_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            self.export_dir = Path("./exports")
            self.export_dir.mkdir(parents=True, exist_ok=True)
        return self.export_dir


__all__ = ["ExportSettings"]
