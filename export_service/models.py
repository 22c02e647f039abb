"""Domain models for the export service."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

NOTIFY_TYPE = "PlatformExportPushNotification"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExportJobStatus(str, Enum):
    """State of an export job."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {ExportJobStatus.COMPLETED, ExportJobStatus.FAILED, ExportJobStatus.CANCELLED}
)


class ExportDataQuery(BaseModel):
    """Query describing which records of an export type to fetch.

    Only paging is interpreted by the core; everything else is handed to the
    type's data source as is.
    """

    model_config = ConfigDict(extra="allow")

    skip: int = Field(default=0, ge=0)
    take: Optional[int] = Field(default=None, ge=1, le=1000)
    keyword: Optional[str] = None
    object_ids: Optional[List[str]] = None
    sort: Optional[str] = None


class ExportDataRequest(BaseModel):
    """Request body accepted by the data preview and run endpoints."""

    export_type_name: str = ""
    data_query: ExportDataQuery = Field(default_factory=ExportDataQuery)
    provider_name: str = "JsonExportProvider"


class ExportableSearchResult(BaseModel):
    total_count: int
    results: List[Any] = Field(default_factory=list)


class ExportCancellationRequest(BaseModel):
    job_id: str


class ExportPushNotification(BaseModel):
    """Status update delivered to the user who requested an export.

    The ``id`` stays the same for every update of one job.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    job_id: Optional[str] = None
    creator: Optional[str] = None
    notify_type: str = NOTIFY_TYPE
    title: str = ""
    description: str = ""
    status: ExportJobStatus = ExportJobStatus.QUEUED
    created: datetime = Field(default_factory=utcnow)
    finished: Optional[datetime] = None
    total_count: int = 0
    processed_count: int = 0
    errors: List[str] = Field(default_factory=list)
    file_name: Optional[str] = None
    download_url: Optional[str] = None


class ExportProviderInfo(BaseModel):
    """Public description of an export provider."""

    type_name: str
    file_extension: str
    content_type: str
    is_tabular: bool = False


__all__ = [
    "NOTIFY_TYPE",
    "TERMINAL_STATUSES",
    "ExportJobStatus",
    "ExportDataQuery",
    "ExportDataRequest",
    "ExportableSearchResult",
    "ExportCancellationRequest",
    "ExportPushNotification",
    "ExportProviderInfo",
    "utcnow",
]
