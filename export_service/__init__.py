"""Export service package initialisation."""

from __future__ import annotations

from .config import ExportSettings
from .datasource import InMemoryDataSource, PagedDataSource
from .engine import ExportEngine
from .errors import (
    AuthorizationDenied,
    DataSourceError,
    ExportError,
    FileNotFound,
    InvalidFileName,
    PermissionDenied,
    UnknownExportProvider,
    UnknownExportType,
)
from .factory import create_app
from .models import (
    ExportableSearchResult,
    ExportCancellationRequest,
    ExportDataQuery,
    ExportDataRequest,
    ExportJobStatus,
    ExportPushNotification,
)
from .providers import CsvExportProvider, ExportProvider, ExportProviderSet, JsonExportProvider
from .registry import ExportedTypeDefinition, KnownExportTypesRegistry
from .security import AuthorizationGate, Permissions, Principal
from .state import ExportState, initialize_state

__all__ = [
    "create_app",
    "initialize_state",
    "ExportState",
    "ExportSettings",
    "ExportEngine",
    "ExportedTypeDefinition",
    "KnownExportTypesRegistry",
    "PagedDataSource",
    "InMemoryDataSource",
    "ExportProvider",
    "ExportProviderSet",
    "JsonExportProvider",
    "CsvExportProvider",
    "AuthorizationGate",
    "Permissions",
    "Principal",
    "ExportDataQuery",
    "ExportDataRequest",
    "ExportableSearchResult",
    "ExportCancellationRequest",
    "ExportJobStatus",
    "ExportPushNotification",
    "ExportError",
    "UnknownExportType",
    "UnknownExportProvider",
    "AuthorizationDenied",
    "PermissionDenied",
    "DataSourceError",
    "FileNotFound",
    "InvalidFileName",
]
