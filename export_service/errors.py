"""Exception taxonomy for the export service."""

from __future__ import annotations


class ExportError(Exception):
    """Base class for all export service errors."""

    status_code = 500


class UnknownExportType(ExportError):
    """Raised when an export type name has no registered definition."""

    status_code = 400

    def __init__(self, type_name: str) -> None:
        super().__init__(f"Unknown export type: {type_name}")
        self.type_name = type_name


class UnknownExportProvider(ExportError):
    """Raised when a request selects a provider that is not registered."""

    status_code = 400

    def __init__(self, provider_name: str) -> None:
        super().__init__(f"Unknown export provider: {provider_name}")
        self.provider_name = provider_name


class AuthorizationDenied(ExportError):
    """Per-type export policy rejected the principal.

    Carries no reason on purpose; callers surface it as a bare 401.
    """

    status_code = 401

    def __init__(self) -> None:
        super().__init__("Unauthorized")


class PermissionDenied(ExportError):
    """Principal lacks the endpoint-level permission."""

    status_code = 403

    def __init__(self, *permissions: str) -> None:
        super().__init__("Insufficient permissions. Required: " + " or ".join(permissions))
        self.permissions = permissions


class DataSourceError(ExportError):
    """Underlying query for an export type failed."""

    status_code = 500


class FileNotFound(ExportError):
    status_code = 404

    def __init__(self, file_name: str) -> None:
        super().__init__(f"Export file not found: {file_name}")
        self.file_name = file_name


class InvalidFileName(ExportError):
    status_code = 400

    def __init__(self, file_name: str) -> None:
        super().__init__(f"Invalid export file name: {file_name!r}")
        self.file_name = file_name


class ExportCancelled(ExportError):
    """Raised inside a running job when its cancellation token is set."""


__all__ = [
    "ExportError",
    "UnknownExportType",
    "UnknownExportProvider",
    "AuthorizationDenied",
    "PermissionDenied",
    "DataSourceError",
    "FileNotFound",
    "InvalidFileName",
    "ExportCancelled",
]
