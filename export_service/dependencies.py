"""FastAPI dependency helpers."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from .config import ExportSettings
from .engine import ExportEngine
from .security import Permissions, Principal, require_permissions
from .state import ExportState
from .storage import LocalExportFileStorage

USER_NAME_HEADER = "x-user-name"
USER_PERMISSIONS_HEADER = "x-user-permissions"


def get_export_state(request: Request) -> ExportState:
    """Return the export state stored on the FastAPI application."""
    state = getattr(request.app.state, "export_state", None)
    if not state:
        raise HTTPException(status_code=503, detail="Export service not initialized")
    return state


def get_settings(state: ExportState = Depends(get_export_state)) -> ExportSettings:
    return state.settings


def get_engine(state: ExportState = Depends(get_export_state)) -> ExportEngine:
    return state.engine


def get_storage(state: ExportState = Depends(get_export_state)) -> LocalExportFileStorage:
    return state.storage


def get_current_principal(request: Request) -> Principal:
    """Build the caller's principal from the headers the gateway forwards.

    Authentication already happened upstream; a request without headers is
    an anonymous principal with no permissions.
    """
    user_name = request.headers.get(USER_NAME_HEADER) or "anonymous"
    raw_permissions = request.headers.get(USER_PERMISSIONS_HEADER, "")
    permissions = frozenset(item.strip() for item in raw_permissions.split(",") if item.strip())
    return Principal(user_name=user_name, permissions=permissions)


def require_access(principal: Principal = Depends(get_current_principal)) -> Principal:
    require_permissions(principal, Permissions.ACCESS)
    return principal


def require_download(principal: Principal = Depends(get_current_principal)) -> Principal:
    require_permissions(principal, Permissions.PLATFORM_EXPORT, Permissions.DOWNLOAD)
    return principal


__all__ = [
    "USER_NAME_HEADER",
    "USER_PERMISSIONS_HEADER",
    "get_export_state",
    "get_settings",
    "get_engine",
    "get_storage",
    "get_current_principal",
    "require_access",
    "require_download",
]
