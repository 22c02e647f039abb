"""Principals, permissions and the per-type export authorization gate."""

from __future__ import annotations

import threading
from typing import Callable, Dict, FrozenSet, Iterable, Optional

import structlog
from pydantic import BaseModel, Field

from .errors import AuthorizationDenied, PermissionDenied
from .models import ExportDataQuery

logger = structlog.get_logger("export_security")

POLICY_SUFFIX = "ExportDataPolicy"


class Permissions:
    """Permission names understood by the export endpoints."""

    ACCESS = "export:access"
    DOWNLOAD = "export:download"
    PLATFORM_EXPORT = "platform:export"

    WILDCARDS = frozenset({"*", "admin"})


class Principal(BaseModel):
    """Authenticated caller as forwarded by the gateway."""

    user_name: str = "anonymous"
    permissions: FrozenSet[str] = Field(default_factory=frozenset)

    def has_permission(self, permission: str) -> bool:
        if self.permissions & Permissions.WILDCARDS:
            return True
        return permission in self.permissions

    def has_any_permission(self, permissions: Iterable[str]) -> bool:
        return any(self.has_permission(permission) for permission in permissions)


def require_permissions(principal: Principal, *permissions: str) -> None:
    """Raise ``PermissionDenied`` unless the principal holds one of ``permissions``."""
    if not principal.has_any_permission(permissions):
        logger.warning("permission_denied", user=principal.user_name, required=list(permissions))
        raise PermissionDenied(*permissions)


PolicyFunc = Callable[[Principal, ExportDataQuery], bool]


def policy_name_for(export_type_name: str) -> str:
    return f"{export_type_name}{POLICY_SUFFIX}"


def permission_policy(permission: str) -> PolicyFunc:
    """Policy granting access to principals that hold ``permission``."""

    def _policy(principal: Principal, query: ExportDataQuery) -> bool:
        return principal.has_permission(permission)

    return _policy


class AuthorizationGate:
    """Evaluates the export policy registered for an export type.

    Policies are keyed by ``<type name>ExportDataPolicy``; a missing policy
    denies.
    """

    def __init__(self) -> None:
        self._policies: Dict[str, PolicyFunc] = {}
        self._lock = threading.Lock()

    def register_policy(self, export_type_name: str, policy: PolicyFunc) -> str:
        name = policy_name_for(export_type_name)
        with self._lock:
            self._policies[name] = policy
        return name

    def get_policy(self, policy_name: str) -> Optional[PolicyFunc]:
        with self._lock:
            return self._policies.get(policy_name)

    def authorize(self, principal: Principal, query: ExportDataQuery, policy_name: str) -> bool:
        policy = self.get_policy(policy_name)
        if policy is None:
            logger.warning("export_policy_missing", policy=policy_name)
            return False
        return bool(policy(principal, query))

    def ensure_authorized(self, principal: Principal, query: ExportDataQuery, export_type_name: str) -> None:
        """Raise ``AuthorizationDenied`` when the type's policy rejects the principal."""
        policy_name = policy_name_for(export_type_name)
        if not self.authorize(principal, query, policy_name):
            logger.info("export_authorization_denied", user=principal.user_name, policy=policy_name)
            raise AuthorizationDenied()


__all__ = [
    "POLICY_SUFFIX",
    "Permissions",
    "Principal",
    "PolicyFunc",
    "AuthorizationGate",
    "permission_policy",
    "policy_name_for",
    "require_permissions",
]
