"""Registry of known export types."""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .datasource import PagedDataSource
from .errors import DataSourceError, ExportError, UnknownExportType
from .models import ExportDataQuery

DataSourceFactory = Callable[[ExportDataQuery], PagedDataSource]
ExportPolicy = Callable[[Any, ExportDataQuery], bool]


class ExportedTypeDefinition(BaseModel):
    """Describes one exportable entity type.

    ``data_source_factory`` and ``policy`` are runtime hooks and are never
    serialized.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    required_permission: str
    data_source_factory: DataSourceFactory = Field(exclude=True)
    policy: Optional[ExportPolicy] = Field(default=None, exclude=True)
    title: Optional[str] = None
    metadata: List[str] = Field(default_factory=list)

    @property
    def display_title(self) -> str:
        """Title shown in type listings; defaults to the short type name."""
        if self.title:
            return self.title
        return short_type_name(self.name)

    def create_data_source(self, query: ExportDataQuery) -> PagedDataSource:
        try:
            return self.data_source_factory(query)
        except ExportError:
            raise
        except Exception as exc:
            raise DataSourceError(str(exc)) from exc

    def info(self) -> "ExportedTypeInfo":
        return ExportedTypeInfo(
            name=self.name,
            required_permission=self.required_permission,
            title=self.display_title,
            metadata=list(self.metadata),
        )


class ExportedTypeInfo(BaseModel):
    """Serializable view of an export type returned to clients."""

    name: str
    required_permission: str
    title: str
    metadata: List[str] = Field(default_factory=list)


def short_type_name(type_name: str) -> str:
    index = type_name.rfind(".")
    return type_name[index + 1 :] if index > 0 else type_name


class KnownExportTypesRegistry:
    """Name-keyed store of export type definitions.

    Registering a name twice replaces the earlier definition.
    """

    def __init__(self) -> None:
        self._types: Dict[str, ExportedTypeDefinition] = {}
        self._lock = threading.Lock()

    def register(self, definition: ExportedTypeDefinition) -> ExportedTypeDefinition:
        with self._lock:
            self._types[definition.name] = definition
        return definition

    def list_registered(self) -> List[ExportedTypeDefinition]:
        with self._lock:
            return list(self._types.values())

    def resolve(self, type_name: str) -> ExportedTypeDefinition:
        with self._lock:
            definition = self._types.get(type_name)
        if definition is None:
            raise UnknownExportType(type_name)
        return definition

    def __len__(self) -> int:
        with self._lock:
            return len(self._types)


__all__ = [
    "DataSourceFactory",
    "ExportPolicy",
    "ExportedTypeDefinition",
    "ExportedTypeInfo",
    "KnownExportTypesRegistry",
    "short_type_name",
]
