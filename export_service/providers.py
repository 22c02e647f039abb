"""Pluggable writers turning fetched records into export file bytes."""

from __future__ import annotations

import csv
import io
import json
from typing import Any, BinaryIO, Callable, Dict, List, Optional

from .errors import UnknownExportProvider
from .models import ExportDataRequest, ExportProviderInfo


def _as_dict(record: Any) -> Dict[str, Any]:
    if isinstance(record, dict):
        return record
    if hasattr(record, "model_dump"):
        return record.model_dump(mode="json")
    return dict(vars(record))


class ExportProvider:
    """Writes pages of records to a binary stream.

    A provider instance serves a single export run: ``begin`` once, any number
    of ``write_page`` calls, then ``finish``.
    """

    type_name = "ExportProvider"
    file_extension = ".bin"
    content_type = "application/octet-stream"
    is_tabular = False

    def __init__(self, request: Optional[ExportDataRequest] = None) -> None:
        self.request = request or ExportDataRequest()
        self._stream: Optional[BinaryIO] = None

    def info(self) -> ExportProviderInfo:
        return ExportProviderInfo(
            type_name=self.type_name,
            file_extension=self.file_extension,
            content_type=self.content_type,
            is_tabular=self.is_tabular,
        )

    def begin(self, stream: BinaryIO) -> None:
        self._stream = stream

    def write_page(self, records: List[Any]) -> None:
        raise NotImplementedError

    def finish(self) -> None:
        self._stream = None

    def _write_text(self, text: str) -> None:
        if self._stream is None:
            raise RuntimeError(f"{self.type_name} used before begin()")
        self._stream.write(text.encode("utf-8"))


class JsonExportProvider(ExportProvider):
    """Writes all records as a single JSON array."""

    type_name = "JsonExportProvider"
    file_extension = ".json"
    content_type = "application/json"

    def begin(self, stream: BinaryIO) -> None:
        super().begin(stream)
        self._first = True
        self._write_text("[")

    def write_page(self, records: List[Any]) -> None:
        for record in records:
            prefix = "\n  " if self._first else ",\n  "
            self._first = False
            self._write_text(prefix + json.dumps(_as_dict(record), default=str))

    def finish(self) -> None:
        self._write_text("\n]\n" if not self._first else "]\n")
        super().finish()


class CsvExportProvider(ExportProvider):
    """Writes records as CSV; the header is taken from the first record."""

    type_name = "CsvExportProvider"
    file_extension = ".csv"
    content_type = "text/csv"
    is_tabular = True

    def begin(self, stream: BinaryIO) -> None:
        super().begin(stream)
        self._fieldnames: Optional[List[str]] = None

    def write_page(self, records: List[Any]) -> None:
        rows = [_as_dict(record) for record in records]
        if not rows:
            return

        output = io.StringIO()
        if self._fieldnames is None:
            self._fieldnames = list(rows[0].keys())
            writer = csv.DictWriter(output, fieldnames=self._fieldnames, extrasaction="ignore")
            writer.writeheader()
        else:
            writer = csv.DictWriter(output, fieldnames=self._fieldnames, extrasaction="ignore")
        writer.writerows(rows)
        self._write_text(output.getvalue())


ProviderFactory = Callable[[ExportDataRequest], ExportProvider]


class ExportProviderSet:
    """Discovery and selection of export providers by type name."""

    def __init__(self, factories: Optional[List[ProviderFactory]] = None) -> None:
        self._factories: Dict[str, ProviderFactory] = {}
        for factory in factories or []:
            self.add(factory)

    def add(self, factory: ProviderFactory) -> None:
        probe = factory(ExportDataRequest())
        self._factories[probe.type_name] = factory

    def describe(self) -> List[ExportProviderInfo]:
        """Probe every provider with an empty request and report its identity."""
        return [factory(ExportDataRequest()).info() for factory in self._factories.values()]

    def create(self, request: ExportDataRequest) -> ExportProvider:
        factory = self._factories.get(request.provider_name)
        if factory is None:
            raise UnknownExportProvider(request.provider_name)
        return factory(request)


def default_provider_set() -> ExportProviderSet:
    return ExportProviderSet([JsonExportProvider, CsvExportProvider])


__all__ = [
    "ExportProvider",
    "JsonExportProvider",
    "CsvExportProvider",
    "ExportProviderSet",
    "ProviderFactory",
    "default_provider_set",
]
