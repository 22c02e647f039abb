"""Local file storage for published export files."""

from __future__ import annotations

import mimetypes
import os
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

import structlog

from .errors import FileNotFound, InvalidFileName

logger = structlog.get_logger("export_storage")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def validate_file_name(file_name: str) -> str:
    """Reject names that could escape the storage root or clash with staging files."""
    if (
        not file_name
        or "/" in file_name
        or "\\" in file_name
        or "\x00" in file_name
        or ".." in file_name
        or file_name.startswith(".")
    ):
        raise InvalidFileName(file_name)
    return file_name


def content_type_for(file_name: str) -> str:
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or DEFAULT_CONTENT_TYPE


class StagedExportFile:
    """Output file being written by a job; invisible until published.

    Used as a context manager: leaving the block without ``publish()`` removes
    the partial file.
    """

    def __init__(self, storage: "LocalExportFileStorage", file_name: str) -> None:
        self.storage = storage
        self.file_name = file_name
        self.partial_path = storage.root / f".{file_name}.{uuid.uuid4().hex}.partial"
        self.published = False
        self._stream: Optional[BinaryIO] = None

    @property
    def stream(self) -> BinaryIO:
        if self._stream is None:
            raise RuntimeError("Staged export file is not open")
        return self._stream

    def __enter__(self) -> "StagedExportFile":
        self._stream = open(self.partial_path, "wb")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._close()
        if not self.published:
            self.discard()

    def _close(self) -> None:
        if self._stream is not None and not self._stream.closed:
            self._stream.close()

    def publish(self) -> Path:
        """Atomically move the finished file to its public name."""
        self._close()
        target = self.storage.path_for(self.file_name)
        os.replace(self.partial_path, target)
        self.published = True
        logger.info("export_file_published", file_name=self.file_name, size=target.stat().st_size)
        return target

    def discard(self) -> None:
        self._close()
        self.partial_path.unlink(missing_ok=True)


class LocalExportFileStorage:
    """Stores export files under a single directory keyed by file name."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, file_name: str) -> Path:
        return self.root / validate_file_name(file_name)

    def exists(self, file_name: str) -> bool:
        return self.path_for(file_name).is_file()

    def published_path(self, file_name: str) -> Path:
        """Path of a published file; raises ``FileNotFound`` when it is absent."""
        path = self.path_for(file_name)
        if not path.is_file():
            raise FileNotFound(file_name)
        return path

    def size(self, file_name: str) -> int:
        return self.published_path(file_name).stat().st_size

    def content_type(self, file_name: str) -> str:
        return content_type_for(file_name)

    def stage(self, file_name: str) -> StagedExportFile:
        validate_file_name(file_name)
        return StagedExportFile(self, file_name)

    def open_read(self, file_name: str) -> BinaryIO:
        path = self.path_for(file_name)
        try:
            return open(path, "rb")
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise FileNotFound(file_name) from exc


__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "LocalExportFileStorage",
    "StagedExportFile",
    "content_type_for",
    "validate_file_name",
]
