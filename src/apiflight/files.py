"""Transient file creation and deletion.

Multipart bodies and downloads are materialised on disk rather than in
memory. :class:`TempFileService` owns those files: it creates them under a
dedicated directory (by default ``<cache dir>/tmp``) and deletes them when
the transport is done with them.

Any object with the same two coroutine methods satisfies
:class:`FileService` and can be handed to the transport instead.
"""

from __future__ import annotations

import asyncio
import mimetypes
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from apiflight.exceptions import FileError

MULTIPART_CONTENT_TYPE = "multipart/form-data"
OCTET_STREAM = "application/octet-stream"

_SUFFIXES = {
    MULTIPART_CONTENT_TYPE: ".multipart",
    "application/json": ".json",
}


@dataclass(frozen=True)
class File:
    """A file on local disk together with its declared content type."""

    path: Path
    content_type: str = OCTET_STREAM

    @property
    def name(self) -> str:
        return self.path.name

    @classmethod
    def from_path(cls, path: str | Path, content_type: Optional[str] = None) -> File:
        """Wrap *path*, guessing the content type from its extension when not given."""
        path = Path(path)
        if content_type is None:
            content_type = mimetypes.guess_type(path.name)[0] or OCTET_STREAM
        return cls(path=path, content_type=content_type)


class FileService(Protocol):
    async def create_file(self, data: bytes, content_type: str) -> File: ...

    async def delete(self, file: File) -> None: ...


class TempFileService:
    """Create and delete transient files under *directory*.

    Args:
        directory: Where files are created. Defaults to the system temp dir.
    """

    def __init__(self, directory: Optional[str | Path] = None) -> None:
        self._directory = Path(directory) if directory is not None else None

    @property
    def directory(self) -> Path:
        if self._directory is None:
            return Path(tempfile.gettempdir())
        return self._directory

    async def create_file(self, data: bytes, content_type: str) -> File:
        """Write *data* to a new uniquely named file.

        Raises:
            FileError: If the file cannot be created.
        """
        return await asyncio.to_thread(self._create_file_sync, data, content_type)

    async def delete(self, file: File) -> None:
        """Remove *file*. A file that is already gone is not an error.

        Raises:
            FileError: If the file exists but cannot be removed.
        """
        try:
            await asyncio.to_thread(file.path.unlink, missing_ok=True)
        except OSError as exc:
            raise FileError(f"Cannot delete temp file {file.path}: {exc}") from exc

    def _create_file_sync(self, data: bytes, content_type: str) -> File:
        suffix = _SUFFIXES.get(content_type.split(";")[0].strip(), "")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(prefix="apiflight-", suffix=suffix, dir=self.directory)
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            raise FileError(f"Cannot create temp file in {self.directory}: {exc}") from exc
        return File(path=Path(name), content_type=content_type)
