"""In-memory file manager for gateway tests."""

import itertools
from typing import Any

from src.baas.core.files import DeletedFile, UploadedFile, UploadResult

PNG_HEADER = b"\x89PNG\r\n\x1a\n"


def png_upload(filename: str = "photo.png", content_type: str | None = "image/png") -> UploadedFile:
    return UploadedFile(
        filename=filename, content=PNG_HEADER + b"\x00" * 32, content_type=content_type
    )


class InMemoryFileManager:
    """FileManager that keeps uploads in a dict.

    Uploads whose filename is in ``fail_on`` are rejected, to exercise the
    gateway's cleanup of partially uploaded writes.
    """

    def __init__(self, fail_on: set[str] | None = None):
        self.files: dict[str, UploadedFile] = {}
        self.metadata: dict[str, dict[str, Any]] = {}
        self.deleted: list[str] = []
        self.fail_on = fail_on or set()
        self._ids = itertools.count(1)

    async def upload(self, upload: UploadedFile, metadata: dict[str, Any]) -> UploadResult:
        if upload.filename in self.fail_on:
            return UploadResult(success=False, error="storage quota exceeded")
        file_id = f"file_{next(self._ids)}"
        self.files[file_id] = upload
        self.metadata[file_id] = metadata
        return UploadResult(success=True, file_id=file_id)

    async def delete(self, file_id: str) -> DeletedFile | None:
        upload = self.files.pop(file_id, None)
        if upload is None:
            return None
        self.deleted.append(file_id)
        return DeletedFile(
            file_id=file_id,
            deleted_filename=upload.filename,
            deleted_size=upload.size,
        )
