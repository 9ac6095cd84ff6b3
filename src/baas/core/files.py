"""File manager boundary.

Blob storage is an external collaborator; the gateway only needs to upload a
binary and get back an opaque file id, and to delete a file by id.
"""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Protocol

_MAGIC_NUMBERS: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"%PDF-", "application/pdf"),
    (b"PK\x03\x04", "application/zip"),
]


@dataclass(frozen=True)
class UploadedFile:
    """A binary submitted for a file or image field.

    ``content_type`` is what the client declared. ``detected_type`` is what the
    upload boundary sniffed server-side, if it did.
    """

    filename: str
    content: bytes
    content_type: str | None = None
    detected_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return PurePosixPath(self.filename).suffix.lstrip(".").lower()


@dataclass
class UploadResult:
    success: bool
    file_id: str | None = None
    error: str | None = None


@dataclass
class DeletedFile:
    file_id: str
    deleted_filename: str
    deleted_size: int


class FileManager(Protocol):
    """Contract for blob storage backends."""

    async def upload(self, upload: UploadedFile, metadata: dict[str, Any]) -> UploadResult:
        """Persist a binary.

        Args:
            upload: The file to store
            metadata: Owning scope, entity and field, for the backend's bookkeeping

        Returns:
            UploadResult with ``file_id`` on success or ``error`` on failure
        """
        ...

    async def delete(self, file_id: str) -> DeletedFile | None:
        """Delete a stored file. Returns None if it did not exist."""
        ...


def detect_content_type(content: bytes) -> str | None:
    """Sniff a content type from the leading magic bytes, if recognizable."""
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    for magic, mime_type in _MAGIC_NUMBERS:
        if content.startswith(magic):
            return mime_type
    if content and all(32 <= b < 127 or b in (9, 10, 13) for b in content[:512]):
        return "text/plain"
    return None
