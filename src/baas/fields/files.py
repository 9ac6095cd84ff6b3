"""File and image field types.

Stored values are opaque file ids issued by the file manager: a single id
string, or a JSON list of ids when ``multiple`` is set. Input values are either
an ``UploadedFile`` (uploaded by the gateway before the row is written) or an
existing file id, which lets an update keep a file unchanged.
"""

from typing import Any, Final

from sqlalchemy import JSON, String
from sqlalchemy.types import TypeEngine

from src.baas.core.exceptions import InvalidImageFileType
from src.baas.core.files import UploadedFile, detect_content_type
from src.baas.core.logging import get_logger
from src.baas.fields.base import FieldTypePlugin, FilterMode, ValidationResult, as_list
from src.baas.models.enums import FieldKind

logger = get_logger(__name__)

IMAGE_EXTENSIONS: Final[frozenset[str]] = frozenset({"jpg", "jpeg", "png", "gif", "bmp", "webp"})
FILE_ID_MAX_LENGTH: Final[int] = 64


def _parse_extensions(value: Any) -> set[str]:
    if isinstance(value, str):
        items = value.replace(",", " ").split()
    else:
        items = as_list(value)
    return {str(item).lower().lstrip(".") for item in items if item}


class FileField(FieldTypePlugin):
    kind = FieldKind.FILE
    label = "File"
    is_file = True

    def default_settings(self) -> dict[str, Any]:
        return {"multiple": False, "file_extensions": "", "max_filesize": 0}

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        if self.is_multiple(settings):
            return JSON()
        return String(FILE_ID_MAX_LENGTH)

    def filter_mode_for(self, settings: dict[str, Any]) -> FilterMode:
        return FilterMode.NONE if self.is_multiple(settings) else FilterMode.EXACT

    def check_upload(
        self, field_name: str, upload: UploadedFile, settings: dict[str, Any]
    ) -> list[str]:
        """Validate an uploaded binary before anything is persisted."""
        errors = []
        allowed = _parse_extensions(settings.get("file_extensions"))
        if allowed and upload.extension not in allowed:
            errors.append(
                f"File '{upload.filename}' has a disallowed extension; "
                f"allowed: {', '.join(sorted(allowed))}"
            )
        max_filesize = int(settings.get("max_filesize") or 0)
        if max_filesize and upload.size > max_filesize:
            errors.append(f"File '{upload.filename}' exceeds {max_filesize} bytes")
        if not upload.content:
            errors.append(f"File '{upload.filename}' is empty")
        return errors

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        if isinstance(value, (list, tuple)) and not self.is_multiple(settings):
            return ValidationResult.failure("Field accepts a single file")
        for item in as_list(value):
            if isinstance(item, UploadedFile):
                continue
            if not isinstance(item, str) or not item or len(item) > FILE_ID_MAX_LENGTH:
                return ValidationResult.failure("Must be an uploaded file or an existing file id")
        return ValidationResult.success()

    def transform_for_storage(self, value: Any, settings: dict[str, Any]) -> Any:
        file_ids = [str(item) for item in as_list(value)]
        if self.is_multiple(settings):
            return file_ids
        return file_ids[0] if file_ids else None

    def file_ids(self, stored: Any, settings: dict[str, Any]) -> list[str]:
        """File ids referenced by a stored value."""
        return [str(item) for item in as_list(stored) if item]


class ImageField(FileField):
    kind = FieldKind.IMAGE
    label = "Image"

    def check_upload(
        self, field_name: str, upload: UploadedFile, settings: dict[str, Any]
    ) -> list[str]:
        """Accept the upload if any of three independent signals says image.

        Signals: server-detected content type, client-declared content type and
        filename extension. Only when none of them indicates an image is the
        upload rejected. Disagreement between signals is logged and allowed.
        """
        detected = upload.detected_type or detect_content_type(upload.content)
        detected_ok = bool(detected and detected.startswith("image/"))
        client_ok = bool(upload.content_type and upload.content_type.startswith("image/"))
        extension_ok = upload.extension in IMAGE_EXTENSIONS

        if not (detected_ok or client_ok or extension_ok):
            raise InvalidImageFileType(field_name, upload.filename, detected or upload.content_type)

        if not (detected_ok and client_ok and extension_ok):
            logger.warning(
                "Image upload type signals disagree; accepting",
                field=field_name,
                filename=upload.filename,
                detected_type=detected,
                client_type=upload.content_type,
                extension=upload.extension,
            )

        return super().check_upload(field_name, upload, settings)
