"""Engine error taxonomy.

Services raise these; the API boundary layer maps ``code`` to a response.
Validation errors are raised before any mutation and are never retried.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.baas.services.schema_sync import SyncReport


class BaasError(Exception):
    """Base class for all engine errors."""

    code: str = "BAAS_ERROR"

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, "details": self.details}


# --- Templates and fields ---


class TemplateNotFound(BaasError):
    code = "TEMPLATE_NOT_FOUND"


class TemplateNameConflict(BaasError):
    code = "TEMPLATE_NAME_CONFLICT"


class InvalidTemplateDefinition(BaasError):
    code = "INVALID_TEMPLATE"


class FieldNotFound(BaasError):
    code = "FIELD_NOT_FOUND"


class FieldNameConflict(BaasError):
    code = "FIELD_NAME_CONFLICT"

    def __init__(self, template_id: Any, field_name: str) -> None:
        super().__init__(
            f"Field '{field_name}' already exists in this template",
            details={"template_id": str(template_id), "field": field_name},
        )
        self.field_name = field_name


class InvalidFieldDefinition(BaasError):
    code = "INVALID_FIELD"


class UnknownFieldType(BaasError):
    code = "UNKNOWN_FIELD_TYPE"

    def __init__(self, field_type: str, available: list[str]) -> None:
        super().__init__(
            f"Unknown field type '{field_type}'",
            details={"type": field_type, "available": available},
        )
        self.field_type = field_type
        self.available = available


class InvalidIdentifier(BaasError, ValueError):
    code = "INVALID_IDENTIFIER"


# --- Physical storage ---


class TableNotFound(BaasError):
    code = "TABLE_NOT_FOUND"

    def __init__(self, table_name: str, missing_columns: list[str] | None = None) -> None:
        if missing_columns:
            message = f"Physical table '{table_name}' is not synchronized with its template"
        else:
            message = f"Physical table '{table_name}' does not exist"
        super().__init__(
            f"{message}; synchronize the template and retry",
            details={"table": table_name, "missing_columns": missing_columns or []},
        )
        self.table_name = table_name
        self.missing_columns = missing_columns or []


class SchemaSyncPartialFailure(BaasError):
    code = "SCHEMA_SYNC_PARTIAL_FAILURE"

    def __init__(self, report: "SyncReport") -> None:
        failed = [o.column for o in report.failed]
        super().__init__(
            f"Schema synchronization of '{report.table_name}' failed for: {', '.join(failed)}",
            details=report.to_dict(),
        )
        self.report = report


class StorageError(BaasError):
    """Opaque wrapper for unexpected storage-engine failures (already logged)."""

    code = "INTERNAL_ERROR"


# --- Records ---


class RecordNotFound(BaasError):
    code = "ENTITY_NOT_FOUND"

    def __init__(self, entity_name: str, record_id: int) -> None:
        super().__init__(
            f"Entity '{entity_name}' has no record with id {record_id}",
            details={"entity": entity_name, "id": record_id},
        )


class FieldNotExists(BaasError):
    code = "FIELD_NOT_EXISTS"

    def __init__(self, field_name: str, entity_name: str) -> None:
        super().__init__(
            f"Field '{field_name}' does not exist in entity '{entity_name}'",
            details={"field": field_name, "entity": entity_name},
        )
        self.field_name = field_name


class InvalidFieldTypeForFile(BaasError):
    code = "INVALID_FIELD_TYPE_FOR_FILE"

    def __init__(self, field_name: str, field_type: str) -> None:
        super().__init__(
            f"Field '{field_name}' is of type '{field_type}' and cannot accept file uploads",
            details={"field": field_name, "type": field_type},
        )
        self.field_name = field_name


class InvalidImageFileType(BaasError):
    code = "INVALID_IMAGE_FILE_TYPE"

    def __init__(self, field_name: str, filename: str, mime_type: str | None) -> None:
        super().__init__(
            f"Field '{field_name}' only accepts image files",
            details={"field": field_name, "filename": filename, "mime_type": mime_type},
        )
        self.field_name = field_name


class FieldValidationError(BaasError):
    code = "VALIDATION_ERROR"

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__("Validation failed", details={"errors": errors})
        self.errors = errors


class UniqueConstraintViolation(BaasError):
    code = "UNIQUE_CONSTRAINT_VIOLATION"

    def __init__(self, field_name: str, value: Any) -> None:
        super().__init__(
            f"Value for '{field_name}' must be unique",
            details={"field": field_name, "value": value},
        )
        self.field_name = field_name
        self.value = value


class FileUploadFailed(BaasError):
    code = "FILE_UPLOAD_FAILED"

    def __init__(self, field_name: str, filename: str, reason: str | None) -> None:
        super().__init__(
            f"Failed to upload '{filename}' for field '{field_name}'",
            details={"field": field_name, "filename": filename, "reason": reason},
        )
        self.field_name = field_name
