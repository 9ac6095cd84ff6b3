"""Reference field type: points at records of another entity in the same scope.

No foreign key is declared; a dangling reference renders with a None display.
"""

from typing import Any

from sqlalchemy import JSON, BigInteger
from sqlalchemy.types import TypeEngine

from src.baas.core.security import is_valid_identifier
from src.baas.fields.base import (
    FieldTypePlugin,
    FilterMode,
    OutputContext,
    ValidationResult,
    as_list,
)
from src.baas.fields.scalar import parse_int
from src.baas.models.enums import FieldKind


class ReferenceField(FieldTypePlugin):
    kind = FieldKind.REFERENCE
    label = "Entity reference"

    def default_settings(self) -> dict[str, Any]:
        return {"target_entity": None, "display_field": "id", "multiple": False}

    def validate_settings(self, settings: dict[str, Any]) -> list[str]:
        errors = []
        if not is_valid_identifier(settings.get("target_entity") or ""):
            errors.append("target_entity must name an entity template")
        if not is_valid_identifier(settings.get("display_field") or ""):
            errors.append("display_field must name a field of the target entity")
        return errors

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        if self.is_multiple(settings):
            return JSON()
        return BigInteger()

    def filter_mode_for(self, settings: dict[str, Any]) -> FilterMode:
        return FilterMode.NONE if self.is_multiple(settings) else FilterMode.EXACT

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        if isinstance(value, (list, tuple)) and not self.is_multiple(settings):
            return ValidationResult.failure("Field accepts a single reference")
        for item in as_list(value):
            if isinstance(item, dict):
                item = item.get("id")
            record_id = parse_int(item)
            if record_id is None or record_id < 1:
                return ValidationResult.failure("References must be positive record ids")
        return ValidationResult.success()

    def transform_for_storage(self, value: Any, settings: dict[str, Any]) -> Any:
        ids = [
            parse_int(item.get("id") if isinstance(item, dict) else item)
            for item in as_list(value)
        ]
        if self.is_multiple(settings):
            return ids
        return ids[0] if ids else None

    def referenced_ids(self, stored: Any, settings: dict[str, Any]) -> list[int]:
        return [int(item) for item in as_list(stored) if item is not None]

    def transform_for_output(
        self, stored: Any, settings: dict[str, Any], ctx: OutputContext
    ) -> Any:
        target = settings.get("target_entity")
        display_field = settings.get("display_field") or "id"
        rendered = [
            {"id": record_id, "display": ctx.display(target, display_field, record_id)}
            for record_id in self.referenced_ids(stored, settings)
        ]
        if self.is_multiple(settings):
            return rendered
        return rendered[0] if rendered else None
