"""Field type plugin contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from sqlalchemy.types import TypeEngine

from src.baas.models.enums import FieldKind


class FilterMode(str, Enum):
    """How a list filter on a column of this type is matched."""

    EXACT = "exact"
    CONTAINS = "contains"
    NONE = "none"


class _Omit:
    def __repr__(self) -> str:
        return "OMIT"


# Returned by transform_for_output when the field must not appear in output
OMIT: Any = _Omit()


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def failure(cls, *errors: str) -> "ValidationResult":
        return cls(errors=list(errors))


@dataclass
class OutputContext:
    """Per-request data that output transforms may need.

    ``references`` maps (target entity, display field) to ``{id: display value}``
    for every referenced record loaded for the current result set.
    """

    references: dict[tuple[str, str], dict[int, Any]] = field(default_factory=dict)

    def display(self, target_entity: str, display_field: str, record_id: int) -> Any:
        return self.references.get((target_entity, display_field), {}).get(record_id)


class FieldTypePlugin(ABC):
    """One entry of the field type registry.

    A plugin owns everything type-specific about a field: the physical column
    type, input validation, and the storage/output transforms. Plugins are
    stateless; per-field configuration arrives through ``settings``.
    """

    kind: ClassVar[FieldKind]
    label: ClassVar[str]
    is_file: ClassVar[bool] = False
    filter_mode: ClassVar[FilterMode] = FilterMode.EXACT

    def default_settings(self) -> dict[str, Any]:
        return {}

    def merge_settings(self, settings: dict[str, Any] | None) -> dict[str, Any]:
        """Overlay stored field settings on the type defaults."""
        return {**self.default_settings(), **(settings or {})}

    def validate_settings(self, settings: dict[str, Any]) -> list[str]:
        """Check field-definition settings. Returns error messages."""
        return []

    @abstractmethod
    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        """Column type the synchronizer uses for this field."""

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        """Validate a non-empty input value."""
        return ValidationResult.success()

    def transform_for_storage(self, value: Any, settings: dict[str, Any]) -> Any:
        return value

    def transform_for_output(
        self, stored: Any, settings: dict[str, Any], ctx: OutputContext
    ) -> Any:
        return stored

    def coerce_filter(self, value: Any, settings: dict[str, Any]) -> Any:
        """Convert a list-filter value to the column's Python type."""
        return self.transform_for_storage(value, settings)

    def referenced_ids(self, stored: Any, settings: dict[str, Any]) -> list[int]:
        """Record ids this stored value points at (reference fields only)."""
        return []

    def filter_mode_for(self, settings: dict[str, Any]) -> FilterMode:
        return self.filter_mode

    def is_multiple(self, settings: dict[str, Any]) -> bool:
        return bool(settings.get("multiple", False))


def as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]
