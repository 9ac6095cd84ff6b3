"""Template and field schemas for template-management requests/responses."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from src.baas.core.security import IDENTIFIER_REGEX
from src.baas.models.enums import TemplateStatus


def _strip_label(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Label cannot be empty or whitespace only")
    return v


class TemplateCreate(BaseModel):
    """Schema for creating an entity template.

    Name length is checked against the scope's limit by the service.
    """

    name: str = Field(min_length=2, max_length=63, pattern=IDENTIFIER_REGEX)
    label: str = Field(min_length=1, max_length=255)
    description: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        return _strip_label(v)


class TemplateUpdate(BaseModel):
    """Schema for updating a template. The name is immutable."""

    label: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    settings: dict[str, Any] | None = None
    status: TemplateStatus | None = None

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str | None) -> str | None:
        return _strip_label(v) if v is not None else v


class FieldCreate(BaseModel):
    """Schema for adding a field to a template."""

    name: str = Field(min_length=1, max_length=63, pattern=IDENTIFIER_REGEX)
    label: str = Field(min_length=1, max_length=255)
    type: str
    required: bool = False
    unique: bool = False
    settings: dict[str, Any] = Field(default_factory=dict)
    weight: int = 0

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        return _strip_label(v)


class FieldUpdate(BaseModel):
    """Schema for editing a field. Renames and type changes go through delete + create."""

    label: str | None = Field(default=None, min_length=1, max_length=255)
    required: bool | None = None
    unique: bool | None = None
    settings: dict[str, Any] | None = None
    weight: int | None = None

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str | None) -> str | None:
        return _strip_label(v) if v is not None else v
