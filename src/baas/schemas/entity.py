"""Entity record schemas for gateway requests/responses."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from src.baas.core.files import DeletedFile


class EntityScope(BaseModel):
    """Addresses one entity of one tenant/project."""

    tenant_id: str = Field(min_length=1, max_length=64)
    project_id: str = Field(min_length=1, max_length=64)
    entity_name: str = Field(min_length=1, max_length=63)

    model_config = {"frozen": True}

    @field_validator("tenant_id", "project_id")
    @classmethod
    def validate_scope_id(cls, v: str) -> str:
        if v != v.strip() or not v:
            raise ValueError("Scope ids cannot be blank or padded with whitespace")
        return v


class EntityPage(BaseModel):
    """One page of records plus the total matching the same filters."""

    rows: list[dict[str, Any]]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.total else 0


class DeleteResult(BaseModel):
    id: int
    deleted_files: list[DeletedFile] = Field(default_factory=list)
