"""Entity template and field registry models."""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from src.baas.models.base import unix_now
from src.baas.models.enums import TemplateStatus


class EntityTemplate(SQLModel, table=True):
    """User-defined schema description, scoped to a tenant/project pair.

    The physical table is derived from (tenant_id, project_id, name) and is
    never stored here. Templates are disabled rather than deleted while their
    physical table may still hold data.
    """

    __tablename__ = "baas_entity_template"
    __table_args__ = (
        UniqueConstraint("tenant_id", "project_id", "name", name="uq_baas_entity_template_name"),
        Index("ix_baas_entity_template_scope_status", "tenant_id", "project_id", "status"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)

    # Scope
    tenant_id: str = Field(max_length=64)
    project_id: str = Field(max_length=64)

    name: str = Field(max_length=63)
    label: str = Field(max_length=255)
    description: str | None = Field(default=None)
    status: str = Field(default=TemplateStatus.ENABLED.value, max_length=20)
    settings: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )

    created: int = Field(default_factory=unix_now)
    updated: int = Field(default_factory=unix_now)


class EntityField(SQLModel, table=True):
    """One typed attribute of a template; maps to exactly one physical column."""

    __tablename__ = "baas_entity_field"
    __table_args__ = (
        UniqueConstraint("template_id", "name", name="uq_baas_entity_field_name"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    template_id: UUID = Field(foreign_key="baas_entity_template.id", index=True)

    name: str = Field(max_length=63)
    label: str = Field(max_length=255)
    type: str = Field(max_length=32)  # FieldKind value
    required: bool = Field(default=False)
    unique: bool = Field(default=False)
    settings: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    weight: int = Field(default=0)

    created: int = Field(default_factory=unix_now)
    updated: int = Field(default_factory=unix_now)
