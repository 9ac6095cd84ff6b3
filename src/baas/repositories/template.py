"""Repositories for the template/field registry."""

from typing import Any
from uuid import UUID

from src.baas.models import EntityField, EntityTemplate, TemplateStatus
from src.baas.repositories.base import BaseRepository


class TemplateRepository(BaseRepository[EntityTemplate]):
    """Repository for entity templates, always filtered by tenant/project."""

    model = EntityTemplate

    @staticmethod
    def _scope(tenant_id: str, project_id: str, include_disabled: bool) -> list[Any]:
        criteria = [EntityTemplate.tenant_id == tenant_id, EntityTemplate.project_id == project_id]
        if not include_disabled:
            criteria.append(EntityTemplate.status == TemplateStatus.ENABLED.value)
        return criteria

    async def get_in_scope(
        self, tenant_id: str, project_id: str, template_id: UUID
    ) -> EntityTemplate | None:
        return await self.first_where(
            EntityTemplate.id == template_id,
            *self._scope(tenant_id, project_id, include_disabled=True),
        )

    async def get_by_name(
        self,
        tenant_id: str,
        project_id: str,
        name: str,
        include_disabled: bool = False,
    ) -> EntityTemplate | None:
        """Get template by name within a scope."""
        return await self.first_where(
            EntityTemplate.name == name,
            *self._scope(tenant_id, project_id, include_disabled),
        )

    async def list_all(
        self,
        tenant_id: str,
        project_id: str,
        include_disabled: bool = False,
    ) -> list[EntityTemplate]:
        """List templates in a scope, enabled only unless asked otherwise."""
        return await self.all_where(
            *self._scope(tenant_id, project_id, include_disabled),
            order_by=(EntityTemplate.name,),
        )


class FieldRepository(BaseRepository[EntityField]):
    """Repository for template fields."""

    model = EntityField

    async def list_for_template(self, template_id: UUID) -> list[EntityField]:
        """Fields of a template in display order."""
        return await self.all_where(
            EntityField.template_id == template_id,
            order_by=(EntityField.weight, EntityField.name),
        )

    async def get_by_name(self, template_id: UUID, name: str) -> EntityField | None:
        return await self.first_where(
            EntityField.template_id == template_id, EntityField.name == name
        )
