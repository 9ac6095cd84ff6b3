"""Template and field management service."""

from typing import Any, Final
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.baas.core.exceptions import (
    FieldNameConflict,
    FieldNotFound,
    InvalidFieldDefinition,
    InvalidTemplateDefinition,
    TemplateNameConflict,
    TemplateNotFound,
)
from src.baas.core.logging import get_logger, scope_context
from src.baas.fields import FieldTypePlugin, FieldTypeRegistry, FilterMode
from src.baas.models import EntityField, EntityTemplate, TemplateStatus
from src.baas.models.base import unix_now
from src.baas.repositories import FieldRepository, TemplateRepository
from src.baas.schemas import FieldCreate, FieldUpdate, TemplateCreate, TemplateUpdate
from src.baas.services.naming import TableNameGenerator
from src.baas.services.schema_sync import SYSTEM_COLUMNS, SchemaSynchronizer, SyncReport

logger = get_logger(__name__)

RESERVED_FIELD_NAMES: Final[frozenset[str]] = frozenset(SYSTEM_COLUMNS)


class TemplateService:
    """Template/field registry operations, scoped by tenant and project.

    Every field mutation commits the registry change first and then runs a
    synchronizer pass for the owning template before returning, so the
    physical table never silently diverges from its definition. If that pass
    fails, the registry change stays committed and SchemaSyncPartialFailure
    tells the caller which columns to retry.
    """

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        field_types: FieldTypeRegistry,
        naming: TableNameGenerator,
        synchronizer: SchemaSynchronizer,
    ):
        self.sessions = sessions
        self.field_types = field_types
        self.naming = naming
        self.synchronizer = synchronizer

    # --- Templates ---

    async def create_template(
        self, tenant_id: str, project_id: str, data: TemplateCreate
    ) -> EntityTemplate:
        """Register a template and create its physical table.

        Raises:
            InvalidTemplateDefinition: If the name is too long for this scope
            TemplateNameConflict: If the name is taken in this scope
            SchemaSyncPartialFailure: If the physical table could not be created
        """
        with scope_context(tenant_id, project_id, data.name):
            max_length = self.naming.max_entity_name_length(tenant_id, project_id)
            if len(data.name) > max_length:
                raise InvalidTemplateDefinition(
                    f"Entity name must be at most {max_length} characters",
                    details={"name": data.name, "max_length": max_length},
                )

            async with self.sessions() as session:
                repo = TemplateRepository(session)
                if await repo.get_by_name(tenant_id, project_id, data.name, include_disabled=True):
                    raise TemplateNameConflict(
                        f"Entity '{data.name}' already exists",
                        details={"name": data.name},
                    )
                template = EntityTemplate(
                    tenant_id=tenant_id,
                    project_id=project_id,
                    name=data.name,
                    label=data.label,
                    description=data.description,
                    settings=data.settings,
                )
                try:
                    repo.add(template)
                    await session.commit()
                    await session.refresh(template)
                except IntegrityError as e:
                    await session.rollback()
                    raise TemplateNameConflict(
                        f"Entity '{data.name}' already exists",
                        details={"name": data.name},
                    ) from e

            logger.info("Entity template created", template_id=str(template.id))
            await self.synchronizer.synchronize(template.id)
            return template

    async def get_template(
        self, tenant_id: str, project_id: str, template_id: UUID
    ) -> EntityTemplate:
        async with self.sessions() as session:
            return await self._get_template(session, tenant_id, project_id, template_id)

    async def get_template_by_name(
        self,
        tenant_id: str,
        project_id: str,
        name: str,
        include_disabled: bool = False,
    ) -> EntityTemplate:
        async with self.sessions() as session:
            template = await TemplateRepository(session).get_by_name(
                tenant_id, project_id, name, include_disabled
            )
        if template is None:
            raise TemplateNotFound(f"Entity '{name}' not found", details={"name": name})
        return template

    async def list_templates(
        self,
        tenant_id: str,
        project_id: str,
        include_disabled: bool = False,
    ) -> list[EntityTemplate]:
        """List templates of a scope. Disabled templates only when asked for."""
        async with self.sessions() as session:
            return await TemplateRepository(session).list_all(
                tenant_id, project_id, include_disabled
            )

    async def update_template(
        self,
        tenant_id: str,
        project_id: str,
        template_id: UUID,
        data: TemplateUpdate,
    ) -> EntityTemplate:
        """Update label, description, settings or status. Names are immutable."""
        async with self.sessions() as session:
            template = await self._get_template(session, tenant_id, project_id, template_id)
            update_data = data.model_dump(exclude_unset=True)
            if "status" in update_data and update_data["status"] is not None:
                update_data["status"] = TemplateStatus(update_data["status"]).value
            for key, value in update_data.items():
                if value is None and key in ("label", "settings", "status"):
                    continue
                setattr(template, key, value)
            template.updated = unix_now()
            await session.commit()
            await session.refresh(template)

        logger.info(
            "Entity template updated",
            template_id=str(template_id),
            changes=sorted(update_data),
        )
        return template

    async def disable_template(
        self, tenant_id: str, project_id: str, template_id: UUID
    ) -> EntityTemplate:
        """Hide a template from listings and the gateway. Its table and rows persist."""
        return await self.update_template(
            tenant_id, project_id, template_id, TemplateUpdate(status=TemplateStatus.DISABLED)
        )

    async def enable_template(
        self, tenant_id: str, project_id: str, template_id: UUID
    ) -> EntityTemplate:
        return await self.update_template(
            tenant_id, project_id, template_id, TemplateUpdate(status=TemplateStatus.ENABLED)
        )

    # --- Fields ---

    async def list_fields(
        self, tenant_id: str, project_id: str, template_id: UUID
    ) -> list[EntityField]:
        async with self.sessions() as session:
            await self._get_template(session, tenant_id, project_id, template_id)
            return await FieldRepository(session).list_for_template(template_id)

    async def create_field(
        self,
        tenant_id: str,
        project_id: str,
        template_id: UUID,
        data: FieldCreate,
    ) -> EntityField:
        """Add a field and its column.

        Raises:
            TemplateNotFound: If the template is not in this scope
            InvalidFieldDefinition: If the name is reserved or the settings are invalid
            UnknownFieldType: If the type is not registered
            FieldNameConflict: If the template already has a field with this name
            SchemaSyncPartialFailure: If the column or its unique index could not be created
        """
        if data.name in RESERVED_FIELD_NAMES:
            raise InvalidFieldDefinition(
                f"Field name '{data.name}' is reserved for system columns",
                details={"name": data.name, "reserved": sorted(RESERVED_FIELD_NAMES)},
            )
        plugin = self.field_types.resolve(data.type)
        unique = bool(data.unique or data.settings.get("unique"))
        settings = self._check_settings(plugin, data.name, data.settings, unique)

        async with self.sessions() as session:
            await self._get_template(session, tenant_id, project_id, template_id)
            repo = FieldRepository(session)
            if await repo.get_by_name(template_id, data.name):
                raise FieldNameConflict(template_id, data.name)
            entity_field = EntityField(
                template_id=template_id,
                name=data.name,
                label=data.label,
                type=plugin.kind.value,
                required=data.required,
                unique=unique,
                settings=settings,
                weight=data.weight,
            )
            try:
                repo.add(entity_field)
                await session.commit()
                await session.refresh(entity_field)
            except IntegrityError as e:
                await session.rollback()
                raise FieldNameConflict(template_id, data.name) from e

        logger.info(
            "Entity field created",
            template_id=str(template_id),
            field=entity_field.name,
            type=entity_field.type,
        )
        await self.synchronizer.synchronize(template_id)
        return entity_field

    async def update_field(
        self,
        tenant_id: str,
        project_id: str,
        template_id: UUID,
        field_id: UUID,
        data: FieldUpdate,
    ) -> EntityField:
        """Edit a field. Name and type are immutable; column types are never migrated.

        Raises:
            FieldNotFound: If the field is not part of the template
            InvalidFieldDefinition: If the new settings are invalid
            SchemaSyncPartialFailure: If the unique index could not be reconciled
        """
        async with self.sessions() as session:
            await self._get_template(session, tenant_id, project_id, template_id)
            entity_field = await self._get_field(session, template_id, field_id)
            plugin = self.field_types.resolve(entity_field.type)

            update_data = data.model_dump(exclude_unset=True)
            unique = update_data.get("unique")
            if unique is None:
                unique = entity_field.unique
            if update_data.get("settings") is not None:
                new_settings = {**entity_field.settings, **update_data["settings"]}
                if "unique" in update_data["settings"] and "unique" not in update_data:
                    unique = bool(update_data["settings"]["unique"])
            else:
                new_settings = entity_field.settings
            if self._storage_signature(plugin, entity_field.settings) != self._storage_signature(
                plugin, new_settings
            ):
                raise InvalidFieldDefinition(
                    "Settings that change the column type cannot be edited; "
                    "delete and recreate the field",
                    details={"field": entity_field.name},
                )
            entity_field.settings = self._check_settings(
                plugin, entity_field.name, new_settings, unique
            )
            entity_field.unique = unique
            for key in ("label", "required", "weight"):
                if update_data.get(key) is not None:
                    setattr(entity_field, key, update_data[key])
            entity_field.updated = unix_now()
            await session.commit()
            await session.refresh(entity_field)

        logger.info(
            "Entity field updated",
            template_id=str(template_id),
            field=entity_field.name,
            changes=sorted(update_data),
        )
        await self.synchronizer.synchronize(template_id)
        return entity_field

    async def delete_field(
        self,
        tenant_id: str,
        project_id: str,
        template_id: UUID,
        field_id: UUID,
    ) -> SyncReport:
        """Remove a field definition and drop its column.

        Deleting a field is itself the explicit administrative action that
        authorizes dropping its column; only that one column is dropped.
        Other orphans are left for ``cleanup_orphans``.

        Returns:
            SyncReport of the column drop
        """
        async with self.sessions() as session:
            await self._get_template(session, tenant_id, project_id, template_id)
            entity_field = await self._get_field(session, template_id, field_id)
            name = entity_field.name
            await FieldRepository(session).delete(entity_field)
            await session.commit()

        logger.warning("Entity field deleted", template_id=str(template_id), field=name)
        return await self.synchronizer.cleanup_orphans(template_id, columns=[name])

    # --- Schema maintenance ---

    async def synchronize(self, tenant_id: str, project_id: str, template_id: UUID) -> SyncReport:
        """Re-run a synchronizer pass, e.g. after a SchemaSyncPartialFailure."""
        await self.get_template(tenant_id, project_id, template_id)
        return await self.synchronizer.synchronize(template_id)

    async def find_orphans(self, tenant_id: str, project_id: str, template_id: UUID) -> list[str]:
        await self.get_template(tenant_id, project_id, template_id)
        return await self.synchronizer.find_orphans(template_id)

    async def cleanup_orphans(
        self,
        tenant_id: str,
        project_id: str,
        template_id: UUID,
        columns: list[str] | None = None,
    ) -> SyncReport:
        """Drop orphan columns of a template's table. Destructive."""
        await self.get_template(tenant_id, project_id, template_id)
        return await self.synchronizer.cleanup_orphans(template_id, columns)

    # --- Internals ---

    async def _get_template(
        self,
        session: AsyncSession,
        tenant_id: str,
        project_id: str,
        template_id: UUID,
    ) -> EntityTemplate:
        template = await TemplateRepository(session).get_in_scope(
            tenant_id, project_id, template_id
        )
        if template is None:
            raise TemplateNotFound(
                f"Template {template_id} not found",
                details={"template_id": str(template_id)},
            )
        return template

    async def _get_field(
        self, session: AsyncSession, template_id: UUID, field_id: UUID
    ) -> EntityField:
        entity_field = await FieldRepository(session).get_by_id(field_id)
        if entity_field is None or entity_field.template_id != template_id:
            raise FieldNotFound(
                f"Field {field_id} not found",
                details={"template_id": str(template_id), "field_id": str(field_id)},
            )
        return entity_field

    def _check_settings(
        self,
        plugin: FieldTypePlugin,
        field_name: str,
        settings: dict[str, Any],
        unique: bool,
    ) -> dict[str, Any]:
        """Validate field settings against the plugin; returns them without the unique flag."""
        stored = {k: v for k, v in settings.items() if k != "unique"}
        errors = plugin.validate_settings(plugin.merge_settings(stored))
        if unique and plugin.filter_mode_for(plugin.merge_settings(stored)) == FilterMode.NONE:
            errors.append(f"Fields of type '{plugin.kind.value}' cannot be unique")
        if errors:
            raise InvalidFieldDefinition(
                f"Invalid settings for field '{field_name}'",
                details={"field": field_name, "errors": errors},
            )
        return stored

    @staticmethod
    def _storage_signature(plugin: FieldTypePlugin, settings: dict[str, Any]) -> str:
        storage_type = plugin.storage_type(plugin.merge_settings(settings))
        return repr(storage_type)
