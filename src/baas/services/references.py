"""Batch loading of referenced records for reference field output."""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import Column, Integer, MetaData, Table, inspect, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.baas.core.logging import get_logger
from src.baas.core.security import Identifier, is_valid_identifier
from src.baas.fields import FieldTypePlugin, FieldTypeRegistry, FilterMode, OutputContext
from src.baas.models import EntityField, FieldKind
from src.baas.repositories import FieldRepository, TemplateRepository
from src.baas.services.naming import TableNameGenerator

logger = get_logger(__name__)

# Display values must be scalar and safe to expose
_NON_DISPLAYABLE = frozenset({FieldKind.PASSWORD, FieldKind.REFERENCE, FieldKind.JSON})


def _column_names(conn, table_name: str) -> set[str] | None:
    inspector = inspect(conn)
    if not inspector.has_table(table_name):
        return None
    return {column["name"] for column in inspector.get_columns(table_name)}


class ReferenceResolver:
    """Loads display values for every reference in a result set.

    One query per (target entity, display field) pair, regardless of how many
    rows or reference fields point at it. Missing templates, tables and
    records resolve to empty lookups, never to errors.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        sessions: async_sessionmaker[AsyncSession],
        field_types: FieldTypeRegistry,
        naming: TableNameGenerator,
    ):
        self.engine = engine
        self.sessions = sessions
        self.field_types = field_types
        self.naming = naming

    async def load(
        self,
        tenant_id: str,
        project_id: str,
        reference_fields: Iterable[tuple[EntityField, FieldTypePlugin, dict[str, Any]]],
        rows: Iterable[Mapping[str, Any]],
    ) -> OutputContext:
        wanted: dict[tuple[str, str], set[int]] = defaultdict(set)
        rows = list(rows)
        for entity_field, plugin, settings in reference_fields:
            target = settings.get("target_entity")
            display_field = settings.get("display_field") or "id"
            if not target:
                continue
            for row in rows:
                wanted[(target, display_field)].update(
                    plugin.referenced_ids(row.get(entity_field.name), settings)
                )

        ctx = OutputContext()
        for (target, display_field), ids in wanted.items():
            ctx.references[(target, display_field)] = (
                await self._load_target(tenant_id, project_id, target, display_field, ids)
                if ids
                else {}
            )
        return ctx

    async def _load_target(
        self,
        tenant_id: str,
        project_id: str,
        target: str,
        display_field: str,
        ids: set[int],
    ) -> dict[int, Any]:
        if not is_valid_identifier(target):
            return {}

        async with self.sessions() as session:
            template = await TemplateRepository(session).get_by_name(tenant_id, project_id, target)
            if template is None:
                logger.warning("Reference target entity not found", target_entity=target)
                return {}
            target_fields = {
                f.name: f for f in await FieldRepository(session).list_for_template(template.id)
            }

        columns = [Column("id", Integer, primary_key=True)]
        display_plugin: FieldTypePlugin | None = None
        display_settings: dict[str, Any] = {}
        target_field = target_fields.get(display_field)
        if target_field is not None:
            plugin = self.field_types.resolve(target_field.type)
            settings = plugin.merge_settings(target_field.settings)
            if (
                plugin.kind not in _NON_DISPLAYABLE
                and plugin.filter_mode_for(settings) != FilterMode.NONE
            ):
                display_plugin, display_settings = plugin, settings
                columns.append(Column(Identifier(target_field.name), plugin.storage_type(settings)))

        table_name = Identifier(
            self.naming.table_name(tenant_id, project_id, target), self.naming.max_length
        )
        async with self.engine.connect() as conn:
            existing = await conn.run_sync(lambda c: _column_names(c, table_name))
            if existing is None:
                logger.warning("Reference target table missing", table=table_name)
                return {}
            if display_plugin is not None and display_field not in existing:
                logger.warning(
                    "Reference display column missing", table=table_name, column=display_field
                )
                display_plugin, columns = None, columns[:1]
            table = Table(table_name, MetaData(), *columns)
            result = await conn.execute(
                select(*table.columns).where(table.c.id.in_(sorted(ids)))
            )
            rows = result.mappings().all()

        lookup: dict[int, Any] = {}
        for row in rows:
            if display_plugin is None:
                lookup[row["id"]] = row["id"]
            else:
                lookup[row["id"]] = display_plugin.transform_for_output(
                    row[display_field], display_settings, OutputContext()
                )
        return lookup
