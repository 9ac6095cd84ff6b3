"""Schema synchronizer: converges physical tables to their template fields.

Idempotency: every step is guarded by a fresh reflection of the table, so
re-running ``synchronize`` from any partial state only performs the steps
that are still missing:

1. Table creation is skipped when the table exists.
2. A column is added only when reflection does not list it.
3. A unique index is created only when it is absent, and dropped only when
   present on a field that is no longer unique.

Each DDL statement runs in its own transaction. PostgreSQL rolls back a failed
statement cleanly; engines without transactional DDL still leave every other
step applied. Either way the outcome of every step is recorded in a
``SyncReport`` and ``SchemaSyncPartialFailure`` is raised if any step failed,
so the caller can retry.

Orphan columns are only reported here. Dropping them is a separate, explicit
administrative action (``cleanup_orphans``) because a field can be briefly
absent during a multi-step template edit.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final
from uuid import UUID

from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from sqlalchemy import BigInteger, Column, Connection, Integer, MetaData, String, Table, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.baas.core.exceptions import SchemaSyncPartialFailure, TableNotFound, TemplateNotFound
from src.baas.core.logging import get_logger
from src.baas.core.security import Identifier
from src.baas.fields import FieldTypeRegistry
from src.baas.models import EntityField, EntityTemplate
from src.baas.repositories import FieldRepository, TemplateRepository
from src.baas.services.naming import TableNameGenerator, unique_index_name

logger = get_logger(__name__)

SYSTEM_COLUMNS: Final[tuple[str, ...]] = (
    "id",
    "uuid",
    "tenant_id",
    "project_id",
    "created",
    "updated",
)


def system_columns() -> list[Column]:
    """Fresh Column objects for the fixed columns of every physical table."""
    return [
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("uuid", String(128), nullable=False, unique=True),
        Column("tenant_id", String(64), nullable=False),
        Column("project_id", String(64), nullable=False),
        Column("created", BigInteger, nullable=False),
        Column("updated", BigInteger, nullable=False),
    ]


def build_table(
    table_name: str,
    fields: Iterable[EntityField],
    field_types: FieldTypeRegistry,
) -> Table:
    """Core Table for a physical table, typed from the field definitions."""
    columns = system_columns()
    for entity_field in fields:
        plugin = field_types.resolve(entity_field.type)
        settings = plugin.merge_settings(entity_field.settings)
        columns.append(Column(Identifier(entity_field.name), plugin.storage_type(settings)))
    return Table(table_name, MetaData(), *columns)


class SyncAction(str, Enum):
    CREATE_TABLE = "create_table"
    ADD_COLUMN = "add_column"
    DROP_COLUMN = "drop_column"
    CREATE_UNIQUE_INDEX = "create_unique_index"
    DROP_UNIQUE_INDEX = "drop_unique_index"


@dataclass
class ColumnOutcome:
    column: str
    action: SyncAction
    ok: bool
    error: str | None = None


@dataclass
class SyncReport:
    """Per-step outcome of one synchronizer pass."""

    template_id: UUID
    table_name: str
    outcomes: list[ColumnOutcome] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> list[ColumnOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[ColumnOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def changed(self) -> bool:
        """True if any DDL statement was applied."""
        return bool(self.succeeded)

    def to_dict(self) -> dict[str, Any]:
        return {
            "template_id": str(self.template_id),
            "table": self.table_name,
            "succeeded": [{"column": o.column, "action": o.action.value} for o in self.succeeded],
            "failed": [
                {"column": o.column, "action": o.action.value, "error": o.error}
                for o in self.failed
            ],
            "orphans": self.orphans,
        }


def _run_operation(sync_conn: Connection, operation: Callable[[Operations], Any]) -> None:
    operation(Operations(MigrationContext.configure(sync_conn)))


class SchemaSynchronizer:
    """Reconciles physical tables with the template/field registry."""

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

    # --- Reflection ---

    async def list_columns(self, table_name: str) -> list[str] | None:
        """Column names of a physical table, or None if it does not exist."""
        Identifier(table_name, self.naming.max_length)

        def _columns(sync_conn: Connection) -> list[str] | None:
            inspector = inspect(sync_conn)
            if not inspector.has_table(table_name):
                return None
            return [column["name"] for column in inspector.get_columns(table_name)]

        async with self.engine.connect() as conn:
            return await conn.run_sync(_columns)

    async def list_index_names(self, table_name: str) -> set[str]:
        async with self.engine.connect() as conn:
            indexes = await conn.run_sync(lambda c: inspect(c).get_indexes(table_name))
        return {index["name"] for index in indexes if index.get("name")}

    # --- Passes ---

    async def synchronize(self, template_id: UUID) -> SyncReport:
        """Bring the physical table of a template in line with its fields.

        Creates the table with system columns when missing, adds missing field
        columns and reconciles unique indexes. Orphans are reported, not dropped.

        Raises:
            TemplateNotFound: If the template does not exist
            SchemaSyncPartialFailure: If any DDL step failed (after all steps ran)
        """
        template, fields = await self._load(template_id)
        table_name = self._table_name(template)
        report = SyncReport(template_id=template.id, table_name=table_name)

        columns = await self.list_columns(table_name)
        if columns is None:
            created = await self._step(
                report,
                table_name,
                SyncAction.CREATE_TABLE,
                lambda op: op.create_table(table_name, *system_columns()),
            )
            if not created:
                raise SchemaSyncPartialFailure(report)
            columns = list(SYSTEM_COLUMNS)

        present = set(columns)
        indexes = await self.list_index_names(table_name)

        for entity_field in fields:
            name = Identifier(entity_field.name)
            if name in SYSTEM_COLUMNS:
                continue
            plugin = self.field_types.resolve(entity_field.type)
            settings = plugin.merge_settings(entity_field.settings)

            if name not in present:
                added = await self._step(
                    report,
                    name,
                    SyncAction.ADD_COLUMN,
                    lambda op: op.add_column(
                        table_name, Column(name, plugin.storage_type(settings), nullable=True)
                    ),
                )
                if not added:
                    continue
                present.add(name)

            index_name = unique_index_name(table_name, name)
            if entity_field.unique and index_name not in indexes:
                await self._step(
                    report,
                    name,
                    SyncAction.CREATE_UNIQUE_INDEX,
                    lambda op: op.create_index(index_name, table_name, [name], unique=True),
                )
            elif not entity_field.unique and index_name in indexes:
                await self._step(
                    report,
                    name,
                    SyncAction.DROP_UNIQUE_INDEX,
                    lambda op: op.drop_index(index_name, table_name=table_name),
                )

        report.orphans = self._orphans(present, fields)
        if report.orphans:
            logger.info(
                "Orphan columns detected; run cleanup to remove them",
                table=table_name,
                orphans=report.orphans,
            )
        logger.info(
            "Schema synchronized",
            template_id=str(template.id),
            table=table_name,
            applied=len(report.succeeded),
            failed=len(report.failed),
        )

        if report.failed:
            raise SchemaSyncPartialFailure(report)
        return report

    async def find_orphans(self, template_id: UUID) -> list[str]:
        """Columns of the physical table that no field defines.

        System columns are never orphans.

        Raises:
            TemplateNotFound: If the template does not exist
            TableNotFound: If the physical table does not exist
        """
        template, fields = await self._load(template_id)
        table_name = self._table_name(template)
        columns = await self.list_columns(table_name)
        if columns is None:
            raise TableNotFound(table_name)
        return self._orphans(set(columns), fields)

    async def cleanup_orphans(
        self,
        template_id: UUID,
        columns: Iterable[str] | None = None,
    ) -> SyncReport:
        """Drop orphan columns. Destructive: only call from an explicit admin action.

        Args:
            template_id: Template whose table is cleaned
            columns: Restrict the drop to these orphans. Names that are not
                     orphans (including system columns) are ignored.

        Returns:
            SyncReport listing dropped columns and remaining orphans

        Raises:
            SchemaSyncPartialFailure: If any drop failed
        """
        template, fields = await self._load(template_id)
        table_name = self._table_name(template)
        present = await self.list_columns(table_name)
        if present is None:
            raise TableNotFound(table_name)

        orphans = self._orphans(set(present), fields)
        targets = orphans if columns is None else [c for c in orphans if c in set(columns)]
        report = SyncReport(template_id=template.id, table_name=table_name)
        indexes = await self.list_index_names(table_name)

        for column in targets:
            name = Identifier(column)
            index_name = unique_index_name(table_name, name)
            # SQLite refuses to drop an indexed column
            if index_name in indexes:
                dropped = await self._step(
                    report,
                    name,
                    SyncAction.DROP_UNIQUE_INDEX,
                    lambda op: op.drop_index(index_name, table_name=table_name),
                )
                if not dropped:
                    continue
            await self._step(
                report,
                name,
                SyncAction.DROP_COLUMN,
                lambda op: op.drop_column(table_name, name),
            )

        dropped_columns = {
            o.column for o in report.succeeded if o.action == SyncAction.DROP_COLUMN
        }
        report.orphans = [c for c in orphans if c not in dropped_columns]
        logger.warning(
            "Orphan columns dropped",
            template_id=str(template.id),
            table=table_name,
            dropped=sorted(dropped_columns),
        )

        if report.failed:
            raise SchemaSyncPartialFailure(report)
        return report

    # --- Internals ---

    async def _load(self, template_id: UUID) -> tuple[EntityTemplate, list[EntityField]]:
        async with self.sessions() as session:
            template = await TemplateRepository(session).get_by_id(template_id)
            if template is None:
                raise TemplateNotFound(
                    f"Template {template_id} not found",
                    details={"template_id": str(template_id)},
                )
            fields = await FieldRepository(session).list_for_template(template.id)
        return template, fields

    def _table_name(self, template: EntityTemplate) -> str:
        return Identifier(
            self.naming.table_name(template.tenant_id, template.project_id, template.name),
            self.naming.max_length,
        )

    @staticmethod
    def _orphans(columns: set[str], fields: Iterable[EntityField]) -> list[str]:
        defined = {f.name for f in fields}
        return sorted(c for c in columns if c not in SYSTEM_COLUMNS and c not in defined)

    async def _step(
        self,
        report: SyncReport,
        column: str,
        action: SyncAction,
        operation: Callable[[Operations], Any],
    ) -> bool:
        """Run one DDL statement in its own transaction and record the outcome."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(_run_operation, operation)
        except SQLAlchemyError as e:
            logger.error(
                "Schema sync step failed",
                table=report.table_name,
                column=column,
                action=action.value,
                error=str(e),
            )
            report.outcomes.append(ColumnOutcome(column, action, ok=False, error=str(e)))
            return False

        logger.info(
            "Schema sync step applied",
            table=report.table_name,
            column=column,
            action=action.value,
        )
        report.outcomes.append(ColumnOutcome(column, action, ok=True))
        return True
