"""Entity data gateway: type-aware CRUD over physical entity tables."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from sqlalchemy import Table, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from src.baas.core.exceptions import (
    BaasError,
    FieldNotExists,
    FieldValidationError,
    FileUploadFailed,
    InvalidFieldTypeForFile,
    RecordNotFound,
    StorageError,
    TableNotFound,
    TemplateNotFound,
    UniqueConstraintViolation,
)
from src.baas.core.files import DeletedFile, FileManager, UploadedFile
from src.baas.core.logging import get_logger, scope_context
from src.baas.core.security import Identifier, verify_password
from src.baas.fields import (
    OMIT,
    FieldTypePlugin,
    FieldTypeRegistry,
    FileField,
    FilterMode,
    ValidationResult,
)
from src.baas.fields.base import as_list
from src.baas.fields.scalar import parse_int
from src.baas.models import EntityField, EntityTemplate, FieldKind, SortDirection
from src.baas.models.base import unix_now
from src.baas.repositories import FieldRepository, TemplateRepository
from src.baas.schemas import DeleteResult, EntityPage, EntityScope
from src.baas.services.naming import TableNameGenerator
from src.baas.services.references import ReferenceResolver
from src.baas.services.schema_sync import SYSTEM_COLUMNS, SchemaSynchronizer, build_table

logger = get_logger(__name__)

_INTEGER_SYSTEM_COLUMNS = frozenset({"id", "created", "updated"})


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple)) and not value)


@dataclass
class ResolvedEntity:
    """A template bound to its physical table for the duration of one call."""

    template: EntityTemplate
    fields: dict[str, EntityField]
    plugins: dict[str, FieldTypePlugin]
    settings: dict[str, dict[str, Any]]
    table: Table

    @property
    def name(self) -> str:
        return self.template.name

    def file_fields(self) -> list[tuple[str, FileField]]:
        return [
            (name, plugin) for name, plugin in self.plugins.items() if isinstance(plugin, FileField)
        ]


class EntityDataGateway:
    """CRUD over the physical table of one entity template.

    Every operation is addressed by an ``EntityScope`` (tenant, project,
    entity name). Writes validate every field before any file is uploaded,
    upload all files before the row is written, and delete replaced or
    orphaned uploads after the row change committed.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        sessions: async_sessionmaker[AsyncSession],
        field_types: FieldTypeRegistry,
        file_manager: FileManager,
        naming: TableNameGenerator,
        synchronizer: SchemaSynchronizer,
        references: ReferenceResolver,
        default_limit: int = 20,
        max_limit: int = 100,
    ):
        self.engine = engine
        self.sessions = sessions
        self.field_types = field_types
        self.file_manager = file_manager
        self.naming = naming
        self.synchronizer = synchronizer
        self.references = references
        self.default_limit = default_limit
        self.max_limit = max_limit

    # --- Reads ---

    async def get(self, scope: EntityScope, record_id: int) -> dict[str, Any]:
        """Get one record.

        Raises:
            RecordNotFound: If no record has this id
        """
        with scope_context(scope.tenant_id, scope.project_id, scope.entity_name):
            entity = await self._resolve(scope)
            row = await self._fetch_row(entity, record_id)
            return (await self._render(scope, entity, [row]))[0]

    # --- Writes ---

    async def create(self, scope: EntityScope, data: Mapping[str, Any]) -> dict[str, Any]:
        """Create a record.

        System columns are generated here and never taken from ``data``.

        Raises:
            FieldNotExists: If data names a field the template does not define
            InvalidFieldTypeForFile: If an upload targets a non-file field
            InvalidImageFileType: If an image upload shows no sign of being an image
            FieldValidationError: If any field fails validation
            FileUploadFailed: If the file manager rejects an upload
            UniqueConstraintViolation: If a unique field value is already taken
        """
        with scope_context(scope.tenant_id, scope.project_id, scope.entity_name):
            entity = await self._resolve(scope)
            values = self._validate(entity, data, partial=False)
            uploaded = await self._upload_files(scope, entity, values)

            row = self._to_storage(entity, values)
            try:
                await self._check_unique(entity, row)
                now = unix_now()
                row.update(
                    uuid=str(uuid4()),
                    tenant_id=scope.tenant_id,
                    project_id=scope.project_id,
                    created=now,
                    updated=now,
                )
                async with self.engine.begin() as conn:
                    result = await conn.execute(insert(entity.table).values(**row))
                    record_id = result.inserted_primary_key[0]
            except IntegrityError as e:
                await self._discard_uploads(uploaded)
                raise await self._integrity_error(entity, row, None, e) from e
            except SQLAlchemyError as e:
                await self._discard_uploads(uploaded)
                raise self._storage_error("create", entity, e) from e
            except Exception:
                await self._discard_uploads(uploaded)
                raise

            logger.info("Entity record created", record_id=record_id, files=len(uploaded))
            return await self._fetch_rendered(scope, entity, record_id)

    async def update(
        self,
        scope: EntityScope,
        record_id: int,
        data: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Update a record with the fields present in ``data``.

        Omitted or empty file inputs keep the current file. Files replaced by
        new values are deleted after the row update committed.

        Raises:
            RecordNotFound: If no record has this id
            (plus every error ``create`` raises)
        """
        with scope_context(scope.tenant_id, scope.project_id, scope.entity_name):
            entity = await self._resolve(scope)
            existing = await self._fetch_row(entity, record_id)
            record_id = existing["id"]
            values = self._validate(entity, data, partial=True)
            uploaded = await self._upload_files(scope, entity, values)

            row = self._to_storage(entity, values)
            try:
                await self._check_unique(entity, row, exclude_id=record_id)
                row["updated"] = unix_now()
                async with self.engine.begin() as conn:
                    result = await conn.execute(
                        update(entity.table).where(entity.table.c.id == record_id).values(**row)
                    )
                    if result.rowcount == 0:
                        raise RecordNotFound(entity.name, record_id)
            except IntegrityError as e:
                await self._discard_uploads(uploaded)
                raise await self._integrity_error(entity, row, record_id, e) from e
            except SQLAlchemyError as e:
                await self._discard_uploads(uploaded)
                raise self._storage_error("update", entity, e) from e
            except Exception:
                await self._discard_uploads(uploaded)
                raise

            # Row is committed and authoritative; drop files it no longer references
            replaced: list[str] = []
            for name, plugin in entity.file_fields():
                if name not in row:
                    continue
                settings = entity.settings[name]
                kept = set(plugin.file_ids(row[name], settings))
                replaced.extend(
                    file_id
                    for file_id in plugin.file_ids(existing[name], settings)
                    if file_id not in kept
                )
            deleted = await self._delete_files(replaced)

            logger.info(
                "Entity record updated",
                record_id=record_id,
                fields=sorted(values),
                deleted_files=len(deleted),
            )
            return await self._fetch_rendered(scope, entity, record_id)

    async def delete(self, scope: EntityScope, record_id: int) -> DeleteResult:
        """Delete a record and every file it referenced.

        Returns:
            DeleteResult with the files the file manager reported as deleted

        Raises:
            RecordNotFound: If no record has this id
        """
        with scope_context(scope.tenant_id, scope.project_id, scope.entity_name):
            entity = await self._resolve(scope)
            existing = await self._fetch_row(entity, record_id)
            record_id = existing["id"]

            try:
                async with self.engine.begin() as conn:
                    result = await conn.execute(
                        delete(entity.table).where(entity.table.c.id == record_id)
                    )
            except SQLAlchemyError as e:
                raise self._storage_error("delete", entity, e) from e
            if result.rowcount == 0:
                raise RecordNotFound(entity.name, record_id)

            file_ids: list[str] = []
            for name, plugin in entity.file_fields():
                file_ids.extend(plugin.file_ids(existing[name], entity.settings[name]))
            deleted = await self._delete_files(file_ids)

            logger.info("Entity record deleted", record_id=record_id, deleted_files=len(deleted))
            return DeleteResult(id=record_id, deleted_files=deleted)

    async def verify_password(
        self,
        scope: EntityScope,
        record_id: int,
        field_name: str,
        candidate: str,
    ) -> bool:
        """Check a candidate password against a stored password field.

        Raises:
            FieldNotExists: If the field does not exist or is not a password field
            RecordNotFound: If no record has this id
        """
        with scope_context(scope.tenant_id, scope.project_id, scope.entity_name):
            entity = await self._resolve(scope)
            entity_field = entity.fields.get(field_name)
            if entity_field is None or entity_field.type != FieldKind.PASSWORD.value:
                raise FieldNotExists(field_name, entity.name)
            row = await self._fetch_row(entity, record_id)
            stored = row[field_name]
            if not stored:
                return False
            return verify_password(candidate, stored)

    # --- Resolution ---

    async def _resolve(self, scope: EntityScope) -> ResolvedEntity:
        async with self.sessions() as session:
            template = await TemplateRepository(session).get_by_name(
                scope.tenant_id, scope.project_id, scope.entity_name
            )
            if template is None:
                raise TemplateNotFound(
                    f"Entity '{scope.entity_name}' not found",
                    details={"entity": scope.entity_name},
                )
            fields = await FieldRepository(session).list_for_template(template.id)

        table_name = Identifier(
            self.naming.table_name(scope.tenant_id, scope.project_id, template.name),
            self.naming.max_length,
        )
        columns = await self.synchronizer.list_columns(table_name)
        if columns is None:
            raise TableNotFound(table_name)
        missing = [f.name for f in fields if f.name not in columns]
        if missing:
            raise TableNotFound(table_name, missing_columns=missing)

        plugins: dict[str, FieldTypePlugin] = {}
        settings: dict[str, dict[str, Any]] = {}
        for entity_field in fields:
            plugin = self.field_types.resolve(entity_field.type)
            plugins[entity_field.name] = plugin
            settings[entity_field.name] = plugin.merge_settings(entity_field.settings)

        return ResolvedEntity(
            template=template,
            fields={f.name: f for f in fields},
            plugins=plugins,
            settings=settings,
            table=build_table(table_name, fields, self.field_types),
        )

    async def _fetch_row(self, entity: ResolvedEntity, record_id: int) -> Mapping[str, Any]:
        record_id_int = parse_int(record_id)
        if record_id_int is None:
            raise RecordNotFound(entity.name, record_id)
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(
                    select(entity.table).where(entity.table.c.id == record_id_int)
                )
                row = result.mappings().one_or_none()
        except SQLAlchemyError as e:
            raise self._storage_error("get", entity, e) from e
        if row is None:
            raise RecordNotFound(entity.name, record_id)
        return row

    async def _fetch_rendered(
        self, scope: EntityScope, entity: ResolvedEntity, record_id: int
    ) -> dict[str, Any]:
        row = await self._fetch_row(entity, record_id)
        return (await self._render(scope, entity, [row]))[0]

    # --- Output ---

    async def _render(
        self,
        scope: EntityScope,
        entity: ResolvedEntity,
        rows: list[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        reference_fields = [
            (entity.fields[name], plugin, entity.settings[name])
            for name, plugin in entity.plugins.items()
            if plugin.kind == FieldKind.REFERENCE
        ]
        ctx = await self.references.load(
            scope.tenant_id, scope.project_id, reference_fields, rows
        )

        rendered = []
        for row in rows:
            record = {name: row[name] for name in SYSTEM_COLUMNS}
            for name, plugin in entity.plugins.items():
                value = plugin.transform_for_output(row[name], entity.settings[name], ctx)
                if value is not OMIT:
                    record[name] = value
            rendered.append(record)
        return rendered

    # --- Validation ---

    def _validate(
        self,
        entity: ResolvedEntity,
        data: Mapping[str, Any],
        partial: bool,
    ) -> dict[str, Any]:
        """Validate input for a write and return the values to store.

        Structural errors (unknown fields, uploads to non-file fields) raise
        immediately. Value errors are collected across all fields and raised
        together as FieldValidationError.
        """
        for name, value in data.items():
            if name in SYSTEM_COLUMNS or name not in entity.fields:
                raise FieldNotExists(name, entity.name)
            plugin = entity.plugins[name]
            if not plugin.is_file and any(isinstance(v, UploadedFile) for v in as_list(value)):
                raise InvalidFieldTypeForFile(name, entity.fields[name].type)

        values: dict[str, Any] = {}
        errors: dict[str, list[str]] = {}
        names = list(data) if partial else list(entity.fields)
        for name in names:
            entity_field = entity.fields[name]
            plugin = entity.plugins[name]
            settings = entity.settings[name]
            value = data.get(name)

            if _is_empty(value):
                if plugin.is_file and partial:
                    # Empty file input on update means "keep the current file"
                    continue
                if entity_field.required:
                    errors[name] = ["This field is required"]
                elif name in data:
                    values[name] = None
                elif settings.get("default_value") is not None:
                    values[name] = settings["default_value"]
                continue

            result: ValidationResult = plugin.validate(value, settings)
            if not result.ok:
                errors[name] = result.errors
                continue

            if isinstance(plugin, FileField):
                upload_errors = [
                    error
                    for upload in as_list(value)
                    if isinstance(upload, UploadedFile)
                    for error in plugin.check_upload(name, upload, settings)
                ]
                if upload_errors:
                    errors[name] = upload_errors
                    continue

            values[name] = value

        if errors:
            raise FieldValidationError(errors)
        return values

    def _to_storage(self, entity: ResolvedEntity, values: Mapping[str, Any]) -> dict[str, Any]:
        return {
            name: (
                None
                if value is None
                else entity.plugins[name].transform_for_storage(value, entity.settings[name])
            )
            for name, value in values.items()
        }

    def _filter_conditions(
        self, entity: ResolvedEntity, filters: Mapping[str, Any]
    ) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = []
        errors: dict[str, list[str]] = {}
        for name, value in filters.items():
            if name in SYSTEM_COLUMNS:
                column = entity.table.c[name]
                if name in _INTEGER_SYSTEM_COLUMNS:
                    number = parse_int(value)
                    if number is None:
                        errors[name] = ["Must be an integer"]
                        continue
                    conditions.append(column == number)
                else:
                    conditions.append(column == str(value))
                continue

            if name not in entity.fields:
                raise FieldNotExists(name, entity.name)

            plugin = entity.plugins[name]
            settings = entity.settings[name]
            column = entity.table.c[name]
            mode = plugin.filter_mode_for(settings)
            if mode == FilterMode.NONE:
                errors[name] = ["Field does not support filtering"]
            elif mode == FilterMode.CONTAINS:
                conditions.append(column.contains(str(value), autoescape=True))
            elif value is None:
                conditions.append(column.is_(None))
            else:
                result = plugin.validate(value, settings)
                if not result.ok:
                    errors[name] = result.errors
                    continue
                conditions.append(column == plugin.coerce_filter(value, settings))

        if errors:
            raise FieldValidationError(errors)
        return conditions

    def _sortable_columns(self, entity: ResolvedEntity) -> set[str]:
        sortable = set(SYSTEM_COLUMNS)
        for name, plugin in entity.plugins.items():
            if plugin.filter_mode_for(entity.settings[name]) != FilterMode.NONE:
                sortable.add(name)
        return sortable

    def _clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.default_limit
        value = parse_int(limit)
        if value is None:
            return self.default_limit
        return max(1, min(value, self.max_limit))

    async def _check_unique(
        self,
        entity: ResolvedEntity,
        row: Mapping[str, Any],
        exclude_id: int | None = None,
    ) -> None:
        """Pre-write uniqueness check for a precise error.

        The unique index created by the synchronizer is what actually
        guarantees uniqueness under concurrency.
        """
        for name, entity_field in entity.fields.items():
            if not entity_field.unique or row.get(name) is None:
                continue
            column = entity.table.c[name]
            query = select(entity.table.c.id).where(column == row[name]).limit(1)
            if exclude_id is not None:
                query = query.where(entity.table.c.id != exclude_id)
            async with self.engine.connect() as conn:
                conflict = (await conn.execute(query)).scalar_one_or_none()
            if conflict is not None:
                raise UniqueConstraintViolation(name, row[name])

    async def _integrity_error(
        self,
        entity: ResolvedEntity,
        row: Mapping[str, Any],
        exclude_id: int | None,
        error: IntegrityError,
    ) -> BaasError:
        """Translate a storage constraint violation into an engine error.

        A concurrent writer can win the race past the pre-check; the unique
        index then rejects the write. Re-checking names the conflicting field.
        """
        try:
            await self._check_unique(entity, row, exclude_id)
        except UniqueConstraintViolation as violation:
            logger.info(
                "Unique index rejected concurrent write",
                field=violation.field_name,
                table=entity.table.name,
            )
            return violation
        return self._storage_error("write", entity, error)

    def _storage_error(
        self, operation: str, entity: ResolvedEntity, error: SQLAlchemyError
    ) -> StorageError:
        logger.error(
            "Storage operation failed",
            operation=operation,
            table=entity.table.name,
            error=str(error),
            exc_info=error,
        )
        return StorageError(
            "Internal storage error; the operation was not applied",
            details={"operation": operation},
        )

    # --- Files ---

    async def _upload_files(
        self,
        scope: EntityScope,
        entity: ResolvedEntity,
        values: dict[str, Any],
    ) -> list[str]:
        """Upload every pending file and replace it by its file id in ``values``.

        Runs only after all fields validated. If any upload fails, the files
        uploaded so far are deleted and FileUploadFailed is raised.
        """
        uploaded: list[str] = []
        try:
            for name, _plugin in entity.file_fields():
                if name not in values or values[name] is None:
                    continue
                value = values[name]
                file_ids = []
                for item in as_list(value):
                    if not isinstance(item, UploadedFile):
                        file_ids.append(item)
                        continue
                    result = await self.file_manager.upload(
                        item,
                        {
                            "tenant_id": scope.tenant_id,
                            "project_id": scope.project_id,
                            "entity": entity.name,
                            "field": name,
                        },
                    )
                    if not result.success or not result.file_id:
                        raise FileUploadFailed(name, item.filename, result.error)
                    uploaded.append(result.file_id)
                    file_ids.append(result.file_id)
                values[name] = file_ids if isinstance(value, (list, tuple)) else file_ids[0]
        except Exception:
            await self._discard_uploads(uploaded)
            raise
        return uploaded

    async def _discard_uploads(self, file_ids: list[str]) -> None:
        """Delete files uploaded for a write that did not commit."""
        if file_ids:
            logger.info("Discarding uploads of failed write", file_ids=file_ids)
            await self._delete_files(file_ids)

    async def _delete_files(self, file_ids: list[str]) -> list[DeletedFile]:
        deleted: list[DeletedFile] = []
        for file_id in file_ids:
            try:
                result = await self.file_manager.delete(file_id)
            except Exception as e:
                # Log but don't fail - the row change is already committed
                logger.error("Failed to delete file", file_id=file_id, error=str(e))
                continue
            if result is None:
                logger.warning("File to delete was already gone", file_id=file_id)
                continue
            deleted.append(result)
        return deleted

    # Defined last: the method name shadows the builtin in the class body
    async def list(
        self,
        scope: EntityScope,
        filters: Mapping[str, Any] | None = None,
        page: int = 1,
        limit: int | None = None,
        sort_field: str | None = None,
        sort_direction: str = SortDirection.DESC.value,
    ) -> EntityPage:
        """List records with filtering, sorting and page-based pagination.

        Args:
            scope: Entity to list
            filters: Field name to value. Text columns match by substring,
                     every other filterable column by equality.
            page: 1-based page number; values below 1 are treated as 1
            limit: Page size, clamped to [1, max_limit]; default_limit if None
            sort_field: Column to sort by; unknown or unsortable names fall back to id
            sort_direction: "asc" or "desc"; anything else means "desc"

        Returns:
            EntityPage with the rows of the page and the total matching count

        Raises:
            FieldNotExists: If a filter names an unknown field
            FieldValidationError: If a filter value is invalid or the field is not filterable
        """
        with scope_context(scope.tenant_id, scope.project_id, scope.entity_name):
            entity = await self._resolve(scope)
            page = max(1, parse_int(page) or 1)
            limit = self._clamp_limit(limit)
            conditions = self._filter_conditions(entity, filters or {})

            sort_column = entity.table.c.id
            if sort_field and sort_field in self._sortable_columns(entity):
                sort_column = entity.table.c[sort_field]
            if str(sort_direction).lower() == SortDirection.ASC.value:
                order_by = [sort_column.asc(), entity.table.c.id.asc()]
            else:
                order_by = [sort_column.desc(), entity.table.c.id.desc()]

            rows_query = (
                select(entity.table)
                .where(*conditions)
                .order_by(*order_by)
                .offset((page - 1) * limit)
                .limit(limit)
            )
            count_query = select(func.count()).select_from(entity.table).where(*conditions)

            try:
                async with self.engine.connect() as conn:
                    total = (await conn.execute(count_query)).scalar_one()
                    rows = (await conn.execute(rows_query)).mappings().all()
            except SQLAlchemyError as e:
                raise self._storage_error("list", entity, e) from e

            return EntityPage(
                rows=await self._render(scope, entity, rows),
                total=total,
                page=page,
                limit=limit,
            )
