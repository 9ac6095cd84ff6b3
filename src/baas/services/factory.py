"""Service factory: wires the engine components around one database engine."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from src.baas.core.config import Settings, get_settings
from src.baas.core.db import session_factory
from src.baas.core.files import FileManager
from src.baas.fields import FieldTypeRegistry, default_registry
from src.baas.services.entity_gateway import EntityDataGateway
from src.baas.services.naming import TableNameGenerator
from src.baas.services.references import ReferenceResolver
from src.baas.services.schema_sync import SchemaSynchronizer
from src.baas.services.template_service import TemplateService


@dataclass
class EngineServices:
    """The public surface of the engine for one database."""

    field_types: FieldTypeRegistry
    naming: TableNameGenerator
    templates: TemplateService
    synchronizer: SchemaSynchronizer
    gateway: EntityDataGateway


def create_services(
    engine: AsyncEngine,
    file_manager: FileManager,
    settings: Settings | None = None,
    field_types: FieldTypeRegistry | None = None,
) -> EngineServices:
    """Build the template service, synchronizer and gateway sharing one registry.

    Args:
        engine: Async engine the registry and entity tables live in
        file_manager: Storage backend for file and image fields
        settings: Defaults to ``get_settings()``
        field_types: Custom registry; defaults to the built-in field types
    """
    settings = settings or get_settings()
    field_types = field_types or default_registry()
    sessions = session_factory(engine)
    naming = TableNameGenerator.from_settings(settings)

    synchronizer = SchemaSynchronizer(engine, sessions, field_types, naming)
    references = ReferenceResolver(engine, sessions, field_types, naming)
    gateway = EntityDataGateway(
        engine,
        sessions,
        field_types,
        file_manager,
        naming,
        synchronizer,
        references,
        default_limit=settings.list_default_limit,
        max_limit=settings.list_max_limit,
    )
    templates = TemplateService(sessions, field_types, naming, synchronizer)
    return EngineServices(
        field_types=field_types,
        naming=naming,
        templates=templates,
        synchronizer=synchronizer,
        gateway=gateway,
    )
