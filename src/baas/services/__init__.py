from src.baas.services.entity_gateway import EntityDataGateway
from src.baas.services.factory import EngineServices, create_services
from src.baas.core.files import DeletedFile, FileManager, UploadedFile, UploadResult
from src.baas.services.naming import TableNameGenerator
from src.baas.services.references import ReferenceResolver
from src.baas.services.schema_sync import SchemaSynchronizer, SyncReport
from src.baas.services.template_service import TemplateService

__all__ = [
    "DeletedFile",
    "EngineServices",
    "EntityDataGateway",
    "FileManager",
    "ReferenceResolver",
    "SchemaSynchronizer",
    "SyncReport",
    "TableNameGenerator",
    "TemplateService",
    "UploadResult",
    "UploadedFile",
    "create_services",
]
