"""Default tenant/project scope for integration tests."""

from src.baas.schemas import EntityScope

TENANT = "acme"
PROJECT = "main"


def scope(entity_name: str, tenant_id: str = TENANT, project_id: str = PROJECT) -> EntityScope:
    return EntityScope(tenant_id=tenant_id, project_id=project_id, entity_name=entity_name)
