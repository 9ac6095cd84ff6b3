"""Integration test fixtures for the registry, synchronizer and gateway.

Each test gets its own SQLite database file, so physical tables created by
one test never leak into another.
"""

from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from src.baas.core.config import get_settings
from src.baas.core.db import create_registry_tables
from src.baas.schemas import FieldCreate, TemplateCreate
from src.baas.services import EngineServices, create_services
from tests.utils import PROJECT, TENANT, InMemoryFileManager


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine]:
    """Create a throw-away database with the registry tables."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'baas.db'}", poolclass=NullPool
    )
    await create_registry_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def file_manager() -> InMemoryFileManager:
    return InMemoryFileManager()


@pytest.fixture
def services(engine: AsyncEngine, file_manager: InMemoryFileManager) -> EngineServices:
    return create_services(engine, file_manager, get_settings())


@pytest.fixture
def make_entity(services: EngineServices):
    """Create a template with fields in the default test scope.

    Usage:
        template = await make_entity("orders", {"title": "string", ...})
        template = await make_entity("orders", [FieldCreate(...), ...])
    """

    async def _make(name: str, fields, tenant_id: str = TENANT, project_id: str = PROJECT):
        template = await services.templates.create_template(
            tenant_id, project_id, TemplateCreate(name=name, label=name.title())
        )
        if isinstance(fields, dict):
            fields = [
                FieldCreate(name=field_name, label=field_name.title(), type=field_type)
                for field_name, field_type in fields.items()
            ]
        for weight, field_create in enumerate(fields):
            if field_create.weight == 0:
                field_create = field_create.model_copy(update={"weight": weight})
            await services.templates.create_field(
                tenant_id, project_id, template.id, field_create
            )
        return template

    return _make

