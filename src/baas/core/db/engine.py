"""Database engine management."""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

from src.baas.core.config import Settings


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create an async engine for the configured database.

    Pool sizing only applies to server databases; SQLite uses its default pool.
    """
    url = make_url(settings.database_url)
    if url.get_backend_name() == "sqlite":
        return create_async_engine(url)
    return create_async_engine(
        url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )


async def create_registry_tables(engine: AsyncEngine) -> None:
    """Create the template/field registry tables if they are missing.

    Managed deployments use the Alembic migrations instead; this is for
    bootstrap and tests.
    """
    # Register the models on SQLModel.metadata
    from src.baas.models import EntityField, EntityTemplate  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
