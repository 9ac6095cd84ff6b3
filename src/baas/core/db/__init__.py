"""Database utilities - engine and session."""

from src.baas.core.db.engine import create_engine_from_settings, create_registry_tables
from src.baas.core.db.session import session_factory

__all__ = [
    # Engine
    "create_engine_from_settings",
    "create_registry_tables",
    # Session
    "session_factory",
]
