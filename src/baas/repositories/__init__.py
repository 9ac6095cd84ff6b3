"""Repository layer - data access abstraction for the template registry."""

from src.baas.repositories.base import BaseRepository
from src.baas.repositories.template import FieldRepository, TemplateRepository

__all__ = [
    "BaseRepository",
    "FieldRepository",
    "TemplateRepository",
]
