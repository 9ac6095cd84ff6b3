"""Test factories for generating test data.

Re-exports all factories for convenient imports:
    from tests.factories import EntityTemplateFactory, EntityFieldFactory
"""

from tests.factories.base import BaseFactory, generate_uuid, unique_suffix
from tests.factories.template import EntityFieldFactory, EntityTemplateFactory

__all__ = [
    # Base
    "BaseFactory",
    "generate_uuid",
    "unique_suffix",
    # Registry
    "EntityFieldFactory",
    "EntityTemplateFactory",
]
