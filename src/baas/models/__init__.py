"""Model exports.

Import from here: `from src.baas.models import EntityTemplate, EntityField`
"""

# Enums
from src.baas.models.enums import FieldKind, SortDirection, TemplateStatus

# Registry models
from src.baas.models.template import EntityField, EntityTemplate

__all__ = [
    # Enums
    "FieldKind",
    "SortDirection",
    "TemplateStatus",
    # Registry models
    "EntityField",
    "EntityTemplate",
]
