from src.baas.schemas.entity import DeleteResult, EntityPage, EntityScope
from src.baas.schemas.template import (
    FieldCreate,
    FieldUpdate,
    TemplateCreate,
    TemplateUpdate,
)

__all__ = [
    # Entity records
    "DeleteResult",
    "EntityPage",
    "EntityScope",
    # Templates
    "FieldCreate",
    "FieldUpdate",
    "TemplateCreate",
    "TemplateUpdate",
]
