"""Field type plugins and the registry that resolves them."""

from src.baas.fields.base import (
    OMIT,
    FieldTypePlugin,
    FilterMode,
    OutputContext,
    ValidationResult,
)
from src.baas.fields.files import FileField, ImageField
from src.baas.fields.registry import FieldTypeRegistry, default_registry

__all__ = [
    # Contract
    "OMIT",
    "FieldTypePlugin",
    "FilterMode",
    "OutputContext",
    "ValidationResult",
    # File types (the gateway treats these specially)
    "FileField",
    "ImageField",
    # Registry
    "FieldTypeRegistry",
    "default_registry",
]
