"""Field type registry: a closed map from FieldKind to its plugin."""

from collections.abc import Iterable

from src.baas.core.exceptions import UnknownFieldType
from src.baas.fields.base import FieldTypePlugin
from src.baas.fields.files import FileField, ImageField
from src.baas.fields.password import PasswordField
from src.baas.fields.reference import ReferenceField
from src.baas.fields.scalar import (
    BooleanField,
    DateField,
    DateTimeField,
    DecimalField,
    EmailField,
    IntegerField,
    JsonField,
    ListIntegerField,
    ListStringField,
    StringField,
    TextField,
    UrlField,
)
from src.baas.models.enums import FieldKind

BUILTIN_PLUGINS: tuple[type[FieldTypePlugin], ...] = (
    StringField,
    TextField,
    IntegerField,
    DecimalField,
    BooleanField,
    DateField,
    DateTimeField,
    EmailField,
    UrlField,
    JsonField,
    ListStringField,
    ListIntegerField,
    PasswordField,
    FileField,
    ImageField,
    ReferenceField,
)


class FieldTypeRegistry:
    """Resolves a declared field type to its plugin with one dict lookup.

    Only ``FieldKind`` members can be registered, so the set of types is
    closed; anything else resolves to ``UnknownFieldType``.
    """

    def __init__(self, plugins: Iterable[FieldTypePlugin]):
        self._plugins: dict[FieldKind, FieldTypePlugin] = {}
        for plugin in plugins:
            self.register(plugin)

    def register(self, plugin: FieldTypePlugin) -> None:
        """Bind a plugin to its kind, replacing any previous binding."""
        self._plugins[FieldKind(plugin.kind)] = plugin

    def resolve(self, field_type: str) -> FieldTypePlugin:
        """Return the plugin for a declared type.

        Raises:
            UnknownFieldType: If the type is not a registered FieldKind
        """
        try:
            return self._plugins[FieldKind(field_type)]
        except (ValueError, KeyError) as e:
            raise UnknownFieldType(field_type, self.available()) from e

    def available(self) -> list[str]:
        return sorted(kind.value for kind in self._plugins)

    def __contains__(self, field_type: object) -> bool:
        try:
            return FieldKind(field_type) in self._plugins
        except ValueError:
            return False


def default_registry() -> FieldTypeRegistry:
    """Registry with every built-in field type."""
    return FieldTypeRegistry(plugin_cls() for plugin_cls in BUILTIN_PLUGINS)
