"""Shared enums for models."""

from enum import Enum


class TemplateStatus(str, Enum):
    """Entity template status. Disabled templates keep their physical table."""

    ENABLED = "enabled"
    DISABLED = "disabled"


class FieldKind(str, Enum):
    """Closed set of field types a template field may declare."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    EMAIL = "email"
    URL = "url"
    JSON = "json"
    LIST_STRING = "list_string"
    LIST_INTEGER = "list_integer"
    PASSWORD = "password"
    FILE = "file"
    IMAGE = "image"
    REFERENCE = "reference"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"
