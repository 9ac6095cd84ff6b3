"""Identifier validation for dynamically named tables, columns and indexes."""

import re
from typing import Final

from src.baas.core.exceptions import InvalidIdentifier

MAX_IDENTIFIER_LENGTH: Final[int] = 63  # PostgreSQL limit
IDENTIFIER_REGEX: Final[str] = r"^[a-z][a-z0-9_]*$"

_IDENTIFIER_PATTERN: Final[re.Pattern[str]] = re.compile(IDENTIFIER_REGEX)

# Prefixes owned by the storage engines themselves
_FORBIDDEN_PREFIXES: Final[tuple[str, ...]] = ("pg_", "sqlite_")
_FORBIDDEN_NAMES: Final[frozenset[str]] = frozenset({"information_schema", "public"})


class Identifier(str):
    """A validated SQL identifier token.

    Every dynamic table, column and index name passes through this type before
    it reaches a query builder or DDL operation. Values never do: they are
    always bound parameters. Construction raises ``InvalidIdentifier`` on any
    name that is not lowercase alphanumeric plus underscore, starts with a
    letter, and fits within ``MAX_IDENTIFIER_LENGTH``.

    Examples:
        >>> Identifier("baas_1a2b3c_orders")
        'baas_1a2b3c_orders'
        >>> Identifier("orders; DROP TABLE x")  # raises InvalidIdentifier
    """

    __slots__ = ()

    def __new__(cls, value: str, max_length: int = MAX_IDENTIFIER_LENGTH) -> "Identifier":
        validate_identifier(value, max_length)
        return super().__new__(cls, value)


def validate_identifier(name: str, max_length: int = MAX_IDENTIFIER_LENGTH) -> str:
    """Validate a dynamic identifier.

    Args:
        name: The candidate identifier
        max_length: Engine identifier ceiling

    Returns:
        The name unchanged

    Raises:
        InvalidIdentifier: If the name is malformed, too long or reserved
    """
    if not isinstance(name, str) or not name:
        raise InvalidIdentifier("Identifier must be a non-empty string", details={"name": name})

    if len(name) > max_length:
        raise InvalidIdentifier(
            f"Identifier exceeds engine limit: {len(name)} > {max_length}",
            details={"name": name, "max_length": max_length},
        )

    if not _IDENTIFIER_PATTERN.match(name):
        raise InvalidIdentifier(
            f"Invalid identifier: {name!r}. Must start with a lowercase letter and "
            "contain only lowercase letters, numbers and underscores.",
            details={"name": name},
        )

    if name in _FORBIDDEN_NAMES or name.startswith(_FORBIDDEN_PREFIXES):
        raise InvalidIdentifier(f"Identifier is reserved: {name}", details={"name": name})

    return name


def is_valid_identifier(name: str, max_length: int = MAX_IDENTIFIER_LENGTH) -> bool:
    """Return True if ``name`` would be accepted by ``validate_identifier``."""
    try:
        validate_identifier(name, max_length)
    except InvalidIdentifier:
        return False
    return True
