"""Physical table naming for entity templates.

A physical table name is a pure function of (tenant_id, project_id, entity_name):

    <prefix><6-hex fingerprint of "tenant_project">_<entity_name>

e.g. ``baas_1a2b3c_orders``. The fingerprint keeps tenant and project ids
(arbitrary, possibly long strings) out of the identifier while still
partitioning tables per scope.

Known risk: two different tenant/project pairs can share a 6-hex fingerprint
(1 in 16.7M per pair). A collision only matters when both scopes also define
an entity with the same name; it is not detected at runtime.
"""

import re
from dataclasses import dataclass
from typing import Final

from src.baas.core.config import Settings
from src.baas.core.security import MAX_IDENTIFIER_LENGTH, fingerprint

DEFAULT_TABLE_PREFIX: Final[str] = "baas_"
FINGERPRINT_LENGTH: Final[int] = 6
ENTITY_HASH_LENGTH: Final[int] = 4
MIN_ENTITY_NAME_LENGTH: Final[int] = 2
INDEX_HASH_LENGTH: Final[int] = 16


def scope_fingerprint(tenant_id: str, project_id: str) -> str:
    """Fingerprint of a tenant/project scope."""
    return fingerprint(f"{tenant_id}_{project_id}", FINGERPRINT_LENGTH)


def fixed_prefix_length(prefix: str = DEFAULT_TABLE_PREFIX) -> int:
    """Length of ``<prefix><fingerprint>_``: 12 for the default ``baas_`` prefix."""
    return len(prefix) + FINGERPRINT_LENGTH + 1


def generate_table_name(
    tenant_id: str,
    project_id: str,
    entity_name: str,
    *,
    prefix: str = DEFAULT_TABLE_PREFIX,
    max_length: int = MAX_IDENTIFIER_LENGTH,
) -> str:
    """Derive the physical table name for an entity.

    Names that fit within ``max_length`` are returned verbatim. Longer entity
    names are truncated and suffixed with ``_h`` plus a short hash of the full
    entity name, so distinct long names stay distinct. The result never
    exceeds ``max_length``.
    """
    scope = f"{prefix}{scope_fingerprint(tenant_id, project_id)}_"
    table_name = f"{scope}{entity_name}"
    if len(table_name) <= max_length:
        return table_name

    entity_hash = fingerprint(entity_name, ENTITY_HASH_LENGTH)
    suffix = f"_h{entity_hash}"
    room = max_length - len(scope) - len(suffix)
    truncated = entity_name[:room].rstrip("_") if room > 0 else ""
    if truncated:
        return f"{scope}{truncated}{suffix}"

    # Degenerate ceiling: keep only the hash
    return f"{scope}h{entity_hash}"[:max_length]


def calculate_max_entity_name_length(
    tenant_id: str,
    project_id: str,
    *,
    prefix: str = DEFAULT_TABLE_PREFIX,
    max_length: int = MAX_IDENTIFIER_LENGTH,
) -> int:
    """Longest entity name that maps to a table name without truncation.

    The fixed prefix length does not depend on the tenant or project ids; they
    are accepted so callers validate against the scope they operate in.
    """
    return max(MIN_ENTITY_NAME_LENGTH, max_length - fixed_prefix_length(prefix))


@dataclass(frozen=True)
class ParsedTableName:
    fingerprint: str
    entity_part: str


def parse_table_name(
    table_name: str,
    *,
    prefix: str = DEFAULT_TABLE_PREFIX,
) -> ParsedTableName | None:
    """Split a physical table name into fingerprint and entity part.

    Returns None if the name was not produced by ``generate_table_name``. The
    entity part of a truncated name keeps its ``_h<hash>`` suffix.
    """
    match = re.fullmatch(
        rf"{re.escape(prefix)}([0-9a-f]{{{FINGERPRINT_LENGTH}}})_(.+)",
        table_name,
    )
    if match is None:
        return None
    return ParsedTableName(fingerprint=match.group(1), entity_part=match.group(2))


def unique_index_name(table_name: str, column_name: str) -> str:
    """Deterministic, bounded name for the unique index backing a unique field."""
    return f"ux_{fingerprint(f'{table_name}.{column_name}', INDEX_HASH_LENGTH)}"


class TableNameGenerator:
    """Settings-bound facade over the naming functions.

    Injected into the synchronizer, template service and gateway so every
    component derives names with the same prefix and identifier ceiling.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_TABLE_PREFIX,
        max_length: int = MAX_IDENTIFIER_LENGTH,
    ):
        self.prefix = prefix
        self.max_length = max_length

    @classmethod
    def from_settings(cls, settings: Settings) -> "TableNameGenerator":
        return cls(prefix=settings.table_prefix, max_length=settings.identifier_max_length)

    def table_name(self, tenant_id: str, project_id: str, entity_name: str) -> str:
        return generate_table_name(
            tenant_id, project_id, entity_name, prefix=self.prefix, max_length=self.max_length
        )

    def max_entity_name_length(self, tenant_id: str, project_id: str) -> int:
        return calculate_max_entity_name_length(
            tenant_id, project_id, prefix=self.prefix, max_length=self.max_length
        )

    def parse(self, table_name: str) -> ParsedTableName | None:
        return parse_table_name(table_name, prefix=self.prefix)
