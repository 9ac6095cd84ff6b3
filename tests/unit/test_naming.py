"""Tests for physical table naming."""

import re

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from src.baas.core.security import is_valid_identifier
from src.baas.services.naming import (
    TableNameGenerator,
    calculate_max_entity_name_length,
    fixed_prefix_length,
    generate_table_name,
    parse_table_name,
    scope_fingerprint,
    unique_index_name,
)

pytestmark = pytest.mark.unit

entity_names = st.from_regex(r"^[a-z][a-z0-9_]{1,80}$", fullmatch=True)
scope_ids = st.text(min_size=1, max_size=64)
ceilings = st.integers(min_value=32, max_value=63)


def test_short_name_is_prefix_fingerprint_entity():
    name = generate_table_name("acme", "main", "orders")

    assert re.fullmatch(r"baas_[0-9a-f]{6}_orders", name)
    assert name == f"baas_{scope_fingerprint('acme', 'main')}_orders"


def test_name_is_deterministic():
    assert generate_table_name("acme", "main", "orders") == generate_table_name(
        "acme", "main", "orders"
    )


def test_different_scopes_get_different_tables():
    assert generate_table_name("acme", "main", "orders") != generate_table_name(
        "acme", "staging", "orders"
    )


def test_fixed_prefix_length_default():
    assert fixed_prefix_length() == 12
    assert calculate_max_entity_name_length("acme", "main") == 63 - 12


def test_max_entity_name_length_has_floor():
    assert calculate_max_entity_name_length("acme", "main", max_length=13) == 2


def test_name_at_limit_is_not_truncated():
    entity = "a" * calculate_max_entity_name_length("acme", "main")
    name = generate_table_name("acme", "main", entity)

    assert len(name) == 63
    assert name.endswith(entity)


def test_long_names_are_truncated_with_hash_suffix():
    entity = "customer_relationship_management_record_with_a_very_long_name"
    name = generate_table_name("acme", "main", entity)

    assert len(name) <= 63
    assert re.search(r"_h[0-9a-f]{4}$", name)


def test_distinct_long_names_sharing_a_prefix_stay_distinct():
    base = "x" * 70
    assert generate_table_name("acme", "main", base + "_one") != generate_table_name(
        "acme", "main", base + "_two"
    )


@given(tenant=scope_ids, project=scope_ids, entity=entity_names, ceiling=ceilings)
@settings(max_examples=200)
def test_generated_names_are_bounded_valid_identifiers(tenant, project, entity, ceiling):
    name = generate_table_name(tenant, project, entity, max_length=ceiling)

    assert len(name) <= ceiling
    assert is_valid_identifier(name, ceiling)


@given(tenant=scope_ids, project=scope_ids, entity=entity_names)
def test_generated_names_parse_back(tenant, project, entity):
    parsed = parse_table_name(generate_table_name(tenant, project, entity))

    assert parsed is not None
    assert parsed.fingerprint == scope_fingerprint(tenant, project)


def test_parse_rejects_foreign_names():
    assert parse_table_name("users") is None
    assert parse_table_name("baas_entity_template") is None


def test_unique_index_name_is_short_and_stable():
    index = unique_index_name("baas_1a2b3c_orders", "email")

    assert index == unique_index_name("baas_1a2b3c_orders", "email")
    assert index != unique_index_name("baas_1a2b3c_orders", "code")
    assert re.fullmatch(r"ux_[0-9a-f]{16}", index)


def test_generator_applies_configured_prefix_and_ceiling():
    naming = TableNameGenerator(prefix="app_", max_length=32)

    name = naming.table_name("acme", "main", "a_rather_long_entity_name_here")

    assert name.startswith("app_")
    assert len(name) <= 32
    assert naming.max_entity_name_length("acme", "main") == 32 - 11
    assert naming.parse(name) is not None
