"""Integration tests for template and field management."""

import pytest

from src.baas.core.exceptions import (
    FieldNameConflict,
    FieldNotFound,
    InvalidFieldDefinition,
    InvalidTemplateDefinition,
    TemplateNameConflict,
    TemplateNotFound,
    UnknownFieldType,
)
from src.baas.models import TemplateStatus
from src.baas.schemas import FieldCreate, FieldUpdate, TemplateCreate, TemplateUpdate
from tests.factories import generate_uuid
from tests.utils import PROJECT, TENANT, scope

pytestmark = pytest.mark.integration


async def test_create_and_get_template(services):
    created = await services.templates.create_template(
        TENANT, PROJECT, TemplateCreate(name="orders", label="  Orders  ")
    )

    fetched = await services.templates.get_template(TENANT, PROJECT, created.id)
    by_name = await services.templates.get_template_by_name(TENANT, PROJECT, "orders")

    assert fetched.id == created.id == by_name.id
    assert fetched.label == "Orders"
    assert fetched.status == TemplateStatus.ENABLED.value


async def test_template_name_conflict(services, make_entity):
    await make_entity("orders", {})

    with pytest.raises(TemplateNameConflict):
        await services.templates.create_template(
            TENANT, PROJECT, TemplateCreate(name="orders", label="Orders again")
        )


async def test_same_name_in_other_scope_is_allowed(services, make_entity):
    first = await make_entity("orders", {})
    second = await make_entity("orders", {}, tenant_id="globex")

    assert first.id != second.id
    assert services.naming.table_name(TENANT, PROJECT, "orders") != services.naming.table_name(
        "globex", PROJECT, "orders"
    )


async def test_templates_are_isolated_by_scope(services, make_entity):
    template = await make_entity("orders", {})

    with pytest.raises(TemplateNotFound):
        await services.templates.get_template("globex", PROJECT, template.id)
    assert await services.templates.list_templates("globex", PROJECT) == []


async def test_entity_name_longer_than_scope_limit_is_rejected(services):
    name = "a" * (services.naming.max_entity_name_length(TENANT, PROJECT) + 1)

    with pytest.raises(InvalidTemplateDefinition) as exc_info:
        await services.templates.create_template(
            TENANT, PROJECT, TemplateCreate(name=name, label="Too long")
        )

    assert exc_info.value.details["max_length"] == 51


async def test_disabled_templates_are_hidden(services, make_entity):
    orders = await make_entity("orders", {"title": "string"})
    await make_entity("customers", {})

    await services.templates.disable_template(TENANT, PROJECT, orders.id)

    visible = await services.templates.list_templates(TENANT, PROJECT)
    everything = await services.templates.list_templates(TENANT, PROJECT, include_disabled=True)
    assert [t.name for t in visible] == ["customers"]
    assert [t.name for t in everything] == ["customers", "orders"]
    with pytest.raises(TemplateNotFound):
        await services.gateway.list(scope("orders"))


async def test_disabled_template_keeps_its_data(services, make_entity):
    orders = await make_entity("orders", {"title": "string"})
    await services.gateway.create(scope("orders"), {"title": "kept"})

    await services.templates.disable_template(TENANT, PROJECT, orders.id)
    await services.templates.enable_template(TENANT, PROJECT, orders.id)

    page = await services.gateway.list(scope("orders"))
    assert [row["title"] for row in page.rows] == ["kept"]


async def test_disabled_template_still_reserves_its_name(services, make_entity):
    orders = await make_entity("orders", {})
    await services.templates.disable_template(TENANT, PROJECT, orders.id)

    with pytest.raises(TemplateNameConflict):
        await services.templates.create_template(
            TENANT, PROJECT, TemplateCreate(name="orders", label="Orders")
        )


async def test_update_template_metadata(services, make_entity):
    orders = await make_entity("orders", {})

    updated = await services.templates.update_template(
        TENANT,
        PROJECT,
        orders.id,
        TemplateUpdate(label="Sales orders", description="All orders", settings={"icon": "cart"}),
    )

    assert updated.label == "Sales orders"
    assert updated.description == "All orders"
    assert updated.settings == {"icon": "cart"}
    assert updated.name == "orders"


async def test_fields_are_listed_by_weight(services, make_entity):
    template = await make_entity(
        "orders",
        [
            FieldCreate(name="zeta", label="Zeta", type="string", weight=1),
            FieldCreate(name="alpha", label="Alpha", type="string", weight=2),
        ],
    )

    fields = await services.templates.list_fields(TENANT, PROJECT, template.id)

    assert [f.name for f in fields] == ["zeta", "alpha"]


@pytest.mark.parametrize("name", ["id", "uuid", "tenant_id", "project_id", "created", "updated"])
async def test_system_column_names_are_reserved(services, make_entity, name):
    template = await make_entity("orders", {})

    with pytest.raises(InvalidFieldDefinition):
        await services.templates.create_field(
            TENANT, PROJECT, template.id, FieldCreate(name=name, label="X", type="string")
        )


async def test_duplicate_field_name(services, make_entity):
    template = await make_entity("orders", {"title": "string"})

    with pytest.raises(FieldNameConflict) as exc_info:
        await services.templates.create_field(
            TENANT, PROJECT, template.id, FieldCreate(name="title", label="Title", type="text")
        )

    assert exc_info.value.field_name == "title"


async def test_unknown_field_type(services, make_entity):
    template = await make_entity("orders", {})

    with pytest.raises(UnknownFieldType):
        await services.templates.create_field(
            TENANT, PROJECT, template.id, FieldCreate(name="shape", label="Shape", type="geometry")
        )


async def test_unique_is_rejected_for_unfilterable_types(services, make_entity):
    template = await make_entity("orders", {})

    with pytest.raises(InvalidFieldDefinition) as exc_info:
        await services.templates.create_field(
            TENANT,
            PROJECT,
            template.id,
            FieldCreate(name="meta", label="Meta", type="json", unique=True),
        )

    assert "Fields of type 'json' cannot be unique" in exc_info.value.details["errors"]


async def test_invalid_field_settings(services, make_entity):
    template = await make_entity("orders", {})

    with pytest.raises(InvalidFieldDefinition):
        await services.templates.create_field(
            TENANT,
            PROJECT,
            template.id,
            FieldCreate(name="customer", label="Customer", type="reference"),
        )


@pytest.mark.parametrize("settings", [{"min": "5"}, {"min": 10, "max": 1}])
async def test_integer_bounds_must_be_ordered_integers(services, make_entity, settings):
    template = await make_entity("orders", {})

    with pytest.raises(InvalidFieldDefinition):
        await services.templates.create_field(
            TENANT,
            PROJECT,
            template.id,
            FieldCreate(name="qty", label="Quantity", type="integer", settings=settings),
        )

    assert await services.templates.list_fields(TENANT, PROJECT, template.id) == []



async def test_unique_in_settings_sets_the_flag(services, make_entity):
    template = await make_entity("orders", {})

    created = await services.templates.create_field(
        TENANT,
        PROJECT,
        template.id,
        FieldCreate(name="code", label="Code", type="string", settings={"unique": True}),
    )

    assert created.unique is True
    assert "unique" not in created.settings


async def test_update_field(services, make_entity):
    template = await make_entity("orders", {"title": "string"})
    title = (await services.templates.list_fields(TENANT, PROJECT, template.id))[0]

    updated = await services.templates.update_field(
        TENANT,
        PROJECT,
        template.id,
        title.id,
        FieldUpdate(label="Headline", required=True, weight=5),
    )

    assert updated.label == "Headline"
    assert updated.required is True
    assert updated.weight == 5
    assert updated.type == "string"


async def test_update_field_cannot_change_column_type(services, make_entity):
    template = await make_entity("orders", {"title": "string"})
    title = (await services.templates.list_fields(TENANT, PROJECT, template.id))[0]

    with pytest.raises(InvalidFieldDefinition):
        await services.templates.update_field(
            TENANT, PROJECT, template.id, title.id, FieldUpdate(settings={"max_length": 20})
        )


async def test_field_of_another_template_is_not_found(services, make_entity):
    orders = await make_entity("orders", {"title": "string"})
    customers = await make_entity("customers", {"name": "string"})
    name_field = (await services.templates.list_fields(TENANT, PROJECT, customers.id))[0]

    with pytest.raises(FieldNotFound):
        await services.templates.update_field(
            TENANT, PROJECT, orders.id, name_field.id, FieldUpdate(label="Nope")
        )
    with pytest.raises(FieldNotFound):
        await services.templates.delete_field(TENANT, PROJECT, orders.id, generate_uuid())
