"""Integration tests for file and image fields on entity records."""

import pytest
from sqlalchemy import text

from src.baas.core.exceptions import (
    FileUploadFailed,
    InvalidFieldTypeForFile,
    InvalidImageFileType,
    StorageError,
    UniqueConstraintViolation,
)
from src.baas.core.files import UploadedFile
from src.baas.schemas import FieldCreate
from tests.utils import png_upload, scope

pytestmark = pytest.mark.integration

TEXT_UPLOAD = UploadedFile(filename="notes.txt", content=b"plain text\n", content_type="text/plain")


@pytest.fixture
async def documents(make_entity):
    await make_entity(
        "documents",
        [
            FieldCreate(name="title", label="Title", type="string"),
            FieldCreate(name="attachment", label="Attachment", type="file"),
            FieldCreate(name="cover", label="Cover", type="image"),
            FieldCreate(
                name="gallery",
                label="Gallery",
                type="image",
                settings={"multiple": True},
            ),
        ],
    )
    return scope("documents")


async def test_orders_with_receipt_end_to_end(services, make_entity, file_manager):
    await make_entity(
        "orders",
        [
            FieldCreate(
                name="order_number", label="Order number", type="text", required=True, unique=True
            ),
            FieldCreate(name="receipt", label="Receipt", type="file"),
        ],
        tenant_id="t1",
        project_id="p1",
    )
    orders = scope("orders", tenant_id="t1", project_id="p1")

    created = await services.gateway.create(orders, {"order_number": "A-100"})
    assert created["id"] == 1

    with pytest.raises(UniqueConstraintViolation) as exc_info:
        await services.gateway.create(orders, {"order_number": "A-100"})
    assert exc_info.value.field_name == "order_number"

    first = await services.gateway.update(orders, 1, {"receipt": TEXT_UPLOAD})
    old_receipt = first["receipt"]
    second = await services.gateway.update(
        orders, 1, {"receipt": UploadedFile(filename="receipt.pdf", content=b"%PDF-1.7")}
    )

    assert second["receipt"] != old_receipt
    assert file_manager.deleted == [old_receipt]
    assert set(file_manager.files) == {second["receipt"]}


async def test_txt_rejected_by_image_field_but_accepted_by_file_field(
    services, documents, file_manager
):
    with pytest.raises(InvalidImageFileType):
        await services.gateway.create(documents, {"cover": TEXT_UPLOAD})
    assert file_manager.files == {}

    record = await services.gateway.create(documents, {"attachment": TEXT_UPLOAD})

    assert record["attachment"] in file_manager.files
    assert file_manager.metadata[record["attachment"]] == {
        "tenant_id": "acme",
        "project_id": "main",
        "entity": "documents",
        "field": "attachment",
    }


async def test_invalid_upload_aborts_before_any_file_is_stored(services, documents, file_manager):
    with pytest.raises(InvalidImageFileType):
        await services.gateway.create(
            documents, {"attachment": TEXT_UPLOAD, "cover": TEXT_UPLOAD}
        )

    assert file_manager.files == {}
    assert (await services.gateway.list(documents)).total == 0


async def test_failed_upload_discards_earlier_uploads(services, make_entity):
    file_manager = services.gateway.file_manager
    file_manager.fail_on.add("broken.png")
    await make_entity(
        "albums",
        [FieldCreate(name="photos", label="Photos", type="image", settings={"multiple": True})],
    )

    with pytest.raises(FileUploadFailed) as exc_info:
        await services.gateway.create(
            scope("albums"), {"photos": [png_upload("one.png"), png_upload("broken.png")]}
        )

    assert exc_info.value.details["reason"] == "storage quota exceeded"
    assert file_manager.files == {}
    assert len(file_manager.deleted) == 1
    assert (await services.gateway.list(scope("albums"))).total == 0


async def test_failed_write_discards_uploads(services, make_entity, file_manager):
    await make_entity(
        "badges",
        [
            FieldCreate(name="code", label="Code", type="string", unique=True),
            FieldCreate(name="icon", label="Icon", type="image"),
        ],
    )
    await services.gateway.create(scope("badges"), {"code": "gold", "icon": png_upload()})

    with pytest.raises(UniqueConstraintViolation):
        await services.gateway.create(scope("badges"), {"code": "gold", "icon": png_upload()})

    assert len(file_manager.files) == 1
    assert len(file_manager.deleted) == 1


async def test_upload_to_non_file_field(services, documents):
    with pytest.raises(InvalidFieldTypeForFile) as exc_info:
        await services.gateway.create(documents, {"title": png_upload()})

    assert exc_info.value.field_name == "title"


async def test_empty_file_input_on_update_keeps_the_file(services, documents, file_manager):
    record = await services.gateway.create(documents, {"cover": png_upload()})

    updated = await services.gateway.update(
        documents, record["id"], {"cover": None, "title": "Renamed"}
    )

    assert updated["cover"] == record["cover"]
    assert file_manager.deleted == []


async def test_existing_file_id_is_kept_on_update(services, documents, file_manager):
    record = await services.gateway.create(
        documents, {"gallery": [png_upload("a.png"), png_upload("b.png")]}
    )
    first, second = record["gallery"]

    updated = await services.gateway.update(
        documents, record["id"], {"gallery": [first, png_upload("c.png")]}
    )

    assert updated["gallery"][0] == first
    assert file_manager.deleted == [second]


async def test_delete_removes_every_referenced_file(services, documents, file_manager):
    record = await services.gateway.create(
        documents,
        {
            "attachment": TEXT_UPLOAD,
            "cover": png_upload(),
            "gallery": [png_upload("a.png"), png_upload("b.png")],
        },
    )

    result = await services.gateway.delete(documents, record["id"])

    assert sorted(d.deleted_filename for d in result.deleted_files) == [
        "a.png",
        "b.png",
        "notes.txt",
        "photo.png",
    ]
    assert file_manager.files == {}


async def test_file_already_gone_does_not_fail_delete(services, documents, file_manager):
    record = await services.gateway.create(documents, {"cover": png_upload()})
    file_manager.files.clear()

    result = await services.gateway.delete(documents, record["id"])

    assert result.deleted_files == []


async def test_storage_failure_is_wrapped_logged_and_discards_uploads(
    services, make_entity, file_manager, engine, capturing_logger
):
    await make_entity(
        "badges",
        [
            FieldCreate(name="code", label="Code", type="string"),
            FieldCreate(name="icon", label="Icon", type="image"),
        ],
    )
    table_name = services.naming.table_name("acme", "main", "badges")
    async with engine.begin() as conn:
        # The trigger body names a table that does not exist, so every insert fails
        await conn.execute(
            text(
                f'CREATE TRIGGER badges_outage BEFORE INSERT ON "{table_name}" '
                "BEGIN SELECT 1 FROM storage_outage; END"
            )
        )

    with pytest.raises(StorageError) as exc_info:
        await services.gateway.create(scope("badges"), {"code": "gold", "icon": png_upload()})

    assert exc_info.value.code == "INTERNAL_ERROR"
    assert exc_info.value.details == {"operation": "create"}
    assert "storage_outage" not in str(exc_info.value)
    errors = [call for call in capturing_logger.calls if call.method_name == "error"]
    assert errors[0].kwargs["event"] == "Storage operation failed"
    assert errors[0].kwargs["table"] == table_name
    assert file_manager.files == {}
    assert file_manager.deleted == ["file_1"]
