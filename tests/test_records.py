"""Tests for the record lifecycle manager over the in-memory store."""

import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from dyntable.adapters.memory import MemoryDocumentStore
from dyntable.content.models import ContentQueryParams, DataType, Field, RelationConfig
from dyntable.content.records import RecordManager
from dyntable.errors import (
    RecordNotFoundError,
    RelationFieldNotFoundError,
    StoreFailure,
    TableNotFoundError,
    ValidationFailed,
)


@pytest_asyncio.fixture
async def manager() -> RecordManager:
    manager = RecordManager(MemoryDocumentStore())
    await manager.registry.create(
        "Contacts",
        "contacts",
        [
            Field(name="name", data_type=DataType.TEXT, required=True),
            Field(name="seq", data_type=DataType.TEXT),
            Field(name="status", data_type=DataType.OPTIONS, options=["active", "inactive"]),
            Field(
                name="company",
                data_type=DataType.RELATION,
                relation_config=RelationConfig(
                    relation_type="many-to-one",
                    related_table="companies",
                    related_field="name",
                    display_field="name",
                ),
            ),
        ],
    )
    await manager.registry.create(
        "Companies",
        "companies",
        [
            Field(name="name", data_type=DataType.TEXT, required=True),
            Field(name="city", data_type=DataType.TEXT),
        ],
    )
    return manager


# ============================================================================
# Test: Writes
# ============================================================================


class TestCreate:
    """Creating records against a registered schema."""
    @pytest.mark.asyncio
    async def test_create_then_read(self, manager: RecordManager) -> None:
        """A created record reads back with a UUID id and equal timestamps."""
        values = {"name": "Ada", "status": "active", "seq": "01"}
        created = await manager.create("contacts", values)
        fetched = await manager.read(created.id)

        assert fetched.values == values
        assert fetched.table_slug == "contacts"
        assert fetched.created_at == fetched.updated_at
        uuid.UUID(fetched.id)

    @pytest.mark.asyncio
    async def test_unknown_table(self, manager: RecordManager) -> None:
        """Creating in an unregistered table raises TableNotFoundError."""
        with pytest.raises(TableNotFoundError):
            await manager.create("nope", {"name": "Ada"})

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, manager: RecordManager) -> None:
        """An undeclared key is rejected and nothing is stored."""
        with pytest.raises(ValidationFailed) as exc_info:
            await manager.create("contacts", {"name": "Ada", "foo": 1})
        assert exc_info.value.codes == ["UnknownField"]
        page = await manager.list("contacts")
        assert page.total == 0

    @pytest.mark.asyncio
    async def test_missing_required_rejected(self, manager: RecordManager) -> None:
        """A missing required field is rejected, naming the field."""
        with pytest.raises(ValidationFailed) as exc_info:
            await manager.create("contacts", {"status": "active"})
        assert exc_info.value.violations[0].field == "name"

    @pytest.mark.asyncio
    async def test_non_json_value_rejected_before_write(self, manager: RecordManager) -> None:
        """A value with no JSON form fails validation and nothing is stored."""
        with pytest.raises(ValidationFailed) as exc_info:
            await manager.create("contacts", {"name": {1, 2}})
        assert exc_info.value.codes == ["InvalidValue"]
        assert exc_info.value.violations[0].field == "name"

        page = await manager.list("contacts")
        assert page.total == 0
        assert page.contents == []

    @pytest.mark.asyncio
    async def test_reserved_key_accepted(self, manager: RecordManager) -> None:
        """Reserved-prefix keys are stored as given."""
        record = await manager.create("contacts", {"name": "Ada", "_note_related": {"x": 1}})
        assert record.values["_note_related"] == {"x": 1}

    @pytest.mark.asyncio
    async def test_strict_mode(self) -> None:
        """Strict mode adds emptiness and option checks."""
        manager = RecordManager(MemoryDocumentStore(), strict=True)
        await manager.registry.create(
            "Contacts",
            "contacts",
            [
                Field(name="name", data_type=DataType.TEXT, required=True),
                Field(name="status", data_type=DataType.OPTIONS, options=["active"]),
            ],
        )
        with pytest.raises(ValidationFailed) as exc_info:
            await manager.create("contacts", {"name": "", "status": "gone"})
        assert exc_info.value.codes == ["EmptyRequiredValue", "OptionNotAllowed"]


class TestUpdateDelete:
    """Replacing and deleting records by id."""
    @pytest.mark.asyncio
    async def test_update_keeps_identity(self, manager: RecordManager) -> None:
        """Updates keep the id, table slug and created_at."""
        created = await manager.create("contacts", {"name": "Ada"})
        updated = await manager.update(created.id, {"name": "Ada L.", "status": "active"})

        assert updated.id == created.id
        assert updated.table_slug == "contacts"
        assert updated.created_at == created.created_at
        assert updated.updated_at >= created.updated_at
        assert (await manager.read(created.id)).values == {"name": "Ada L.", "status": "active"}

    @pytest.mark.asyncio
    async def test_update_replaces_values(self, manager: RecordManager) -> None:
        """The new value map replaces the old one entirely."""
        created = await manager.create("contacts", {"name": "Ada", "status": "active"})
        updated = await manager.update(created.id, {"name": "Ada"})
        assert updated.values == {"name": "Ada"}

    @pytest.mark.asyncio
    async def test_update_validates_new_values(self, manager: RecordManager) -> None:
        """Invalid new values leave the stored record unchanged."""
        created = await manager.create("contacts", {"name": "Ada"})
        with pytest.raises(ValidationFailed):
            await manager.update(created.id, {"foo": "bar"})
        assert (await manager.read(created.id)).values == {"name": "Ada"}

    @pytest.mark.asyncio
    async def test_update_rejects_non_json_value(self, manager: RecordManager) -> None:
        """A datetime value is rejected and the stored record is unchanged."""
        created = await manager.create("contacts", {"name": "Ada"})
        with pytest.raises(ValidationFailed) as exc_info:
            await manager.update(created.id, {"name": datetime(2024, 1, 1)})
        assert exc_info.value.codes == ["InvalidValue"]
        assert (await manager.read(created.id)).values == {"name": "Ada"}
        assert (await manager.list("contacts")).total == 1

    @pytest.mark.asyncio
    async def test_updated_at_never_moves_backwards(self, manager: RecordManager) -> None:
        """A stored updated_at ahead of the clock is kept, not rewound."""
        created = await manager.create("contacts", {"name": "Ada"})
        future = created.updated_at + timedelta(days=1)
        await manager._store.update(
            "contents", {"updated_at": future}, filters={"id": created.id}
        )

        updated = await manager.update(created.id, {"name": "Ada L."})

        assert updated.updated_at == future
        assert updated.values == {"name": "Ada L."}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("spelling", ["braces", "urn", "hex", "upper"])
    async def test_uuid_spellings_resolve(self, manager: RecordManager, spelling: str) -> None:
        """Any UUID spelling of an id reaches the same stored record."""
        created = await manager.create("contacts", {"name": "Ada"})
        parsed = uuid.UUID(created.id)
        record_id = {
            "braces": f"{{{parsed}}}",
            "urn": parsed.urn,
            "hex": parsed.hex,
            "upper": str(parsed).upper(),
        }[spelling]

        assert (await manager.read(record_id)).id == created.id
        assert (await manager.update(record_id, {"name": "Ada L."})).id == created.id
        await manager.delete(record_id)
        with pytest.raises(RecordNotFoundError):
            await manager.read(created.id)

    @pytest.mark.asyncio
    async def test_update_missing(self, manager: RecordManager) -> None:
        """Updating an unknown id raises RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError):
            await manager.update(str(uuid.uuid4()), {"name": "Ada"})

    @pytest.mark.asyncio
    async def test_delete(self, manager: RecordManager) -> None:
        """A deleted record cannot be read or deleted again."""
        created = await manager.create("contacts", {"name": "Ada"})
        await manager.delete(created.id)
        with pytest.raises(RecordNotFoundError):
            await manager.read(created.id)
        with pytest.raises(RecordNotFoundError):
            await manager.delete(created.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("record_id", ["", "not-a-uuid", "1; DROP TABLE contents"])
    async def test_malformed_id_not_found(self, manager: RecordManager, record_id: str) -> None:
        """Ids that are not UUIDs are simply not found."""
        with pytest.raises(RecordNotFoundError):
            await manager.read(record_id)

    @pytest.mark.asyncio
    async def test_schema_delete_makes_records_unreachable(self, manager: RecordManager) -> None:
        """Deleting the schema deletes its records too."""
        ids = [(await manager.create("contacts", {"name": f"c{i}"})).id for i in range(3)]
        assert await manager.registry.delete("contacts") == 3
        for record_id in ids:
            with pytest.raises(RecordNotFoundError):
                await manager.read(record_id)


# ============================================================================
# Test: Listing
# ============================================================================


class TestList:
    """Listing pages of records."""
    @pytest.mark.asyncio
    async def test_page_two_of_twenty_five(self, manager: RecordManager) -> None:
        """Page 2 of 25 records by seq holds records 11 to 20 of 3 pages."""
        for i in range(1, 26):
            await manager.create("contacts", {"name": f"Person {i}", "seq": f"{i:02d}"})

        params = ContentQueryParams(sort_by="seq", page=2, page_size=10)
        page = await manager.list("contacts", params)

        assert [r.values["seq"] for r in page.contents] == [f"{i:02d}" for i in range(11, 21)]
        assert page.total == 25
        assert page.total_pages == 3
        assert (page.page, page.page_size) == (2, 10)

    @pytest.mark.asyncio
    async def test_unmatched_filter_is_empty_page(self, manager: RecordManager) -> None:
        """A filter matching nothing gives an empty page with zero pages."""
        await manager.create("contacts", {"name": "Ada", "status": "active"})
        page = await manager.list("contacts", ContentQueryParams(filters={"status": "inactive"}))
        assert page.contents == []
        assert page.total == 0
        assert page.total_pages == 0

    @pytest.mark.asyncio
    async def test_empty_table_page(self, manager: RecordManager) -> None:
        """An empty table gives an empty page, never None."""
        page = await manager.list("contacts")
        assert page is not None
        assert page.contents == []
        assert page.model_dump(by_alias=True)["totalPages"] == 0

    @pytest.mark.asyncio
    async def test_search_case_insensitive(self, manager: RecordManager) -> None:
        """Search finds records regardless of case."""
        john = await manager.create("contacts", {"name": "John Smith"})
        await manager.create("contacts", {"name": "Ada Lovelace"})

        page = await manager.list("contacts", ContentQueryParams(search="john"))

        assert [r.id for r in page.contents] == [john.id]
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_scoped_to_table(self, manager: RecordManager) -> None:
        """Records of other tables are never listed."""
        await manager.create("companies", {"name": "Acme"})
        page = await manager.list("contacts")
        assert page.total == 0

    @pytest.mark.asyncio
    async def test_unknown_sort_field(self, manager: RecordManager) -> None:
        """Sorting by an undeclared field fails as InvalidQuery."""
        with pytest.raises(ValidationFailed) as exc_info:
            await manager.list("contacts", ContentQueryParams(sort_by="values"))
        assert exc_info.value.codes == ["InvalidQuery"]

    @pytest.mark.asyncio
    async def test_unknown_table(self, manager: RecordManager) -> None:
        """Listing an unregistered table raises TableNotFoundError."""
        with pytest.raises(TableNotFoundError):
            await manager.list("nope")

    @pytest.mark.asyncio
    async def test_relation_enrichment(self, manager: RecordManager) -> None:
        """Matched related records are attached and unmatched ones are skipped."""
        await manager.create("companies", {"name": "Acme", "city": "Paris"})
        await manager.create("contacts", {"name": "Ada", "company": "Acme"})
        await manager.create("contacts", {"name": "Bob", "company": "Nobody Inc"})

        page = await manager.list("contacts", ContentQueryParams(sort_by="name"))
        ada, bob = page.contents

        assert ada.values["_company_related"] == {"name": "Acme", "city": "Paris"}
        assert "_company_related" not in bob.values

    @pytest.mark.asyncio
    async def test_list_all(self, manager: RecordManager) -> None:
        """list_all returns every record regardless of page size."""
        for i in range(15):
            await manager.create("contacts", {"name": f"c{i}"})
        assert len(await manager.list_all("contacts")) == 15

    @pytest.mark.asyncio
    async def test_configured_page_size(self) -> None:
        """The manager's page-size bound applies to listings."""
        manager = RecordManager(MemoryDocumentStore(), default_page_size=3, max_page_size=5)
        await manager.registry.create("T", "t", [Field(name="n", data_type=DataType.NUMBER)])
        for i in range(7):
            await manager.create("t", {"n": i})

        page = await manager.list("t", ContentQueryParams(page_size=50))

        assert page.page_size == 5
        assert len(page.contents) == 5
        assert page.total_pages == 2

    @pytest.mark.asyncio
    async def test_configured_max_cannot_lift_cap(self) -> None:
        """A max_page_size above 100 still serves at most 100 records per page."""
        manager = RecordManager(MemoryDocumentStore(), max_page_size=500)
        await manager.registry.create("T", "t", [Field(name="n", data_type=DataType.NUMBER)])
        for i in range(150):
            await manager.create("t", {"n": i})

        page = await manager.list("t", ContentQueryParams(page_size=500))

        assert page.total == 150
        assert page.page_size == 100
        assert len(page.contents) == 100
        assert page.total_pages == 2


class TestRelatedOptions:
    """Target options for relation fields."""
    @pytest.mark.asyncio
    async def test_lists_target_records(self, manager: RecordManager) -> None:
        """Every record of the related table is offered."""
        await manager.create("companies", {"name": "Acme"})
        await manager.create("companies", {"name": "Globex"})
        options = await manager.related_options("contacts", "company")
        assert sorted(r.values["name"] for r in options) == ["Acme", "Globex"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field_name", ["name", "missing"])
    async def test_not_a_relation(self, manager: RecordManager, field_name: str) -> None:
        """Plain or missing fields raise RelationFieldNotFoundError."""
        with pytest.raises(RelationFieldNotFoundError):
            await manager.related_options("contacts", field_name)


class TestStoreFailures:
    """Store errors during listing surface as StoreFailure."""
    @pytest.mark.asyncio
    async def test_fetch_failure_wrapped(self, manager: RecordManager) -> None:
        """A failed fetch names the table in the StoreFailure entity."""
        manager._store.fetch = AsyncMock(side_effect=RuntimeError("boom"))
        with pytest.raises(StoreFailure) as exc_info:
            await manager.list("contacts")
        assert exc_info.value.entity == "records in 'contacts'"
