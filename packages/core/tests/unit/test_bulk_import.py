"""Tests for BulkImportPipeline component."""

import pytest

from communityops.domain.models.entity import EntityKind
from communityops.domain.models.system_error import (
    BatchRejectedError,
    EntityNotFoundError,
    ValidationFailedError,
)
from fixtures.test_data import (
    SUPERADMIN,
    admin_for,
    audit_count,
    make_engine,
    seed_community,
    seed_residence,
)


def row(unit_number: str, **overrides) -> dict:
    values = {"unit_number": unit_number, "type": "condo", "max_occupancy": "4", "floor_area": "85.5"}
    values.update(overrides)
    return values


class TestBulkImportPipeline:
    """Tests for BulkImportPipeline component."""

    def setup_method(self) -> None:
        """Set up test environment."""
        self.engine = make_engine(max_batch_rows=10)
        self.store = self.engine.state_store
        self.observability = self.engine.observability_manager

    async def seed(self) -> None:
        self.community = await seed_community(self.engine)
        self.admin = admin_for(self.community.id)

    @pytest.mark.asyncio
    async def test_existing_key_fails_only_its_row(self) -> None:
        await self.seed()
        await seed_residence(self.engine, self.admin, "102")
        rows = [row("101"), row("102"), row("103"), row("104"), row("105")]

        result = await self.engine.import_batch("residence", rows, self.community.id, self.admin)

        assert result.total_rows == 5
        assert result.success_count == 4
        assert result.failure_count == 1
        assert result.success_count + result.failure_count == len(rows)
        error = result.errors[0]
        assert error.row_index == 2
        assert error.key == "102"
        assert error.message == "Unit number 102 already exists"
        assert error.category == "validation_failed"
        for unit in ("101", "103", "104", "105"):
            assert await self.store.find_by_natural_key(EntityKind.Residence, self.community.id, unit)

    @pytest.mark.asyncio
    async def test_duplicate_keys_within_batch_reject_everything(self) -> None:
        await self.seed()
        entries_before = await audit_count(self.engine)
        rows = [row("101"), row("102"), row("103"), row(" 101 ")]

        with pytest.raises(BatchRejectedError) as exc_info:
            await self.engine.import_batch("residence", rows, self.community.id, self.admin)

        assert exc_info.value.duplicate_keys == ["101"]
        assert "101" in exc_info.value.message
        assert await self.store.find_by_natural_key(EntityKind.Residence, self.community.id, "102") is None
        assert await audit_count(self.engine) == entries_before
        assert self.observability.events_of("batch_rejected")

    @pytest.mark.asyncio
    async def test_duplicate_keys_compare_case_insensitively(self) -> None:
        await self.seed()

        with pytest.raises(BatchRejectedError):
            await self.engine.import_batch(
                "residence", [row("A-1"), row("a-1")], self.community.id, self.admin
            )

    @pytest.mark.asyncio
    async def test_duplicate_of_unparseable_row_rejects_batch(self) -> None:
        await self.seed()
        entries_before = await audit_count(self.engine)
        rows = [row("101", type="castle"), row("102"), row("101")]

        with pytest.raises(BatchRejectedError) as exc_info:
            await self.engine.import_batch("residence", rows, self.community.id, self.admin)

        assert exc_info.value.duplicate_keys == ["101"]
        assert await self.store.find_by_natural_key(EntityKind.Residence, self.community.id, "101") is None
        assert await self.store.find_by_natural_key(EntityKind.Residence, self.community.id, "102") is None
        assert await audit_count(self.engine) == entries_before

    @pytest.mark.asyncio
    async def test_invalid_rows_are_reported_and_others_commit(self) -> None:
        await self.seed()
        rows = [
            row("101"),
            row("102", max_occupancy="25"),
            row("103", type="castle"),
            row("", floor_area="90"),
            row("105", lot_area=""),
        ]

        result = await self.engine.import_batch("residence", rows, self.community.id, self.admin)

        assert result.success_count == 2
        assert result.failure_count == 3
        assert [e.row_index for e in result.errors] == [2, 3, 4]
        assert result.errors[0].message.startswith("Unit number 102:")
        assert result.errors[2].key is None
        assert result.errors[2].message.startswith("Row 4:")
        assert len(result.created_ids) == 2

        imported = self.observability.events_of("batch_imported")[-1]["payload"]
        assert imported["success_count"] == 2
        assert imported["failure_count"] == 3

    @pytest.mark.asyncio
    async def test_rows_are_committed_through_create(self) -> None:
        await self.seed()
        entries_before = await audit_count(self.engine)

        result = await self.engine.import_batch(
            "residence", [row("201", type="Single Family", lot_area="150")], self.community.id, self.admin
        )

        residence = await self.engine.get_entity("residence", result.created_ids[0], self.admin)
        assert residence.type.value == "single_family"
        assert residence.lot_area == 150.0
        assert residence.tenant_id == self.community.id
        assert await audit_count(self.engine) == entries_before + 1

    @pytest.mark.asyncio
    async def test_batch_size_is_limited(self) -> None:
        await self.seed()
        rows = [row(str(100 + n)) for n in range(11)]

        with pytest.raises(ValidationFailedError, match="at most 10 rows"):
            await self.engine.import_batch("residence", rows, self.community.id, self.admin)

    @pytest.mark.asyncio
    async def test_community_must_be_active(self) -> None:
        await self.seed()
        await self.engine.transition("community", self.community.id, "suspend", {}, SUPERADMIN)

        with pytest.raises(ValidationFailedError, match="must be active"):
            await self.engine.import_batch("residence", [row("101")], self.community.id, self.admin)

    @pytest.mark.asyncio
    async def test_other_community_is_not_found(self) -> None:
        await self.seed()
        other = await seed_community(self.engine, name="Sunrise Village")

        with pytest.raises(EntityNotFoundError):
            await self.engine.import_batch("residence", [row("101")], other.id, self.admin)

    @pytest.mark.asyncio
    async def test_kinds_without_bulk_import_are_rejected(self) -> None:
        await self.seed()

        with pytest.raises(ValidationFailedError, match="Bulk import is not available"):
            await self.engine.import_batch("vehicle_sticker", [], self.community.id, self.admin)
