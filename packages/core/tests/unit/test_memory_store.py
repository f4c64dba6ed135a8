"""Tests for InMemoryStateStore."""

import pytest

from communityops.domain.interfaces.state_store import AuditQuery, EntityQuery, UniqueConstraintError
from communityops.domain.models.audit_entry import AuditEntry
from communityops.domain.models.entity import EntityKind
from communityops.domain.models.residence import Residence
from communityops.domain.models.vehicle_sticker import StickerStatus, VehicleSticker
from communityops.infrastructure.state_store.memory_store import InMemoryStateStore


def make_residence(unit_number: str = "101", tenant_id: str = "community-a") -> Residence:
    return Residence(
        tenant_id=tenant_id,
        unit_number=unit_number,
        type="condo",
        max_occupancy=4,
        floor_area=85.3,
    )


def make_entry(entity_id: str, action: str, tenant_id: str = "community-a") -> AuditEntry:
    return AuditEntry(
        actor_id="admin-1",
        actor_role="admin_head",
        action_type=f"vehicle_sticker.{action}",
        action=action,
        entity_kind="vehicle_sticker",
        entity_id=entity_id,
        tenant_id=tenant_id,
        prior_status="requested",
        new_status="active",
    )


class TestInMemoryStateStore:
    """Tests for InMemoryStateStore."""

    def setup_method(self) -> None:
        """Set up test environment."""
        self.store = InMemoryStateStore()

    @pytest.mark.asyncio
    async def test_insert_and_get_returns_copy(self) -> None:
        residence = make_residence()
        await self.store.insert_entity(residence)

        loaded = await self.store.get_entity(EntityKind.Residence, residence.id)
        assert loaded == residence
        assert loaded is not residence

        loaded.max_occupancy = 10
        reloaded = await self.store.get_entity(EntityKind.Residence, residence.id)
        assert reloaded.max_occupancy == 4

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self) -> None:
        assert await self.store.get_entity(EntityKind.Residence, "missing") is None

    @pytest.mark.asyncio
    async def test_natural_key_is_unique_per_scope_case_insensitive(self) -> None:
        await self.store.insert_entity(
            VehicleSticker(tenant_id="community-a", household_id="h1", vehicle_plate="ABC 123")
        )

        with pytest.raises(UniqueConstraintError) as exc_info:
            await self.store.insert_entity(
                VehicleSticker(tenant_id="community-a", household_id="h2", vehicle_plate="abc 123")
            )
        assert exc_info.value.field == "vehicle_plate"

        # Same plate in another community is fine
        await self.store.insert_entity(
            VehicleSticker(tenant_id="community-b", household_id="h3", vehicle_plate="ABC 123")
        )

    @pytest.mark.asyncio
    async def test_find_by_natural_key(self) -> None:
        residence = make_residence("A-12")
        await self.store.insert_entity(residence)

        found = await self.store.find_by_natural_key(EntityKind.Residence, "community-a", "a-12")
        assert found is not None
        assert found.id == residence.id
        assert await self.store.find_by_natural_key(EntityKind.Residence, "community-b", "A-12") is None

    @pytest.mark.asyncio
    async def test_write_entity_checks_status_and_version(self) -> None:
        sticker = VehicleSticker(tenant_id="community-a", household_id="h1", vehicle_plate="XYZ 987")
        await self.store.insert_entity(sticker)
        approved = sticker.model_copy(update={"status": StickerStatus.Active, "version": 2})

        assert not await self.store.write_entity(approved, expected_status="active", expected_version=1)
        assert not await self.store.write_entity(approved, expected_status="requested", expected_version=2)
        assert await self.store.write_entity(approved, expected_status="requested", expected_version=1)

        stored = await self.store.get_entity(EntityKind.VehicleSticker, sticker.id)
        assert stored.status == StickerStatus.Active
        assert stored.version == 2

        # A second writer that observed the old state loses
        assert not await self.store.write_entity(approved, expected_status="requested", expected_version=1)

    @pytest.mark.asyncio
    async def test_write_missing_entity_returns_false(self) -> None:
        assert not await self.store.write_entity(make_residence(), expected_status="active", expected_version=1)

    @pytest.mark.asyncio
    async def test_remove_entity_frees_natural_key(self) -> None:
        residence = make_residence()
        await self.store.insert_entity(residence)
        await self.store.remove_entity(EntityKind.Residence, residence.id)

        assert await self.store.get_entity(EntityKind.Residence, residence.id) is None
        await self.store.insert_entity(make_residence())

    @pytest.mark.asyncio
    async def test_list_entities_filters(self) -> None:
        await self.store.insert_entity(make_residence("101"))
        await self.store.insert_entity(make_residence("102"))
        await self.store.insert_entity(make_residence("101", tenant_id="community-b"))

        in_a = await self.store.list_entities(EntityQuery(kind=EntityKind.Residence, tenant_id="community-a"))
        assert [r.unit_number for r in in_a] == ["101", "102"]

        by_field = await self.store.list_entities(
            EntityQuery(kind=EntityKind.Residence, field_equals={"unit_number": "101"})
        )
        assert len(by_field) == 2

        limited = await self.store.list_entities(EntityQuery(kind=EntityKind.Residence, limit=1))
        assert len(limited) == 1

    @pytest.mark.asyncio
    async def test_audit_entries_are_sequenced_and_ordered(self) -> None:
        first = await self.store.append_audit_entry(make_entry("s1", "approve"))
        second = await self.store.append_audit_entry(make_entry("s2", "approve"))
        third = await self.store.append_audit_entry(make_entry("s1", "revoke", tenant_id="community-b"))

        assert [first.sequence, second.sequence, third.sequence] == [1, 2, 3]

        newest = await self.store.list_audit_entries(AuditQuery(newest_first=True, limit=2))
        assert [e.sequence for e in newest] == [3, 2]

        history = await self.store.list_audit_entries(AuditQuery(entity_id="s1"))
        assert [e.action for e in history] == ["approve", "revoke"]

        tenant = await self.store.list_audit_entries(AuditQuery(tenant_id="community-b"))
        assert [e.sequence for e in tenant] == [3]
