"""Tests for the transition contract shared by every lifecycle machine."""

import asyncio

import pytest

from communityops.domain.models.actor import Actor, AdminRole
from communityops.domain.models.association_fee import FeeStatus
from communityops.domain.models.entity import EntityKind
from communityops.domain.models.system_error import (
    AuditUnavailableError,
    ConflictError,
    EntityNotFoundError,
    InvalidTransitionError,
    RemoteInvocationError,
    ValidationFailedError,
)
from fixtures.test_data import (
    SUPERADMIN,
    FlakyAuditStore,
    MockRemoteProcedureClient,
    admin_for,
    audit_count,
    make_engine,
    seed_admin_user,
    seed_community,
    seed_fee,
    seed_household,
    seed_member,
    seed_permit,
    seed_sticker,
)


class TestTransitionContract:
    """Tests for LifecycleMachine.transition and create."""

    def setup_method(self) -> None:
        """Set up test environment."""
        self.remote = MockRemoteProcedureClient()
        self.store = FlakyAuditStore()
        self.engine = make_engine(store=self.store, remote_client=self.remote)
        self.observability = self.engine.observability_manager

    async def seed(self) -> None:
        self.community = await seed_community(self.engine)
        self.admin = admin_for(self.community.id)
        self.household = await seed_household(self.engine, self.admin)

    async def seed_every_kind(self) -> dict:
        await self.seed()
        other_community = await seed_community(self.engine, name="Sunrise Village")
        other_household = await seed_household(self.engine, self.admin, unit_number="102")
        head = await seed_member(self.engine, self.admin, self.household.id)
        return {
            EntityKind.Community: other_community,
            EntityKind.VehicleSticker: await seed_sticker(self.engine, self.admin, self.household.id),
            EntityKind.ConstructionPermit: await seed_permit(self.engine, self.admin, self.household.id),
            EntityKind.AssociationFee: await seed_fee(self.engine, self.admin, self.household.id),
            EntityKind.AdminUser: await seed_admin_user(self.engine, self.admin),
            EntityKind.Household: other_household,
            EntityKind.HouseholdMember: head,
        }

    async def assert_illegal_actions_rejected(self, entities: dict) -> int:
        checked = 0
        for kind, entity in entities.items():
            machine = self.engine.machine(kind)
            current = await self.store.get_entity(kind, entity.id)
            for action, transition_rule in machine.rules.items():
                if transition_rule.allows(current.status_value):
                    continue
                entries_before = await audit_count(self.engine)

                with pytest.raises(InvalidTransitionError, match="Cannot"):
                    await self.engine.transition(kind, entity.id, action, {}, SUPERADMIN)

                after = await self.store.get_entity(kind, entity.id)
                assert after.status_value == current.status_value
                assert after.version == current.version
                assert await audit_count(self.engine) == entries_before
                checked += 1
        return checked

    @pytest.mark.asyncio
    async def test_illegal_actions_leave_every_kind_unchanged(self) -> None:
        entities = await self.seed_every_kind()
        checked = await self.assert_illegal_actions_rejected(entities)

        # Drive each kind into a terminal status and try again
        await self.engine.transition("community", entities[EntityKind.Community].id, "delete", {}, SUPERADMIN)
        sticker_id = entities[EntityKind.VehicleSticker].id
        await self.engine.transition("vehicle_sticker", sticker_id, "approve", {"expiry_date": "2025-12-31"}, self.admin)
        await self.engine.transition(
            "vehicle_sticker", sticker_id, "revoke", {"revocation_reason": "Vehicle sold to a third party"}, self.admin
        )
        await self.engine.transition(
            "construction_permit",
            entities[EntityKind.ConstructionPermit].id,
            "reject",
            {"rejection_reason": "Structural plans are missing"},
            self.admin,
        )
        await self.engine.transition(
            "association_fee",
            entities[EntityKind.AssociationFee].id,
            "waive",
            {"waiver_reason": "Hardship waiver approved by the board"},
            self.admin,
        )
        await self.engine.transition("admin_user", entities[EntityKind.AdminUser].id, "deactivate", {}, self.admin)
        await self.engine.transition("household", entities[EntityKind.Household].id, "move_out", {}, self.admin)
        await self.engine.transition("household_member", entities[EntityKind.HouseholdMember].id, "remove", {}, self.admin)

        checked += await self.assert_illegal_actions_rejected(entities)
        assert checked >= 15

    @pytest.mark.asyncio
    async def test_unknown_action_is_invalid(self) -> None:
        await self.seed()
        fee = await seed_fee(self.engine, self.admin, self.household.id)

        with pytest.raises(InvalidTransitionError, match="Unknown action"):
            await self.engine.transition("association_fee", fee.id, "refund", {}, self.admin)

    @pytest.mark.asyncio
    async def test_successful_transition_appends_exactly_one_audit_entry(self) -> None:
        await self.seed()
        fee = await seed_fee(self.engine, self.admin, self.household.id)
        entries_before = await audit_count(self.engine)

        result = await self.engine.transition(
            "association_fee",
            fee.id,
            "waive",
            {"waiver_reason": "Senior citizen discount approved"},
            self.admin,
            expected_status="unpaid",
        )

        assert await audit_count(self.engine) == entries_before + 1
        entry = result.audit_entry
        assert entry.prior_status == "unpaid"
        assert entry.new_status == "waived"
        assert entry.actor_id == self.admin.id
        assert entry.action_type == "association_fee.waive"
        assert entry.changes["after"]["waiver_reason"] == "Senior citizen discount approved"
        assert result.entity.version == fee.version + 1
        assert result.entity.waived_by == self.admin.id

        event = self.observability.events_of("entity_transitioned")[-1]
        assert event["payload"]["from_status"] == "unpaid"
        assert event["payload"]["to_status"] == "waived"

    @pytest.mark.asyncio
    async def test_expected_status_mismatch_is_conflict(self) -> None:
        await self.seed()
        fee = await seed_fee(self.engine, self.admin, self.household.id)

        with pytest.raises(ConflictError) as exc_info:
            await self.engine.transition(
                "association_fee", fee.id, "mark_paid", {}, self.admin, expected_status="overdue"
            )
        assert exc_info.value.retryable

        stored = await self.store.get_entity(EntityKind.AssociationFee, fee.id)
        assert stored.status == FeeStatus.Unpaid

    @pytest.mark.asyncio
    async def test_reapplying_current_status_is_audited_noop(self) -> None:
        await self.seed()
        fee = await seed_fee(self.engine, self.admin, self.household.id)
        paid = await self.engine.transition("association_fee", fee.id, "mark_paid", {}, self.admin)
        entries_before = await audit_count(self.engine)

        again = await self.engine.transition("association_fee", fee.id, "mark_paid", {}, self.admin)

        assert again.reapplied
        assert again.prior_status == again.new_status == "paid"
        assert again.entity.payment_date == paid.entity.payment_date
        assert again.audit_entry.reapplied
        assert await audit_count(self.engine) == entries_before + 1

    @pytest.mark.asyncio
    async def test_commit_locks_are_released_after_use(self) -> None:
        await self.seed()
        fees = [await seed_fee(self.engine, self.admin, self.household.id) for _ in range(3)]
        machine = self.engine.machine("association_fee")

        results = await asyncio.gather(
            *(self.engine.transition("association_fee", fee.id, "mark_paid", {}, self.admin) for fee in fees),
            self.engine.transition("association_fee", fees[0].id, "mark_paid", {}, self.admin),
            return_exceptions=True,
        )

        failures = [result for result in results if isinstance(result, Exception)]
        assert all(isinstance(failure, ConflictError) for failure in failures)
        assert len(failures) <= 1
        assert machine._commit_locks == {}

        unpaid = await seed_fee(self.engine, self.admin, self.household.id)
        self.store.fail_audit = True
        with pytest.raises(AuditUnavailableError):
            await self.engine.transition(
                "association_fee", unpaid.id, "waive", {"waiver_reason": "Hardship waiver approved"}, self.admin
            )
        assert machine._commit_locks == {}

    @pytest.mark.asyncio
    async def test_invalid_params_change_nothing(self) -> None:
        await self.seed()
        fee = await seed_fee(self.engine, self.admin, self.household.id)
        entries_before = await audit_count(self.engine)

        with pytest.raises(ValidationFailedError, match="at least 10 characters") as exc_info:
            await self.engine.transition("association_fee", fee.id, "waive", {"waiver_reason": "n/a"}, self.admin)
        assert exc_info.value.field == "waiver_reason"

        with pytest.raises(ValidationFailedError, match="Waiver reason is required"):
            await self.engine.transition("association_fee", fee.id, "waive", {}, self.admin)

        assert await audit_count(self.engine) == entries_before
        assert (await self.store.get_entity(EntityKind.AssociationFee, fee.id)).version == fee.version

    @pytest.mark.asyncio
    async def test_entity_of_other_tenant_is_not_found(self) -> None:
        await self.seed()
        fee = await seed_fee(self.engine, self.admin, self.household.id)
        outsider = admin_for("some-other-community", actor_id="outsider")

        with pytest.raises(EntityNotFoundError, match="not found or access denied"):
            await self.engine.transition("association_fee", fee.id, "mark_paid", {}, outsider)
        with pytest.raises(EntityNotFoundError):
            await self.engine.get_entity("association_fee", fee.id, outsider)

    @pytest.mark.asyncio
    async def test_missing_entity_is_not_found(self) -> None:
        await self.seed()

        with pytest.raises(EntityNotFoundError):
            await self.engine.transition("vehicle_sticker", "does-not-exist", "approve", {}, self.admin)

    @pytest.mark.asyncio
    async def test_unauthenticated_actor_cannot_mutate(self) -> None:
        await self.seed()
        fee = await seed_fee(self.engine, self.admin, self.household.id)
        anonymous = Actor(id=None, role=AdminRole.AdminHead, tenant_id=self.community.id)

        with pytest.raises(AuditUnavailableError, match="Not authenticated"):
            await self.engine.transition("association_fee", fee.id, "mark_paid", {}, anonymous)

        assert (await self.store.get_entity(EntityKind.AssociationFee, fee.id)).status == FeeStatus.Unpaid

    @pytest.mark.asyncio
    async def test_audit_failure_restores_prior_state(self) -> None:
        await self.seed()
        fee = await seed_fee(self.engine, self.admin, self.household.id)
        entries_before = await audit_count(self.engine)
        self.store.fail_audit = True

        with pytest.raises(AuditUnavailableError):
            await self.engine.transition("association_fee", fee.id, "mark_paid", {}, self.admin)

        self.store.fail_audit = False
        stored = await self.store.get_entity(EntityKind.AssociationFee, fee.id)
        assert stored.status == FeeStatus.Unpaid
        assert stored.version == fee.version
        assert await audit_count(self.engine) == entries_before

        # The entity is still usable afterwards
        result = await self.engine.transition("association_fee", fee.id, "mark_paid", {}, self.admin)
        assert result.new_status == "paid"

    @pytest.mark.asyncio
    async def test_create_audit_failure_removes_entity(self) -> None:
        await self.seed()
        self.store.fail_audit = True

        with pytest.raises(AuditUnavailableError):
            await seed_sticker(self.engine, self.admin, self.household.id, plate="NDA 4521")

        self.store.fail_audit = False
        assert await self.store.find_by_natural_key(EntityKind.VehicleSticker, self.community.id, "NDA 4521") is None
        # The plate is free again
        await seed_sticker(self.engine, self.admin, self.household.id, plate="NDA 4521")

    @pytest.mark.asyncio
    async def test_event_emission_failure_does_not_fail_transition(self) -> None:
        await self.seed()
        fee = await seed_fee(self.engine, self.admin, self.household.id)
        self.observability.emit_error = RuntimeError("event sink unavailable")

        result = await self.engine.transition("association_fee", fee.id, "mark_paid", {}, self.admin)

        assert result.new_status == "paid"
        assert self.observability.logs[-1]["level"] == "WARNING"

    @pytest.mark.asyncio
    async def test_remote_action_without_remote_client_fails_cleanly(self) -> None:
        engine = make_engine(remote_base_url=None)
        community = await seed_community(engine)
        admin = admin_for(community.id)
        household = await seed_household(engine, admin)
        sticker = await seed_sticker(engine, admin, household.id)

        with pytest.raises(RemoteInvocationError, match="not configured"):
            await engine.transition("vehicle_sticker", sticker.id, "approve", {"expiry_date": "2025-12-31"}, admin)

        stored = await engine.get_entity("vehicle_sticker", sticker.id, admin)
        assert stored.status_value == "requested"

    @pytest.mark.asyncio
    async def test_allowed_actions_reflect_current_status(self) -> None:
        await self.seed()
        sticker = await seed_sticker(self.engine, self.admin, self.household.id)

        assert await self.engine.allowed_actions("vehicle_sticker", sticker.id, self.admin) == ["approve", "reject"]

    def test_unknown_kind_is_validation_error(self) -> None:
        with pytest.raises(ValidationFailedError, match="Unknown entity kind"):
            self.engine.machine("parking_slot")

    @pytest.mark.asyncio
    async def test_create_records_audit_entry_without_prior_status(self) -> None:
        await self.seed()

        result = await self.engine.create(
            "association_fee",
            {"household_id": self.household.id, "fee_type": "annual", "amount": 12000, "due_date": "2025-12-31"},
            self.admin,
        )

        assert result.entity.status == FeeStatus.Unpaid
        assert result.entity.version == 1
        assert result.entity.tenant_id == self.community.id
        assert result.audit_entry.prior_status is None
        assert result.audit_entry.new_status == "unpaid"
        assert self.observability.events_of("entity_created")[-1]["payload"]["entity_id"] == result.entity.id
