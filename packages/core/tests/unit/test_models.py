"""Tests for entity and value models."""

from datetime import date

import pytest
from pydantic import ValidationError

from communityops.domain.models.actor import Actor, AdminRole
from communityops.domain.models.admin_user import AdminUser
from communityops.domain.models.association_fee import AssociationFee, FeeStatus
from communityops.domain.models.batch_result import BatchResult, RowError
from communityops.domain.models.community import Community, CommunityStatus
from communityops.domain.models.construction_permit import ConstructionPermit
from communityops.domain.models.invocation import InvocationResponse
from communityops.domain.models.residence import Residence
from communityops.domain.models.vehicle_sticker import StickerStatus, VehicleSticker


class TestActor:
    """Tests for Actor tenant access."""

    def test_superadmin_accesses_every_scope(self) -> None:
        actor = Actor(id="root", role=AdminRole.SuperAdmin)

        assert actor.can_access("community-a")
        assert actor.can_access(None)

    def test_community_admin_limited_to_own_tenant(self) -> None:
        actor = Actor(id="head", role=AdminRole.AdminHead, tenant_id="community-a")

        assert actor.can_access("community-a")
        assert not actor.can_access("community-b")
        assert not actor.can_access(None)


class TestEntities:
    """Tests for entity field rules."""

    def test_sticker_plate_is_normalized(self) -> None:
        sticker = VehicleSticker(tenant_id="c1", household_id="h1", vehicle_plate="  abc   123 ")

        assert sticker.vehicle_plate == "ABC 123"
        assert sticker.status == StickerStatus.Requested
        assert sticker.natural_key() == "ABC 123"

    def test_sticker_rejects_invalid_plate(self) -> None:
        with pytest.raises(ValidationError):
            VehicleSticker(tenant_id="c1", household_id="h1", vehicle_plate="ABC#123")

    def test_status_outside_legal_set_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            VehicleSticker(
                tenant_id="c1", household_id="h1", vehicle_plate="ABC 123", status="approved"
            )

    def test_community_scope_is_its_own_id(self) -> None:
        community = Community(name="Green Valley", location="Manila")

        assert community.scope_id == community.id
        assert community.status == CommunityStatus.Active

    def test_community_name_minimum_length(self) -> None:
        with pytest.raises(ValidationError, match="at least 3 characters"):
            Community(name="GV", location="Manila")

    def test_fee_remaining_balance(self) -> None:
        fee = AssociationFee(
            tenant_id="c1",
            household_id="h1",
            fee_type="monthly",
            amount=1500.0,
            paid_amount=500.25,
            due_date=date(2025, 1, 31),
        )

        assert fee.remaining_balance == 999.75
        assert fee.status == FeeStatus.Unpaid

    def test_fee_paid_amount_cannot_exceed_amount(self) -> None:
        with pytest.raises(ValidationError, match="cannot exceed"):
            AssociationFee(
                tenant_id="c1",
                household_id="h1",
                fee_type="monthly",
                amount=100.0,
                paid_amount=150.0,
                due_date=date(2025, 1, 31),
            )

    def test_permit_end_date_before_start_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ConstructionPermit(
                tenant_id="c1",
                household_id="h1",
                project_description="Kitchen renovation works",
                contractor_name="BuildRight",
                estimated_worker_count=3,
                project_start_date=date(2025, 5, 1),
                project_end_date=date(2025, 4, 1),
            )

    def test_admin_user_requires_community_unless_superadmin(self) -> None:
        with pytest.raises(ValidationError, match="Community is required"):
            AdminUser(email="a@b.test", first_name="Ana", last_name="Reyes", role="admin_head")

        superadmin = AdminUser(email="Root@Platform.test", first_name="Ana", last_name="Reyes", role="superadmin")
        assert superadmin.email == "root@platform.test"
        assert superadmin.natural_key_scope() is None

    def test_residence_unit_number_is_stripped(self) -> None:
        residence = Residence(tenant_id="c1", unit_number=" 101 ", type="condo", max_occupancy=4, floor_area=80)

        assert residence.unit_number == "101"
        assert residence.describe() == "residence 101"

    def test_validate_assignment_guards_status(self) -> None:
        residence = Residence(tenant_id="c1", unit_number="101", type="condo", max_occupancy=4, floor_area=80)

        with pytest.raises(ValidationError):
            residence.status = "demolished"


class TestValueModels:
    """Tests for envelopes and batch results."""

    def test_invocation_response_folds_error_into_message(self) -> None:
        response = InvocationResponse.model_validate(
            {"success": False, "error": "Sticker not found", "data": None, "trace": "x"}
        )

        assert response.message == "Sticker not found"
        assert response.data == {}

    def test_batch_result_all_succeeded(self) -> None:
        assert BatchResult(total_rows=2, success_count=2, failure_count=0).all_succeeded
        failed = BatchResult(
            total_rows=2,
            success_count=1,
            failure_count=1,
            errors=[RowError(row_index=2, key="102", message="Unit number 102 already exists", category="validation_failed")],
        )
        assert not failed.all_succeeded

    def test_batch_result_counts_must_cover_every_row(self) -> None:
        error = RowError(row_index=2, key="102", message="Unit number 102 already exists", category="validation_failed")
        with pytest.raises(ValidationError, match="must equal total_rows"):
            BatchResult(total_rows=3, success_count=1, failure_count=1, errors=[error])

        with pytest.raises(ValidationError, match="number of errors"):
            BatchResult(total_rows=2, success_count=1, failure_count=1)
