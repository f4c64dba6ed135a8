"""Vehicle sticker approval lifecycle."""

import json
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from communityops.domain.components.lifecycle.base import LifecycleMachine, TransitionRule, rule, table
from communityops.domain.models.actor import Actor, AdminRole
from communityops.domain.models.batch_result import BulkApprovalResult
from communityops.domain.models.entity import EntityKind, LifecycleEntity
from communityops.domain.models.field_rules import require_min_length
from communityops.domain.models.household import HouseholdStatus
from communityops.domain.models.system_error import (
    EngineError,
    PermissionDeniedError,
    ValidationFailedError,
)
from communityops.domain.models.vehicle_sticker import StickerStatus, VehicleSticker
from communityops.infrastructure.utils.validation import parse_model

APPROVE_STICKER_PROCEDURE = "approve-sticker"
RFID_PAYLOAD_VERSION = 1
REVOKE_ROLES = (AdminRole.AdminHead, AdminRole.SuperAdmin)
BULK_APPROVE_ROLES = (AdminRole.AdminHead, AdminRole.SuperAdmin)


class CreateSticker(BaseModel):
    household_id: str = Field(..., min_length=1)
    vehicle_plate: str
    vehicle_make: str | None = None
    vehicle_model: str | None = None
    vehicle_color: str | None = None


class ApproveSticker(BaseModel):
    expiry_date: date


class RejectSticker(BaseModel):
    rejection_reason: str

    @field_validator("rejection_reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        return require_min_length(v, 10, "Rejection reason")


class RevokeSticker(BaseModel):
    revocation_reason: str

    @field_validator("revocation_reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        return require_min_length(v, 10, "Revocation reason")


def rfid_payload(sticker: VehicleSticker, expiry: date) -> str:
    """Encode the QR/RFID payload issued with an approved sticker."""
    return json.dumps(
        {
            "id": sticker.id,
            "plate": sticker.vehicle_plate,
            "expiry": expiry.isoformat(),
            "household": sticker.household_id,
            "v": RFID_PAYLOAD_VERSION,
        },
        separators=(",", ":"),
    )


class VehicleStickerMachine(LifecycleMachine):
    """Approve and reject are remote-backed; revoke is local and limited to
    head administrators and platform administrators.
    """

    entity_model = VehicleSticker
    create_model = CreateSticker
    label = "Sticker"
    rules = table(
        rule(
            "approve",
            StickerStatus.Requested,
            StickerStatus.Active,
            ApproveSticker,
            remote_procedure=APPROVE_STICKER_PROCEDURE,
        ),
        rule(
            "reject",
            StickerStatus.Requested,
            StickerStatus.Rejected,
            RejectSticker,
            remote_procedure=APPROVE_STICKER_PROCEDURE,
        ),
        rule(
            "revoke",
            StickerStatus.Active,
            StickerStatus.Revoked,
            RevokeSticker,
            roles=REVOKE_ROLES,
        ),
    )

    async def validate_create(self, data: BaseModel, actor: Actor, tenant_id: str | None) -> None:
        household = await self.require_related(
            EntityKind.Household, data.household_id, tenant_id, "Household"
        )
        if household.status_value == HouseholdStatus.MovedOut.value:
            raise ValidationFailedError(
                "Household has moved out",
                field="household_id",
            )

    def remote_payload(
        self, entity: LifecycleEntity, transition_rule: TransitionRule, params: BaseModel
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"sticker_id": entity.id, "action": transition_rule.action}
        payload.update(params.model_dump(mode="json", exclude_none=True))
        return payload

    def apply(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
        now: datetime,
    ) -> dict[str, Any]:
        if transition_rule.action == "approve":
            return {
                "expiry_date": params.expiry_date,
                "approved_by": actor.id,
                "approved_at": now,
                "rfid_code": rfid_payload(entity, params.expiry_date),
            }
        if transition_rule.action == "reject":
            return {"rejection_reason": params.rejection_reason}
        if transition_rule.action == "revoke":
            return {
                "revocation_reason": params.revocation_reason,
                "revoked_by": actor.id,
                "revoked_at": now,
            }
        return {}

    async def approve_many(
        self,
        sticker_ids: list[str],
        expiry_date: date | str,
        actor: Actor,
    ) -> BulkApprovalResult:
        """Approve several requested stickers with one expiry date.

        Each sticker goes through ``transition`` on its own, so every approval
        is remote-backed and audited individually. A sticker that is no longer
        requested, is not visible to the actor, or fails to approve is skipped
        and does not affect the others.

        Raises:
            PermissionDeniedError: If the actor is not a head or platform administrator.
            ValidationFailedError: If the expiry date is invalid.
            AuditUnavailableError: If the actor cannot be resolved.
        """
        if actor.role not in BULK_APPROVE_ROLES:
            raise PermissionDeniedError(
                "Your role cannot bulk approve stickers",
                technical=f"bulk approval requires one of: {sorted(r.value for r in BULK_APPROVE_ROLES)}",
            )
        params = parse_model(ApproveSticker, {"expiry_date": expiry_date})
        actor = await self._audit.authorize(actor)

        result = BulkApprovalResult()
        for sticker_id in dict.fromkeys(sticker_ids):
            try:
                await self.transition(
                    sticker_id,
                    "approve",
                    params,
                    actor,
                    expected_status=StickerStatus.Requested,
                )
            except EngineError as e:
                result.skipped[sticker_id] = e.message
                continue
            result.approved_ids.append(sticker_id)
        result.approved_count = len(result.approved_ids)

        await self._emit(
            "stickers_bulk_approved",
            {
                "entity_kind": self.kind.value,
                "requested": len(sticker_ids),
                "approved_count": result.approved_count,
                "skipped_count": len(result.skipped),
            },
            actor,
        )
        return result
