"""Construction permit approval and progress lifecycle."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from communityops.domain.components.lifecycle.base import LifecycleMachine, TransitionRule, rule, table
from communityops.domain.models.actor import Actor, AdminRole
from communityops.domain.models.construction_permit import ConstructionPermit, PermitStatus
from communityops.domain.models.entity import EntityKind, LifecycleEntity
from communityops.domain.models.field_rules import require_min_length
from communityops.domain.models.system_error import ValidationFailedError

PROCESS_PERMIT_PROCEDURE = "process-construction-permit"
PROCESSING_ROLES = (AdminRole.AdminHead, AdminRole.AdminOfficer)


class CreatePermit(BaseModel):
    household_id: str = Field(..., min_length=1)
    project_description: str
    project_start_date: date
    project_end_date: date
    contractor_name: str
    contractor_contact: str | None = None
    contractor_license: str | None = None
    estimated_worker_count: int = Field(..., ge=1)
    road_fee_amount: float | None = Field(default=None, ge=0)
    notes: str | None = None

    @field_validator("project_description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        return require_min_length(v, 10, "Project description")

    @field_validator("contractor_name")
    @classmethod
    def validate_contractor(cls, v: str) -> str:
        return require_min_length(v, 2, "Contractor name")


class ApprovePermit(BaseModel):
    road_fee_amount: float = Field(..., ge=0)
    start_date: date | None = None


class RejectPermit(BaseModel):
    rejection_reason: str

    @field_validator("rejection_reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        return require_min_length(v, 10, "Rejection reason")


class MarkInProgress(BaseModel):
    start_date: date


class MarkCompleted(BaseModel):
    end_date: date


class MarkPermitPaid(BaseModel):
    payment_reference: str | None = None
    payment_method: str | None = None


ALL_STATUSES = tuple(PermitStatus)


class ConstructionPermitMachine(LifecycleMachine):
    """Approve keeps a permit pending unless a start date moves it to in_progress.

    mark_paid is accepted from any status and keeps it; it only sets the
    road-fee-paid flag. Once the fee is paid, repeating it is a re-apply.
    Remote-backed actions are limited to community administrators.
    """

    entity_model = ConstructionPermit
    create_model = CreatePermit
    label = "Permit"
    rules = table(
        rule(
            "approve",
            PermitStatus.Pending,
            None,
            ApprovePermit,
            remote_procedure=PROCESS_PERMIT_PROCEDURE,
            roles=PROCESSING_ROLES,
        ),
        rule(
            "reject",
            PermitStatus.Pending,
            PermitStatus.Rejected,
            RejectPermit,
            remote_procedure=PROCESS_PERMIT_PROCEDURE,
            roles=PROCESSING_ROLES,
        ),
        rule("mark_in_progress", PermitStatus.Pending, PermitStatus.InProgress, MarkInProgress),
        rule(
            "mark_completed",
            PermitStatus.InProgress,
            PermitStatus.Completed,
            MarkCompleted,
            remote_procedure=PROCESS_PERMIT_PROCEDURE,
            roles=PROCESSING_ROLES,
        ),
        rule(
            "mark_paid",
            ALL_STATUSES,
            None,
            MarkPermitPaid,
            remote_procedure=PROCESS_PERMIT_PROCEDURE,
            roles=PROCESSING_ROLES,
            idempotent=True,
        ),
    )

    def is_reapply(self, entity: LifecycleEntity, transition_rule: TransitionRule) -> bool:
        if transition_rule.action == "mark_paid":
            return bool(entity.road_fee_paid)
        return super().is_reapply(entity, transition_rule)

    async def validate_create(self, data: BaseModel, actor: Actor, tenant_id: str | None) -> None:
        await self.require_related(EntityKind.Household, data.household_id, tenant_id, "Household")
        if data.project_end_date < data.project_start_date:
            raise ValidationFailedError(
                "Project end date must be on or after the start date",
                field="project_end_date",
            )

    async def validate(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
    ) -> None:
        if transition_rule.action == "mark_completed" and entity.project_start_date is not None:
            if params.end_date < entity.project_start_date:
                raise ValidationFailedError(
                    "End date must be on or after the start date",
                    field="end_date",
                )

    def resolve_target(
        self, entity: LifecycleEntity, transition_rule: TransitionRule, params: BaseModel
    ) -> str:
        if transition_rule.action == "approve":
            if params.start_date is not None:
                return PermitStatus.InProgress.value
            return PermitStatus.Pending.value
        return super().resolve_target(entity, transition_rule, params)

    def remote_payload(
        self, entity: LifecycleEntity, transition_rule: TransitionRule, params: BaseModel
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"permit_id": entity.id, "action": transition_rule.action}
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
        action = transition_rule.action
        if action == "approve":
            changes: dict[str, Any] = {
                "road_fee_amount": params.road_fee_amount,
                "approved_by": actor.id,
                "approved_at": now,
            }
            if params.start_date is not None:
                changes["project_start_date"] = params.start_date
            return changes
        if action == "reject":
            return {"rejection_reason": params.rejection_reason}
        if action == "mark_in_progress":
            return {"project_start_date": params.start_date}
        if action == "mark_completed":
            return {"project_end_date": params.end_date}
        if action == "mark_paid":
            changes = {"road_fee_paid": True, "road_fee_paid_at": now}
            if params.payment_reference:
                changes["payment_reference"] = params.payment_reference
            if params.payment_method:
                changes["payment_method"] = params.payment_method
            return changes
        return {}
