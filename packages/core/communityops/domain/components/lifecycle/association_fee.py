"""Association fee payment lifecycle.

``overdue`` is set by an external scheduler through ``mark_overdue``; this
engine never derives it on its own.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from communityops.domain.components.lifecycle.base import LifecycleMachine, TransitionRule, rule, table
from communityops.domain.models.actor import Actor
from communityops.domain.models.association_fee import (
    AssociationFee,
    FeeStatus,
    FeeType,
    PaymentMethod,
)
from communityops.domain.models.entity import EntityKind, LifecycleEntity, utcnow
from communityops.domain.models.field_rules import require_min_length
from communityops.domain.models.system_error import ValidationFailedError

OPEN_STATUSES = (FeeStatus.Unpaid, FeeStatus.Overdue)


class CreateFee(BaseModel):
    household_id: str = Field(..., min_length=1)
    fee_type: FeeType
    amount: float = Field(..., gt=0)
    due_date: date
    notes: str | None = None


class RecordPayment(BaseModel):
    amount: float = Field(..., gt=0)
    payment_date: date
    payment_method: PaymentMethod
    payment_reference: str | None = None


class WaiveFee(BaseModel):
    waiver_reason: str

    @field_validator("waiver_reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        return require_min_length(v, 10, "Waiver reason")


class AssociationFeeMachine(LifecycleMachine):
    entity_model = AssociationFee
    create_model = CreateFee
    label = "Fee"
    rules = table(
        rule("record_payment", OPEN_STATUSES, FeeStatus.Paid, RecordPayment),
        rule("mark_paid", OPEN_STATUSES, FeeStatus.Paid, idempotent=True),
        rule("mark_overdue", FeeStatus.Unpaid, FeeStatus.Overdue),
        rule("waive", OPEN_STATUSES, FeeStatus.Waived, WaiveFee),
    )

    async def validate_create(self, data: BaseModel, actor: Actor, tenant_id: str | None) -> None:
        await self.require_related(EntityKind.Household, data.household_id, tenant_id, "Household")

    async def validate(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
    ) -> None:
        if transition_rule.action == "record_payment":
            balance = entity.remaining_balance
            if round(params.amount, 2) != balance:
                raise ValidationFailedError(
                    f"Payment amount must equal the remaining balance of {balance:.2f}",
                    field="amount",
                    technical=f"amount={params.amount} balance={balance}",
                )
        elif transition_rule.action == "mark_overdue":
            if entity.due_date >= utcnow().date():
                raise ValidationFailedError(
                    "Fee is not past its due date",
                    field="due_date",
                )

    def apply(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
        now: datetime,
    ) -> dict[str, Any]:
        action = transition_rule.action
        if action == "record_payment":
            return {
                "paid_amount": entity.amount,
                "payment_date": params.payment_date,
                "payment_method": params.payment_method,
                "payment_reference": params.payment_reference,
                "recorded_by": actor.id,
            }
        if action == "mark_paid":
            return {
                "paid_amount": entity.amount,
                "payment_date": now.date(),
                "recorded_by": actor.id,
            }
        if action == "waive":
            return {
                "waiver_reason": params.waiver_reason,
                "waived_by": actor.id,
                "waived_at": now,
            }
        return {}
