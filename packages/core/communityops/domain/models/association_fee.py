"""AssociationFee data model with FeeStatus, FeeType and PaymentMethod enums."""

from datetime import date, datetime
from enum import Enum
from typing import ClassVar

from pydantic import Field, model_validator

from communityops.domain.models.entity import EntityKind, LifecycleEntity


class FeeStatus(str, Enum):
    """Payment states of an association fee.

    ``overdue`` is produced by an external scheduler through the regular
    transition contract.
    """

    Unpaid = "unpaid"
    Paid = "paid"
    Overdue = "overdue"
    Waived = "waived"


class FeeType(str, Enum):
    Monthly = "monthly"
    Quarterly = "quarterly"
    Annual = "annual"
    SpecialAssessment = "special_assessment"


class PaymentMethod(str, Enum):
    Cash = "cash"
    Check = "check"
    BankTransfer = "bank_transfer"
    CreditCard = "credit_card"
    Online = "online"


class AssociationFee(LifecycleEntity):
    """Fee billed to a household."""

    kind: ClassVar[EntityKind] = EntityKind.AssociationFee

    status: FeeStatus = Field(default=FeeStatus.Unpaid)
    household_id: str = Field(..., min_length=1)
    fee_type: FeeType = Field(...)
    amount: float = Field(..., gt=0, description="Amount billed")
    paid_amount: float = Field(default=0.0, ge=0, description="Amount received so far")
    due_date: date = Field(...)
    payment_date: date | None = Field(default=None)
    payment_method: PaymentMethod | None = Field(default=None)
    payment_reference: str | None = Field(default=None)
    recorded_by: str | None = Field(default=None)
    waiver_reason: str | None = Field(default=None)
    waived_by: str | None = Field(default=None)
    waived_at: datetime | None = Field(default=None)
    notes: str | None = Field(default=None)

    @property
    def remaining_balance(self) -> float:
        return round(self.amount - self.paid_amount, 2)

    @model_validator(mode="after")
    def validate_paid_amount(self) -> "AssociationFee":
        if self.paid_amount > self.amount:
            raise ValueError("Paid amount cannot exceed the fee amount")
        return self
