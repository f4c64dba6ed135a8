"""ConstructionPermit data model and PermitStatus enum."""

from datetime import date, datetime
from enum import Enum
from typing import ClassVar

from pydantic import Field, model_validator

from communityops.domain.models.entity import EntityKind, LifecycleEntity


class PermitStatus(str, Enum):
    """Approval and progress states of a construction permit."""

    Pending = "pending"
    InProgress = "in_progress"
    Completed = "completed"
    Rejected = "rejected"


class ConstructionPermit(LifecycleEntity):
    """Construction permit requested by a household."""

    kind: ClassVar[EntityKind] = EntityKind.ConstructionPermit

    status: PermitStatus = Field(default=PermitStatus.Pending)
    household_id: str = Field(..., min_length=1)
    project_description: str = Field(..., min_length=10)
    contractor_name: str = Field(..., min_length=2)
    contractor_contact: str | None = Field(default=None)
    contractor_license: str | None = Field(default=None)
    estimated_worker_count: int = Field(..., ge=1)
    project_start_date: date | None = Field(default=None)
    project_end_date: date | None = Field(default=None)
    road_fee_amount: float | None = Field(default=None, ge=0)
    road_fee_paid: bool = Field(default=False)
    road_fee_paid_at: datetime | None = Field(default=None)
    payment_reference: str | None = Field(default=None)
    payment_method: str | None = Field(default=None)
    approved_by: str | None = Field(default=None)
    approved_at: datetime | None = Field(default=None)
    rejection_reason: str | None = Field(default=None)
    notes: str | None = Field(default=None)

    @model_validator(mode="after")
    def validate_dates(self) -> "ConstructionPermit":
        if (
            self.project_start_date is not None
            and self.project_end_date is not None
            and self.project_end_date < self.project_start_date
        ):
            raise ValueError("Project end date must be on or after the start date")
        return self
