"""Residence data model and ResidenceType enum."""

from enum import Enum
from typing import ClassVar

from pydantic import Field, field_validator

from communityops.domain.models.entity import EntityKind, LifecycleEntity


class ResidenceStatus(str, Enum):
    Active = "active"


class ResidenceType(str, Enum):
    SingleFamily = "single_family"
    Townhouse = "townhouse"
    Condo = "condo"
    Apartment = "apartment"


class Residence(LifecycleEntity):
    """Physical unit of a community; the unit number is unique per community."""

    kind: ClassVar[EntityKind] = EntityKind.Residence
    natural_key_field: ClassVar[str | None] = "unit_number"

    status: ResidenceStatus = Field(default=ResidenceStatus.Active)
    unit_number: str = Field(..., min_length=1, max_length=100)
    type: ResidenceType = Field(...)
    max_occupancy: int = Field(..., ge=1, le=20)
    lot_area: float | None = Field(default=None, ge=0)
    floor_area: float = Field(..., gt=0)

    @field_validator("unit_number", mode="before")
    @classmethod
    def strip_unit_number(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v
