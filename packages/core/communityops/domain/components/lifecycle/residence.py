"""Residence creation; residences have no status transitions."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from communityops.domain.components.lifecycle.base import LifecycleMachine
from communityops.domain.models.residence import Residence, ResidenceType


class CreateResidence(BaseModel):
    """Residence creation fields, also the typed record of one import row."""

    unit_number: str = Field(..., min_length=1, max_length=100)
    type: ResidenceType
    max_occupancy: int = Field(..., ge=1, le=20)
    floor_area: float = Field(..., gt=0)
    lot_area: float | None = Field(default=None, ge=0)

    @field_validator("unit_number", mode="before")
    @classmethod
    def strip_unit_number(cls, v: Any) -> Any:
        if isinstance(v, (int, float)):
            v = str(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        return v.strip().lower().replace(" ", "_").replace("-", "_") if isinstance(v, str) else v

    @field_validator("lot_area", mode="before")
    @classmethod
    def blank_lot_area(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ResidenceMachine(LifecycleMachine):
    entity_model = Residence
    create_model = CreateResidence
    label = "Residence"
    rules = {}
