"""VehicleSticker data model and StickerStatus enum."""

from datetime import date, datetime
from enum import Enum
from typing import ClassVar

from pydantic import Field, field_validator

from communityops.domain.models.entity import EntityKind, LifecycleEntity
from communityops.domain.models.field_rules import normalize_plate


class StickerStatus(str, Enum):
    """Approval states of a vehicle sticker."""

    Requested = "requested"
    Active = "active"
    Rejected = "rejected"
    Revoked = "revoked"


class VehicleSticker(LifecycleEntity):
    """Gate sticker for one vehicle of a household.

    The plate is unique within a community.
    """

    kind: ClassVar[EntityKind] = EntityKind.VehicleSticker
    natural_key_field: ClassVar[str | None] = "vehicle_plate"

    status: StickerStatus = Field(default=StickerStatus.Requested)
    household_id: str = Field(..., min_length=1)
    vehicle_plate: str = Field(..., description="Plate number, stored upper case")
    vehicle_make: str | None = Field(default=None)
    vehicle_model: str | None = Field(default=None)
    vehicle_color: str | None = Field(default=None)
    expiry_date: date | None = Field(default=None)
    rfid_code: str | None = Field(
        default=None,
        description="QR/RFID payload issued on approval",
    )
    approved_by: str | None = Field(default=None)
    approved_at: datetime | None = Field(default=None)
    rejection_reason: str | None = Field(default=None)
    revocation_reason: str | None = Field(default=None)
    revoked_by: str | None = Field(default=None)
    revoked_at: datetime | None = Field(default=None)

    @field_validator("vehicle_plate")
    @classmethod
    def validate_plate(cls, v: str) -> str:
        return normalize_plate(v)
