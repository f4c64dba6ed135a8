"""Household and HouseholdMember data models."""

from datetime import date, datetime
from enum import Enum
from typing import ClassVar

from pydantic import Field, field_validator

from communityops.domain.models.entity import EntityKind, LifecycleEntity
from communityops.domain.models.field_rules import validate_email


class HouseholdStatus(str, Enum):
    Active = "active"
    Inactive = "inactive"
    MovedOut = "moved_out"


class MemberStatus(str, Enum):
    Active = "active"
    Inactive = "inactive"
    Removed = "removed"


class Relationship(str, Enum):
    Self = "self"
    Spouse = "spouse"
    Child = "child"
    Parent = "parent"
    Sibling = "sibling"
    Grandparent = "grandparent"
    Grandchild = "grandchild"
    Other = "other"


class MemberType(str, Enum):
    Resident = "resident"
    BeneficialUser = "beneficial_user"


class Household(LifecycleEntity):
    """Household occupying a residence. ``household_head_id`` names the primary member."""

    kind: ClassVar[EntityKind] = EntityKind.Household

    status: HouseholdStatus = Field(default=HouseholdStatus.Active)
    residence_id: str = Field(..., min_length=1)
    move_in_date: date = Field(...)
    move_out_date: date | None = Field(default=None)
    household_head_id: str | None = Field(default=None)
    contact_email: str | None = Field(default=None)
    contact_phone: str | None = Field(default=None)

    @field_validator("contact_email")
    @classmethod
    def validate_contact_email(cls, v: str | None) -> str | None:
        return validate_email(v, "contact_email")


class HouseholdMember(LifecycleEntity):
    """Person belonging to a household."""

    kind: ClassVar[EntityKind] = EntityKind.HouseholdMember

    status: MemberStatus = Field(default=MemberStatus.Active)
    household_id: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    relationship_to_head: Relationship = Field(...)
    member_type: MemberType = Field(default=MemberType.Resident)
    date_of_birth: date | None = Field(default=None)
    contact_email: str | None = Field(default=None)
    contact_phone: str | None = Field(default=None)
    removed_at: datetime | None = Field(default=None)

    @field_validator("contact_email")
    @classmethod
    def validate_contact_email(cls, v: str | None) -> str | None:
        return validate_email(v, "contact_email")
