"""Community data model and CommunityStatus enum."""

from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import Field, field_validator

from communityops.domain.models.entity import EntityKind, LifecycleEntity
from communityops.domain.models.field_rules import require_min_length, validate_email


class CommunityStatus(str, Enum):
    """Lifecycle states of a community (tenant)."""

    Active = "active"
    Suspended = "suspended"
    Deleted = "deleted"
    """Terminal; data is retained until ``retention_until`` by an external job."""


class Community(LifecycleEntity):
    """A tenant scope. Its own id is the tenant id of everything inside it."""

    kind: ClassVar[EntityKind] = EntityKind.Community

    status: CommunityStatus = Field(default=CommunityStatus.Active)
    name: str = Field(..., description="Display name of the community")
    location: str = Field(..., description="Address or location of the community")
    contact_email: str | None = Field(default=None)
    contact_phone: str | None = Field(default=None)
    suspension_reason: str | None = Field(default=None)
    suspended_at: datetime | None = Field(default=None)
    deleted_at: datetime | None = Field(default=None)
    retention_until: datetime | None = Field(default=None)

    @property
    def scope_id(self) -> str | None:
        return self.id

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return require_min_length(v, 3, "Community name")

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str) -> str:
        return require_min_length(v, 1, "Location")

    @field_validator("contact_email")
    @classmethod
    def validate_contact_email(cls, v: str | None) -> str | None:
        return validate_email(v, "contact_email")

    @field_validator("contact_phone")
    @classmethod
    def validate_contact_phone(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return require_min_length(v, 10, "Contact phone")
