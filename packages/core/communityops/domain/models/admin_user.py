"""AdminUser data model and AdminUserStatus enum."""

from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import Field, field_validator, model_validator

from communityops.domain.models.actor import AdminRole
from communityops.domain.models.entity import EntityKind, LifecycleEntity
from communityops.domain.models.field_rules import require_min_length, validate_email


class AdminUserStatus(str, Enum):
    Active = "active"
    Deactivated = "deactivated"


class AdminUser(LifecycleEntity):
    """Administrative user. Superadmins are platform-wide and carry no tenant.

    Email is unique across the platform.
    """

    kind: ClassVar[EntityKind] = EntityKind.AdminUser
    natural_key_field: ClassVar[str | None] = "email"
    natural_key_tenant_scoped: ClassVar[bool] = False

    status: AdminUserStatus = Field(default=AdminUserStatus.Active)
    email: str = Field(...)
    first_name: str = Field(...)
    last_name: str = Field(...)
    role: AdminRole = Field(...)
    deactivated_at: datetime | None = Field(default=None)
    deactivated_by: str | None = Field(default=None)

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        email = validate_email(v)
        if email is None:
            raise ValueError("Email is required")
        return email

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v: str) -> str:
        return require_min_length(v, 2, "Name")

    @model_validator(mode="after")
    def validate_tenant(self) -> "AdminUser":
        if self.tenant_id is None and self.role != AdminRole.SuperAdmin:
            raise ValueError("Community is required for community administrators")
        return self
