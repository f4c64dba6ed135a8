"""LifecycleEntity base model and EntityKind enum."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class EntityKind(str, Enum):
    """Kinds of entities driven by the lifecycle engine."""

    Community = "community"
    """Tenant scope; every other kind except platform admins lives inside one."""

    VehicleSticker = "vehicle_sticker"
    """Vehicle gate sticker requested by a household."""

    ConstructionPermit = "construction_permit"
    """Construction permit requested by a household."""

    AssociationFee = "association_fee"
    """Association fee billed to a household."""

    AdminUser = "admin_user"
    """Administrative user of the platform or of one community."""

    Residence = "residence"
    """Physical unit within a community."""

    Household = "household"
    """Household occupying a residence."""

    HouseholdMember = "household_member"
    """Person belonging to a household."""


class LifecycleEntity(BaseModel):
    """Base for every entity whose status is owned by a lifecycle machine.

    Subclasses narrow ``status`` to their kind's status enum, which keeps the
    status a member of the kind's legal set at all times. ``version`` is bumped
    on every committed transition and is the basis of the conditional write.
    """

    kind: ClassVar[EntityKind]
    natural_key_field: ClassVar[str | None] = None
    natural_key_tenant_scoped: ClassVar[bool] = True

    id: str = Field(
        default_factory=new_id,
        description="Stable, unique identifier of the entity",
        min_length=1,
    )
    tenant_id: str | None = Field(
        default=None,
        description="Community the entity is scoped to (None for platform-level entities)",
    )
    status: Any = Field(..., description="Current status, kind-specific enum")
    version: int = Field(
        default=1,
        description="Monotonic version, bumped on every committed transition",
        ge=1,
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="Timestamp when the entity was created",
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        description="Timestamp of the last committed transition",
    )

    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=False,
    )

    @property
    def scope_id(self) -> str | None:
        """Tenant the entity belongs to for access checks."""
        return self.tenant_id

    @property
    def status_value(self) -> str:
        return self.status.value if isinstance(self.status, Enum) else str(self.status)

    def natural_key(self) -> str | None:
        """Return the value that must be unique within the key's scope, if any."""
        if self.natural_key_field is None:
            return None
        value = getattr(self, self.natural_key_field)
        return str(value) if value is not None else None

    def natural_key_scope(self) -> str | None:
        return self.tenant_id if self.natural_key_tenant_scoped else None

    def describe(self) -> str:
        key = self.natural_key()
        return f"{self.kind.value} {key or self.id}"
