"""Actor identity threaded into every engine operation."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AdminRole(str, Enum):
    """Roles an administrative actor can hold."""

    SuperAdmin = "superadmin"
    """Platform operator; not bound to a tenant."""

    AdminHead = "admin_head"
    """Head administrator of one community."""

    AdminOfficer = "admin_officer"
    """Administrative officer of one community."""


class Actor(BaseModel):
    """Caller identity supplied with every operation.

    Transport and authentication happen outside the engine; the actor is the
    already-authenticated identity they produced. An actor without an id is
    unauthenticated and cannot perform audited actions.
    """

    id: str | None = Field(default=None, description="Identifier of the acting user")
    role: AdminRole = Field(default=AdminRole.AdminOfficer, description="Role of the acting user")
    tenant_id: str | None = Field(
        default=None,
        description="Community the actor administers (None for superadmins)",
    )
    email: str | None = Field(default=None, description="Email of the acting user")

    model_config = ConfigDict(frozen=True)

    @property
    def is_superadmin(self) -> bool:
        return self.role == AdminRole.SuperAdmin

    def can_access(self, scope_id: str | None) -> bool:
        """Return True if the actor may read or change entities in ``scope_id``."""
        if self.is_superadmin:
            return True
        return scope_id is not None and scope_id == self.tenant_id
