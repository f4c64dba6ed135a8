"""Admin user activation lifecycle."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from communityops.domain.components.lifecycle.base import LifecycleMachine, TransitionRule, rule, table
from communityops.domain.models.actor import Actor, AdminRole
from communityops.domain.models.admin_user import AdminUser, AdminUserStatus
from communityops.domain.models.entity import LifecycleEntity
from communityops.domain.models.system_error import ValidationFailedError


class CreateAdminUser(BaseModel):
    email: str
    first_name: str
    last_name: str
    role: AdminRole


class AdminUserMachine(LifecycleMachine):
    """Superadmins are platform-wide; other admins belong to one community."""

    entity_model = AdminUser
    create_model = CreateAdminUser
    label = "Admin user"
    rules = table(
        rule("deactivate", AdminUserStatus.Active, AdminUserStatus.Deactivated),
        rule("reactivate", AdminUserStatus.Deactivated, AdminUserStatus.Active),
    )

    async def resolve_tenant(
        self, actor: Actor, tenant_id: str | None, data: BaseModel | None = None
    ) -> str | None:
        if data is not None and data.role == AdminRole.SuperAdmin:
            if not actor.is_superadmin:
                raise ValidationFailedError(
                    "Only platform administrators can create superadmins",
                    field="role",
                )
            return None
        return await super().resolve_tenant(actor, tenant_id, data)

    async def validate(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
    ) -> None:
        if transition_rule.action == "deactivate" and entity.id == actor.id:
            raise ValidationFailedError("You cannot deactivate your own account")

    def apply(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
        now: datetime,
    ) -> dict[str, Any]:
        if transition_rule.action == "deactivate":
            return {"deactivated_at": now, "deactivated_by": actor.id}
        if transition_rule.action == "reactivate":
            return {"deactivated_at": None, "deactivated_by": None}
        return {}
