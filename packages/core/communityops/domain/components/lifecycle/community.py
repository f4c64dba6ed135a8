"""Community lifecycle: active, suspended, deleted (terminal)."""

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field

from communityops.domain.components.lifecycle.base import LifecycleMachine, TransitionRule, rule, table
from communityops.domain.models.actor import Actor, AdminRole
from communityops.domain.models.community import Community, CommunityStatus
from communityops.domain.models.entity import LifecycleEntity

PLATFORM_ROLES = (AdminRole.SuperAdmin,)


class CreateCommunity(BaseModel):
    name: str
    location: str
    contact_email: str | None = None
    contact_phone: str | None = None


class SuspendCommunity(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class CommunityMachine(LifecycleMachine):
    """Delete is a soft delete: data is retained for the configured number of days."""

    entity_model = Community
    create_model = CreateCommunity
    tenant_scoped = False
    label = "Community"
    rules = table(
        rule(
            "suspend",
            CommunityStatus.Active,
            CommunityStatus.Suspended,
            SuspendCommunity,
            roles=PLATFORM_ROLES,
        ),
        rule("reactivate", CommunityStatus.Suspended, CommunityStatus.Active, roles=PLATFORM_ROLES),
        rule(
            "delete",
            (CommunityStatus.Active, CommunityStatus.Suspended),
            CommunityStatus.Deleted,
            roles=PLATFORM_ROLES,
        ),
    )

    def apply(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
        now: datetime,
    ) -> dict[str, Any]:
        if transition_rule.action == "suspend":
            return {"suspension_reason": getattr(params, "reason", None), "suspended_at": now}
        if transition_rule.action == "reactivate":
            return {"suspension_reason": None, "suspended_at": None}
        if transition_rule.action == "delete":
            return {
                "deleted_at": now,
                "retention_until": now + timedelta(days=self._settings.community_retention_days),
            }
        return {}
