"""Household and household member lifecycles."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from communityops.domain.components.lifecycle.base import LifecycleMachine, TransitionRule, rule, table
from communityops.domain.interfaces.state_store import EntityQuery
from communityops.domain.models.actor import Actor
from communityops.domain.models.entity import EntityKind, LifecycleEntity
from communityops.domain.models.household import (
    Household,
    HouseholdMember,
    HouseholdStatus,
    MemberStatus,
    MemberType,
    Relationship,
)
from communityops.domain.models.system_error import ValidationFailedError


class CreateHousehold(BaseModel):
    residence_id: str = Field(..., min_length=1)
    move_in_date: date
    contact_email: str | None = None
    contact_phone: str | None = None


class SetHead(BaseModel):
    member_id: str = Field(..., min_length=1)


class MoveOut(BaseModel):
    move_out_date: date | None = None


class CreateMember(BaseModel):
    household_id: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    relationship_to_head: Relationship
    member_type: MemberType = MemberType.Resident
    date_of_birth: date | None = None
    contact_email: str | None = None
    contact_phone: str | None = None


class HouseholdMachine(LifecycleMachine):
    """One occupying household per residence at a time."""

    entity_model = Household
    create_model = CreateHousehold
    label = "Household"
    rules = table(
        rule("set_head", HouseholdStatus.Active, None, SetHead),
        rule("deactivate", HouseholdStatus.Active, HouseholdStatus.Inactive),
        rule("reactivate", HouseholdStatus.Inactive, HouseholdStatus.Active),
        rule(
            "move_out",
            (HouseholdStatus.Active, HouseholdStatus.Inactive),
            HouseholdStatus.MovedOut,
            MoveOut,
        ),
    )

    async def validate_create(self, data: BaseModel, actor: Actor, tenant_id: str | None) -> None:
        await self.require_related(EntityKind.Residence, data.residence_id, tenant_id, "Residence")
        occupants = await self._state_store.list_entities(
            EntityQuery(
                kind=EntityKind.Household,
                tenant_id=tenant_id,
                field_equals={"residence_id": data.residence_id},
            )
        )
        if any(h.status_value != HouseholdStatus.MovedOut.value for h in occupants):
            raise ValidationFailedError(
                "Residence already has a household",
                field="residence_id",
            )

    async def validate(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
    ) -> None:
        if transition_rule.action == "set_head":
            member = await self.require_related(
                EntityKind.HouseholdMember, params.member_id, entity.tenant_id, "Member"
            )
            if member.household_id != entity.id:
                raise ValidationFailedError(
                    "Member does not belong to this household",
                    field="member_id",
                )
            if member.status_value != MemberStatus.Active.value:
                raise ValidationFailedError(
                    "Household head must be an active member",
                    field="member_id",
                )

    def apply(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
        now: datetime,
    ) -> dict[str, Any]:
        if transition_rule.action == "set_head":
            return {"household_head_id": params.member_id}
        if transition_rule.action == "move_out":
            return {"move_out_date": params.move_out_date or now.date()}
        return {}


class HouseholdMemberMachine(LifecycleMachine):
    """The household head can never be removed, whatever the actor's role."""

    entity_model = HouseholdMember
    create_model = CreateMember
    label = "Member"
    rules = table(
        rule("deactivate", MemberStatus.Active, MemberStatus.Inactive),
        rule("reactivate", MemberStatus.Inactive, MemberStatus.Active),
        rule("remove", (MemberStatus.Active, MemberStatus.Inactive), MemberStatus.Removed),
    )

    async def validate_create(self, data: BaseModel, actor: Actor, tenant_id: str | None) -> None:
        household = await self.require_related(
            EntityKind.Household, data.household_id, tenant_id, "Household"
        )
        if household.status_value != HouseholdStatus.Active.value:
            raise ValidationFailedError(
                "Members can only be added to an active household",
                field="household_id",
            )

    async def validate(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
    ) -> None:
        if transition_rule.action == "remove":
            household = await self._state_store.get_entity(EntityKind.Household, entity.household_id)
            if household is not None and household.household_head_id == entity.id:
                raise ValidationFailedError(
                    "The household head cannot be removed",
                    field="member_id",
                )

    def apply(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
        now: datetime,
    ) -> dict[str, Any]:
        if transition_rule.action == "remove":
            return {"removed_at": now}
        return {}
