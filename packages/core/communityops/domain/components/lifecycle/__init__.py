"""Lifecycle state machines, one per entity kind."""

from communityops.domain.components.lifecycle.admin_user import AdminUserMachine
from communityops.domain.components.lifecycle.association_fee import AssociationFeeMachine
from communityops.domain.components.lifecycle.base import (
    LifecycleMachine,
    NoParams,
    TransitionRule,
    rule,
    table,
)
from communityops.domain.components.lifecycle.community import CommunityMachine
from communityops.domain.components.lifecycle.construction_permit import (
    ConstructionPermitMachine,
)
from communityops.domain.components.lifecycle.household import (
    HouseholdMachine,
    HouseholdMemberMachine,
)
from communityops.domain.components.lifecycle.residence import CreateResidence, ResidenceMachine
from communityops.domain.components.lifecycle.vehicle_sticker import VehicleStickerMachine

MACHINE_TYPES: tuple[type[LifecycleMachine], ...] = (
    CommunityMachine,
    VehicleStickerMachine,
    ConstructionPermitMachine,
    AssociationFeeMachine,
    AdminUserMachine,
    ResidenceMachine,
    HouseholdMachine,
    HouseholdMemberMachine,
)

__all__ = [
    "AdminUserMachine",
    "AssociationFeeMachine",
    "CommunityMachine",
    "ConstructionPermitMachine",
    "CreateResidence",
    "HouseholdMachine",
    "HouseholdMemberMachine",
    "LifecycleMachine",
    "MACHINE_TYPES",
    "NoParams",
    "ResidenceMachine",
    "TransitionRule",
    "VehicleStickerMachine",
    "rule",
    "table",
]
