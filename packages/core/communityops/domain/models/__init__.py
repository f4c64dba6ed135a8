"""Domain models for the community operations engine."""

from communityops.domain.models.system_error import (
    AuditUnavailableError,
    BatchRejectedError,
    ConflictError,
    EngineError,
    EntityNotFoundError,
    ErrorCategory,
    ErrorInfo,
    InvalidTransitionError,
    InvocationErrorKind,
    PermissionDeniedError,
    RemoteInvocationError,
    RowFailedError,
    ValidationFailedError,
    describe_error,
)
from communityops.domain.models.entity import EntityKind, LifecycleEntity
from communityops.domain.models.actor import Actor, AdminRole
from communityops.domain.models.admin_user import AdminUser, AdminUserStatus
from communityops.domain.models.association_fee import (
    AssociationFee,
    FeeStatus,
    FeeType,
    PaymentMethod,
)
from communityops.domain.models.audit_entry import AuditEntry
from communityops.domain.models.batch_result import BatchResult, BulkApprovalResult, RowError
from communityops.domain.models.community import Community, CommunityStatus
from communityops.domain.models.construction_permit import ConstructionPermit, PermitStatus
from communityops.domain.models.household import (
    Household,
    HouseholdMember,
    HouseholdStatus,
    MemberStatus,
    MemberType,
    Relationship,
)
from communityops.domain.models.invocation import InvocationResponse
from communityops.domain.models.residence import Residence, ResidenceStatus, ResidenceType
from communityops.domain.models.transition_result import TransitionResult
from communityops.domain.models.vehicle_sticker import StickerStatus, VehicleSticker

ENTITY_MODELS: dict[EntityKind, type[LifecycleEntity]] = {
    EntityKind.Community: Community,
    EntityKind.VehicleSticker: VehicleSticker,
    EntityKind.ConstructionPermit: ConstructionPermit,
    EntityKind.AssociationFee: AssociationFee,
    EntityKind.AdminUser: AdminUser,
    EntityKind.Residence: Residence,
    EntityKind.Household: Household,
    EntityKind.HouseholdMember: HouseholdMember,
}

__all__ = [
    "Actor",
    "AdminRole",
    "AdminUser",
    "AdminUserStatus",
    "AssociationFee",
    "AuditEntry",
    "AuditUnavailableError",
    "BatchRejectedError",
    "BatchResult",
    "BulkApprovalResult",
    "Community",
    "CommunityStatus",
    "ConflictError",
    "ConstructionPermit",
    "ENTITY_MODELS",
    "EngineError",
    "EntityKind",
    "EntityNotFoundError",
    "ErrorCategory",
    "ErrorInfo",
    "FeeStatus",
    "FeeType",
    "Household",
    "HouseholdMember",
    "HouseholdStatus",
    "InvalidTransitionError",
    "InvocationErrorKind",
    "InvocationResponse",
    "LifecycleEntity",
    "MemberStatus",
    "MemberType",
    "PaymentMethod",
    "PermissionDeniedError",
    "PermitStatus",
    "Relationship",
    "RemoteInvocationError",
    "Residence",
    "ResidenceStatus",
    "ResidenceType",
    "RowError",
    "RowFailedError",
    "StickerStatus",
    "TransitionResult",
    "ValidationFailedError",
    "VehicleSticker",
    "describe_error",
]
