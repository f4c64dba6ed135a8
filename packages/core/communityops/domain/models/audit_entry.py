"""AuditEntry data model for the append-only audit trail."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from communityops.domain.models.entity import new_id, utcnow


class AuditEntry(BaseModel):
    """Immutable record of one privileged action.

    Each entry also carries the transition it describes (prior and new
    status). ``sequence`` is assigned by the store on append and gives the
    total order in which entries were written.
    """

    id: str = Field(default_factory=new_id, min_length=1)
    actor_id: str = Field(..., min_length=1, description="Resolved identity of the actor")
    actor_role: str | None = Field(default=None)
    action_type: str = Field(
        ...,
        description="Verb and entity kind, e.g. 'vehicle_sticker.approve'",
        min_length=1,
    )
    action: str = Field(..., min_length=1)
    entity_kind: str = Field(..., min_length=1)
    entity_id: str = Field(..., min_length=1)
    tenant_id: str | None = Field(default=None)
    prior_status: str | None = Field(
        default=None,
        description="Status before the action (None for create)",
    )
    new_status: str = Field(..., description="Status after the action")
    changes: dict[str, Any] = Field(
        default_factory=dict,
        description="Action parameters and before/after field values",
    )
    reapplied: bool = Field(
        default=False,
        description="True when the action re-applied the current status as a no-op",
    )
    created_at: datetime = Field(default_factory=utcnow)
    sequence: int | None = Field(default=None, ge=1)

    model_config = ConfigDict(
        frozen=True,  # Immutable audit trail
        validate_assignment=True,
    )
