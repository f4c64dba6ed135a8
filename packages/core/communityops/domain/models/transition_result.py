"""TransitionResult data model."""

from pydantic import BaseModel, ConfigDict, Field

from communityops.domain.models.audit_entry import AuditEntry
from communityops.domain.models.entity import LifecycleEntity
from communityops.domain.models.invocation import InvocationResponse


class TransitionResult(BaseModel):
    """Outcome of a committed create or transition."""

    entity: LifecycleEntity = Field(..., description="Entity as persisted after the commit")
    action: str = Field(...)
    prior_status: str | None = Field(default=None)
    new_status: str = Field(...)
    audit_entry: AuditEntry = Field(...)
    reapplied: bool = Field(default=False)
    remote_response: InvocationResponse | None = Field(default=None)

    model_config = ConfigDict(frozen=True)
