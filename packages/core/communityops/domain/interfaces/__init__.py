"""Domain interfaces for the community operations engine."""

from communityops.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from communityops.domain.interfaces.remote_procedure import (
    RemoteProcedureClient,
    RemoteProcedureError,
)
from communityops.domain.interfaces.state_store import (
    AuditQuery,
    EntityQuery,
    StateStore,
    StateStoreError,
    UniqueConstraintError,
)

__all__ = [
    "AuditQuery",
    "EntityQuery",
    "ObservabilityError",
    "ObservabilityManager",
    "RemoteProcedureClient",
    "RemoteProcedureError",
    "StateStore",
    "StateStoreError",
    "UniqueConstraintError",
]
