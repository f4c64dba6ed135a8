"""AuditTrail component for the append-only record of privileged actions."""

from collections.abc import Awaitable, Callable

from communityops.domain.interfaces.observability_manager import ObservabilityManager
from communityops.domain.interfaces.state_store import AuditQuery, StateStore, StateStoreError
from communityops.domain.models.actor import Actor
from communityops.domain.models.audit_entry import AuditEntry
from communityops.domain.models.system_error import AuditUnavailableError, ValidationFailedError

IdentityResolver = Callable[[Actor], Awaitable[Actor | None]]


class AuditTrail:
    """Append-only log of privileged actions.

    The trail is never the source of current-state truth; it only records
    what the lifecycle machines committed. Entries are never reordered,
    mutated or removed.

    Identity resolution fails closed: an actor that cannot be resolved to an
    identity cannot authorize an action, and the action must not happen.
    """

    def __init__(
        self,
        state_store: StateStore,
        observability_manager: ObservabilityManager,
        identity_resolver: IdentityResolver | None = None,
        default_recent_limit: int = 10,
    ) -> None:
        """Initialize AuditTrail.

        Args:
            state_store: StateStore holding the audit log.
            observability_manager: ObservabilityManager for logs.
            identity_resolver: Optional async callable confirming the actor's
                identity. Returning None (or raising) means unauthenticated.
            default_recent_limit: Number of entries ``recent`` returns by default.
        """
        self._state_store = state_store
        self._observability = observability_manager
        self._identity_resolver = identity_resolver
        self._default_recent_limit = default_recent_limit

    async def authorize(self, actor: Actor) -> Actor:
        """Resolve the actor's identity before any mutation.

        Args:
            actor: Caller identity supplied with the operation.

        Returns:
            The resolved actor.

        Raises:
            AuditUnavailableError: If the identity cannot be resolved.
        """
        resolved: Actor | None = actor
        if self._identity_resolver is not None:
            try:
                resolved = await self._identity_resolver(actor)
            except Exception as e:
                raise AuditUnavailableError(
                    "Not authenticated",
                    technical=f"Identity resolution failed: {e}",
                ) from e

        if resolved is None or not resolved.id:
            raise AuditUnavailableError(
                "Not authenticated",
                technical="Actor identity could not be resolved",
            )
        return resolved

    async def append(self, entry: AuditEntry) -> AuditEntry:
        """Append an entry to the trail.

        Args:
            entry: Entry to record.

        Returns:
            The stored entry with its sequence number.

        Raises:
            AuditUnavailableError: If the store cannot record the entry.
        """
        try:
            return await self._state_store.append_audit_entry(entry)
        except StateStoreError as e:
            await self._observability.log(
                level="ERROR",
                message="Failed to append audit entry",
                context={"action_type": entry.action_type, "entity_id": entry.entity_id},
            )
            raise AuditUnavailableError(
                "The action could not be recorded",
                technical=str(e),
            ) from e

    async def recent(self, limit: int | None = None, tenant_id: str | None = None) -> list[AuditEntry]:
        """Return the most recent entries, most recent first.

        Args:
            limit: Maximum number of entries, at least 1. Defaults to the
                configured limit.
            tenant_id: Optional community filter.

        Raises:
            ValidationFailedError: If limit is below 1.
        """
        if limit is None:
            limit = self._default_recent_limit
        elif limit < 1:
            raise ValidationFailedError(
                f"Audit limit must be at least 1, got {limit}",
                field="limit",
            )
        return await self._state_store.list_audit_entries(
            AuditQuery(tenant_id=tenant_id, newest_first=True, limit=limit)
        )

    async def history(self, entity_kind: str, entity_id: str) -> list[AuditEntry]:
        """Return every entry for one entity, in the order the transitions happened."""
        return await self._state_store.list_audit_entries(
            AuditQuery(entity_kind=entity_kind, entity_id=entity_id)
        )
