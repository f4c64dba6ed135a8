"""StateStore interface for entity persistence and the audit log.

This module defines the abstract StateStore interface the lifecycle engine
persists through. The store is the authoritative guard for two invariants:
conditional writes (optimistic concurrency on status and version) and natural
key uniqueness.

Example:
    ```python
    from communityops.domain.interfaces.state_store import StateStore
    from communityops.infrastructure.state_store.memory_store import InMemoryStateStore

    store: StateStore = InMemoryStateStore()

    await store.insert_entity(community)
    current = await store.get_entity(EntityKind.Community, community.id)

    updated = current.model_copy(update={"status": CommunityStatus.Suspended, "version": 2})
    written = await store.write_entity(
        updated, expected_status="active", expected_version=1
    )
    ```
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field

from communityops.domain.models.audit_entry import AuditEntry
from communityops.domain.models.entity import EntityKind, LifecycleEntity


class EntityQuery(BaseModel):
    """Filter for listing entities.

    Attributes:
        kind: Entity kind to list.
        tenant_id: Restrict to one community. None matches every tenant.
        status: Restrict to one status value.
        field_equals: Additional exact-match filters on entity fields.
        limit: Maximum number of results.
    """

    kind: EntityKind = Field(...)
    tenant_id: str | None = Field(default=None)
    status: str | None = Field(default=None)
    field_equals: dict[str, str] = Field(default_factory=dict)
    limit: int | None = Field(default=None, ge=1)

    model_config = ConfigDict(frozen=True)


class AuditQuery(BaseModel):
    """Filter for reading the audit log.

    Attributes:
        entity_kind: Restrict to one entity kind.
        entity_id: Restrict to one entity.
        tenant_id: Restrict to one community.
        newest_first: Order by sequence descending instead of ascending.
        limit: Maximum number of results (applied after ordering).
    """

    entity_kind: str | None = Field(default=None)
    entity_id: str | None = Field(default=None)
    tenant_id: str | None = Field(default=None)
    newest_first: bool = Field(default=False)
    limit: int | None = Field(default=None, ge=1)

    model_config = ConfigDict(frozen=True)


class StateStore(ABC):
    """Abstract interface for entity and audit persistence.

    All methods are async. Implementations raise StateStoreError for
    operation failures and UniqueConstraintError for natural key or id
    collisions. Returned entities must be independent copies: mutating them
    never changes stored state.
    """

    @abstractmethod
    async def get_entity(self, kind: EntityKind, entity_id: str) -> LifecycleEntity | None:
        """Read an entity.

        Args:
            kind: Entity kind.
            entity_id: Entity identifier.

        Returns:
            Copy of the stored entity, or None if it does not exist.

        Raises:
            StateStoreError: If the read fails.
        """

    @abstractmethod
    async def insert_entity(self, entity: LifecycleEntity) -> None:
        """Insert a new entity.

        Args:
            entity: Entity to insert.

        Raises:
            UniqueConstraintError: If the id or natural key is already taken
                within the key's scope.
            StateStoreError: If the insert fails.
        """

    @abstractmethod
    async def write_entity(
        self,
        entity: LifecycleEntity,
        expected_status: str,
        expected_version: int,
    ) -> bool:
        """Conditionally replace an existing entity.

        The write happens only if the stored entity still has
        ``expected_status`` and ``expected_version``; the check and the write
        are atomic with respect to other writers.

        Args:
            entity: New entity state (same kind and id).
            expected_status: Status value the caller observed.
            expected_version: Version the caller observed.

        Returns:
            True if written, False if the stored entity changed or is missing.

        Raises:
            StateStoreError: If the write fails.
        """

    @abstractmethod
    async def remove_entity(self, kind: EntityKind, entity_id: str) -> None:
        """Physically remove an entity that was inserted by a failed create.

        Args:
            kind: Entity kind.
            entity_id: Entity identifier.

        Raises:
            StateStoreError: If the removal fails.
        """

    @abstractmethod
    async def find_by_natural_key(
        self, kind: EntityKind, scope_id: str | None, key: str
    ) -> LifecycleEntity | None:
        """Look up an entity by its natural key within a scope.

        Args:
            kind: Entity kind.
            scope_id: Tenant for tenant-scoped keys, None for platform-wide keys.
            key: Natural key value.

        Returns:
            Copy of the matching entity, or None.
        """

    @abstractmethod
    async def list_entities(self, query: EntityQuery) -> list[LifecycleEntity]:
        """List entities matching a query, oldest first."""

    @abstractmethod
    async def append_audit_entry(self, entry: AuditEntry) -> AuditEntry:
        """Append an audit entry.

        Args:
            entry: Entry to append.

        Returns:
            The stored entry with its ``sequence`` assigned.

        Raises:
            StateStoreError: If the append fails.
        """

    @abstractmethod
    async def list_audit_entries(self, query: AuditQuery) -> list[AuditEntry]:
        """Read audit entries matching a query."""


class StateStoreError(Exception):
    """Raised when state store operations fail."""

    pass


class UniqueConstraintError(StateStoreError):
    """Raised when an insert collides with an existing id or natural key."""

    def __init__(self, kind: EntityKind, field: str, value: str) -> None:
        self.kind = kind
        self.field = field
        self.value = value
        super().__init__(f"{kind.value} with {field} '{value}' already exists")
