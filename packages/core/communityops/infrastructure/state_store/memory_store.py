"""In-memory state store implementation.

This module provides an in-memory implementation of the StateStore interface
using Python dictionaries. Entities are stored and returned as deep copies,
so callers never share mutable state with the store.

Example:
    ```python
    from communityops.infrastructure.state_store.memory_store import InMemoryStateStore

    store = InMemoryStateStore()
    await store.insert_entity(residence)
    found = await store.find_by_natural_key(EntityKind.Residence, tenant_id, "101")
    ```
"""

import asyncio

from communityops.domain.interfaces.state_store import (
    AuditQuery,
    EntityQuery,
    StateStore,
    StateStoreError,
    UniqueConstraintError,
)
from communityops.domain.models.audit_entry import AuditEntry
from communityops.domain.models.entity import EntityKind, LifecycleEntity


class InMemoryStateStore(StateStore):
    """In-memory implementation of StateStore interface.

    Thread Safety:
        - Inserts, conditional writes and audit appends run under one
          asyncio.Lock, which makes the status/version check and the write
          atomic and keeps natural key checks race-free.
        - Reads are served without the lock.

    Attributes:
        _entities: Entities keyed by (kind, id)
        _natural_keys: Entity ids keyed by (kind, scope, natural key)
        _audit: Append-only list of audit entries in sequence order
        _write_lock: asyncio.Lock for write operations
    """

    def __init__(self) -> None:
        """Initialize InMemoryStateStore with empty storage."""
        self._entities: dict[tuple[EntityKind, str], LifecycleEntity] = {}
        self._natural_keys: dict[tuple[EntityKind, str | None, str], str] = {}
        self._audit: list[AuditEntry] = []
        self._write_lock = asyncio.Lock()

    @staticmethod
    def _key_slot(entity: LifecycleEntity) -> tuple[EntityKind, str | None, str] | None:
        key = entity.natural_key()
        if key is None:
            return None
        return (entity.kind, entity.natural_key_scope(), key.lower())

    async def get_entity(self, kind: EntityKind, entity_id: str) -> LifecycleEntity | None:
        try:
            entity = self._entities.get((kind, entity_id))
            return entity.model_copy(deep=True) if entity is not None else None
        except Exception as e:
            raise StateStoreError(f"Failed to get {kind.value} {entity_id}: {e}") from e

    async def insert_entity(self, entity: LifecycleEntity) -> None:
        """Insert a new entity, enforcing id and natural key uniqueness.

        Natural keys compare case-insensitively within their scope.
        """
        async with self._write_lock:
            if (entity.kind, entity.id) in self._entities:
                raise UniqueConstraintError(entity.kind, "id", entity.id)
            slot = self._key_slot(entity)
            if slot is not None and slot in self._natural_keys:
                raise UniqueConstraintError(
                    entity.kind, entity.natural_key_field or "key", entity.natural_key() or ""
                )
            try:
                self._entities[(entity.kind, entity.id)] = entity.model_copy(deep=True)
                if slot is not None:
                    self._natural_keys[slot] = entity.id
            except Exception as e:
                raise StateStoreError(f"Failed to insert {entity.describe()}: {e}") from e

    async def write_entity(
        self,
        entity: LifecycleEntity,
        expected_status: str,
        expected_version: int,
    ) -> bool:
        async with self._write_lock:
            current = self._entities.get((entity.kind, entity.id))
            if current is None:
                return False
            if current.status_value != expected_status or current.version != expected_version:
                return False
            old_slot = self._key_slot(current)
            new_slot = self._key_slot(entity)
            if new_slot != old_slot and new_slot is not None and new_slot in self._natural_keys:
                raise UniqueConstraintError(
                    entity.kind, entity.natural_key_field or "key", entity.natural_key() or ""
                )
            try:
                self._entities[(entity.kind, entity.id)] = entity.model_copy(deep=True)
                if new_slot != old_slot:
                    if old_slot is not None:
                        self._natural_keys.pop(old_slot, None)
                    if new_slot is not None:
                        self._natural_keys[new_slot] = entity.id
            except Exception as e:
                raise StateStoreError(f"Failed to write {entity.describe()}: {e}") from e
            return True

    async def remove_entity(self, kind: EntityKind, entity_id: str) -> None:
        async with self._write_lock:
            entity = self._entities.pop((kind, entity_id), None)
            if entity is None:
                return
            slot = self._key_slot(entity)
            if slot is not None and self._natural_keys.get(slot) == entity_id:
                del self._natural_keys[slot]

    async def find_by_natural_key(
        self, kind: EntityKind, scope_id: str | None, key: str
    ) -> LifecycleEntity | None:
        entity_id = self._natural_keys.get((kind, scope_id, key.strip().lower()))
        if entity_id is None:
            return None
        return await self.get_entity(kind, entity_id)

    async def list_entities(self, query: EntityQuery) -> list[LifecycleEntity]:
        try:
            results = []
            for (kind, _), entity in self._entities.items():
                if kind != query.kind:
                    continue
                if query.tenant_id is not None and entity.scope_id != query.tenant_id:
                    continue
                if query.status is not None and entity.status_value != query.status:
                    continue
                if any(
                    str(getattr(entity, field, None)) != value
                    for field, value in query.field_equals.items()
                ):
                    continue
                results.append(entity.model_copy(deep=True))
            results.sort(key=lambda e: e.created_at)
            if query.limit is not None:
                results = results[: query.limit]
            return results
        except Exception as e:
            raise StateStoreError(f"Failed to list {query.kind.value} entities: {e}") from e

    async def append_audit_entry(self, entry: AuditEntry) -> AuditEntry:
        async with self._write_lock:
            try:
                stored = entry.model_copy(update={"sequence": len(self._audit) + 1})
                self._audit.append(stored)
                return stored
            except Exception as e:
                raise StateStoreError(f"Failed to append audit entry {entry.id}: {e}") from e

    async def list_audit_entries(self, query: AuditQuery) -> list[AuditEntry]:
        entries = [
            entry
            for entry in self._audit
            if (query.entity_kind is None or entry.entity_kind == query.entity_kind)
            and (query.entity_id is None or entry.entity_id == query.entity_id)
            and (query.tenant_id is None or entry.tenant_id == query.tenant_id)
        ]
        if query.newest_first:
            entries.reverse()
        if query.limit is not None:
            entries = entries[: query.limit]
        return entries
