"""Bulk import pipeline: validate, deduplicate and partially commit a batch."""

from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

from communityops.domain.components.lifecycle.base import LifecycleMachine
from communityops.domain.interfaces.observability_manager import ObservabilityManager
from communityops.domain.interfaces.state_store import StateStore
from communityops.domain.models.actor import Actor
from communityops.domain.models.batch_result import BatchResult, RowError
from communityops.domain.models.community import CommunityStatus
from communityops.domain.models.entity import EntityKind
from communityops.domain.models.system_error import (
    BatchRejectedError,
    EngineError,
    EntityNotFoundError,
    ErrorCategory,
    RowFailedError,
    ValidationFailedError,
)
from communityops.infrastructure.utils.validation import parse_model


class BulkImportPipeline:
    """Creates many entities of one kind through its machine's create operation.

    Processing happens in three steps:

    1. Every raw row is parsed into the machine's create model. Parse
       failures are recorded against the row and never abort the batch.
    2. Natural keys must be unique within the batch. Any duplicate rejects
       the whole batch before anything is committed.
    3. Rows are committed one at a time, in input order. A row whose key
       already exists in the scope, or whose create fails, is recorded as a
       failure and the pipeline moves on to the next row.

    The storage layer's unique constraint remains the authoritative guard
    against duplicates written by concurrent batches; the pre-check in step 3
    only produces the friendlier message.
    """

    def __init__(
        self,
        machine: LifecycleMachine,
        state_store: StateStore,
        observability_manager: ObservabilityManager,
        max_batch_rows: int = 5000,
    ) -> None:
        """Initialize BulkImportPipeline.

        Args:
            machine: Lifecycle machine whose create operation commits each row.
                Its entity model must declare a natural key.
            state_store: StateStore used for scope and existing-key lookups.
            observability_manager: ObservabilityManager for events and logs.
            max_batch_rows: Largest batch accepted.
        """
        key_field = machine.entity_model.natural_key_field
        if key_field is None:
            raise ValueError(f"{machine.kind.value} has no natural key for bulk import")
        self._machine = machine
        self._state_store = state_store
        self._observability = observability_manager
        self._max_batch_rows = max_batch_rows
        self._key_field = key_field
        self._key_label = key_field.replace("_", " ").capitalize()

    @property
    def kind(self) -> EntityKind:
        return self._machine.kind

    async def import_batch(
        self,
        rows: Sequence[Mapping[str, Any]],
        scope: str,
        actor: Actor,
    ) -> BatchResult:
        """Import a batch of raw rows into one community.

        Args:
            rows: Raw records (e.g. CSV rows as dictionaries).
            scope: Community id the entities are created in.
            actor: Caller identity.

        Returns:
            BatchResult with per-row failures in input order. Its success and
            failure counts always add up to ``len(rows)``.

        Raises:
            ValidationFailedError: If the batch is too large or the community
                is not active.
            EntityNotFoundError: If the community is missing or not accessible.
            BatchRejectedError: If natural keys repeat within the batch.
        """
        if len(rows) > self._max_batch_rows:
            raise ValidationFailedError(
                f"A batch can contain at most {self._max_batch_rows} rows; this one has {len(rows)}",
                field="rows",
            )
        await self._check_scope(scope, actor)

        # Step 1: structural parse
        parsed: list[tuple[int, str | None, Any]] = []
        failures: dict[int, RowFailedError] = {}
        raw_keys: list[str] = []
        for row_index, raw in enumerate(rows, start=1):
            key = self._raw_key(raw)
            if key:
                raw_keys.append(key)
            try:
                record = parse_model(self._machine.create_model, dict(raw))
            except ValidationFailedError as e:
                failures[row_index] = RowFailedError(row_index, key, e)
                continue
            parsed.append((row_index, getattr(record, self._key_field), record))

        # Step 2: intra-batch duplicate check, rows that failed to parse included
        counts = Counter(key.lower() for key in raw_keys)
        duplicates = sorted({key for key in raw_keys if counts[key.lower()] > 1})
        if duplicates:
            await self._emit(
                "batch_rejected",
                {
                    "entity_kind": self.kind.value,
                    "tenant_id": scope,
                    "row_count": len(rows),
                    "duplicate_keys": duplicates,
                },
            )
            raise BatchRejectedError(
                duplicates,
                message=f"Duplicate {self._key_label.lower()}s in file: {', '.join(duplicates)}",
            )

        # Step 3: per-row commit
        created_ids: list[str] = []
        for row_index, key, record in parsed:
            try:
                existing = await self._state_store.find_by_natural_key(self.kind, scope, key)
                if existing is not None:
                    raise ValidationFailedError(
                        f"{self._key_label} {key} already exists",
                        field=self._key_field,
                    )
                result = await self._machine.create(record, actor, tenant_id=scope)
            except EngineError as e:
                failures[row_index] = RowFailedError(row_index, key, e)
                continue
            except Exception as e:
                await self._observability.log(
                    level="ERROR",
                    message=f"Unexpected error importing row {row_index}: {e}",
                    context={"entity_kind": self.kind.value, "row_index": row_index},
                )
                failures[row_index] = RowFailedError(row_index, key, e)
                continue
            created_ids.append(result.entity.id)

        result = BatchResult(
            total_rows=len(rows),
            success_count=len(created_ids),
            failure_count=len(failures),
            errors=[self._row_error(failures[index]) for index in sorted(failures)],
            created_ids=created_ids,
        )
        await self._emit(
            "batch_imported",
            {
                "entity_kind": self.kind.value,
                "tenant_id": scope,
                "total_rows": result.total_rows,
                "success_count": result.success_count,
                "failure_count": result.failure_count,
            },
        )
        return result

    async def _check_scope(self, scope: str, actor: Actor) -> None:
        if not actor.can_access(scope):
            raise EntityNotFoundError("Community not found or access denied")
        community = await self._state_store.get_entity(EntityKind.Community, scope)
        if community is None:
            raise EntityNotFoundError("Community not found or access denied")
        if community.status_value != CommunityStatus.Active.value:
            raise ValidationFailedError(
                f"Community must be active to import records (currently {community.status_value})",
                field="scope",
            )

    def _raw_key(self, raw: Mapping[str, Any]) -> str | None:
        value = raw.get(self._key_field)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def _row_error(self, failure: RowFailedError) -> RowError:
        cause = failure.cause
        category = (
            cause.category.value if isinstance(cause, EngineError) else ErrorCategory.UnknownError.value
        )
        message = failure.message
        if failure.key and failure.key not in message:
            message = f"{self._key_label} {failure.key}: {message}"
        elif not failure.key:
            message = f"Row {failure.row_index}: {message}"
        return RowError(
            row_index=failure.row_index,
            key=failure.key,
            message=message,
            category=category,
        )

    async def _emit(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._observability.emit_event(event_type=event_type, payload=payload)
        except Exception as e:
            await self._observability.log(
                level="WARNING",
                message=f"Failed to emit {event_type} event: {e}",
                context={"entity_kind": self.kind.value},
            )
