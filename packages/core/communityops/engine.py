"""CommunityOpsEngine - entry point of the entity lifecycle & workflow engine."""

from collections.abc import Mapping, Sequence
from datetime import date
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from communityops.domain.components.audit_trail import AuditTrail, IdentityResolver
from communityops.domain.components.bulk_import import BulkImportPipeline
from communityops.domain.components.lifecycle import (
    MACHINE_TYPES,
    LifecycleMachine,
    VehicleStickerMachine,
)
from communityops.domain.components.resilient_invoker import ResilientInvoker
from communityops.domain.interfaces.observability_manager import ObservabilityManager
from communityops.domain.interfaces.remote_procedure import RemoteProcedureClient
from communityops.domain.interfaces.state_store import StateStore
from communityops.domain.models.actor import Actor
from communityops.domain.models.audit_entry import AuditEntry
from communityops.domain.models.batch_result import BatchResult, BulkApprovalResult
from communityops.domain.models.entity import EntityKind, LifecycleEntity
from communityops.domain.models.system_error import ValidationFailedError
from communityops.domain.models.transition_result import TransitionResult
from communityops.infrastructure.adapters.http_procedure_client import HttpRemoteProcedureClient
from communityops.infrastructure.config.file_loader import ConfigurationFileLoader
from communityops.infrastructure.config.settings import EngineSettings
from communityops.infrastructure.observability.logger import DefaultObservabilityManager
from communityops.infrastructure.state_store.memory_store import InMemoryStateStore
from communityops.infrastructure.utils.csv_import import (
    generate_csv_template,
    parse_residence_csv,
)

BULK_IMPORT_KINDS = (EntityKind.Residence,)


class CommunityOpsEngine:
    """Main entry point for callers (UI or CLI).

    Wires the state store, audit trail, resilient invoker, one lifecycle
    machine per entity kind and the bulk import pipeline. Every operation
    takes an explicit actor; nothing is read from ambient session state.

    Example:
        ```python
        async with CommunityOpsEngine() as engine:
            created = await engine.create(
                "vehicle_sticker",
                {"household_id": household_id, "vehicle_plate": "abc 123"},
                actor,
            )
            result = await engine.transition(
                "vehicle_sticker",
                created.entity.id,
                "approve",
                {"expiry_date": "2025-12-31"},
                actor,
                expected_status="requested",
            )
        ```
    """

    def __init__(
        self,
        state_store: StateStore | None = None,
        observability_manager: ObservabilityManager | None = None,
        remote_client: RemoteProcedureClient | None = None,
        identity_resolver: IdentityResolver | None = None,
        config: EngineSettings | dict[str, Any] | None = None,
    ) -> None:
        """Initialize CommunityOpsEngine with dependencies.

        Args:
            state_store: Optional StateStore implementation. Defaults to
                InMemoryStateStore.
            observability_manager: Optional ObservabilityManager implementation.
                Defaults to DefaultObservabilityManager.
            remote_client: Optional client for remote procedures. If not
                provided and ``remote_base_url`` is configured, an
                HttpRemoteProcedureClient is created. Without either,
                remote-backed actions fail.
            identity_resolver: Optional async callable confirming actor identities
                before audited actions.
            config: Optional configuration. Can be:
                   - EngineSettings instance
                   - Dictionary with configuration values
                   - None (loads from environment variables)

        Raises:
            ValueError: If configuration is invalid.
        """
        if config is None:
            self._config = EngineSettings()
        elif isinstance(config, dict):
            self._config = EngineSettings.from_dict(config)
        elif isinstance(config, EngineSettings):
            self._config = config
        else:
            raise ValueError(
                f"Invalid config type: {type(config)}. Expected EngineSettings, dict, or None"
            )

        self._state_store = state_store or InMemoryStateStore()

        if observability_manager is None:
            self._observability_manager: ObservabilityManager = DefaultObservabilityManager(
                log_level=self._config.log_level,
                json_format=self._config.json_logs,
            )
        else:
            self._observability_manager = observability_manager

        if remote_client is None and self._config.remote_base_url:
            remote_client = HttpRemoteProcedureClient(
                base_url=self._config.remote_base_url,
                api_key=self._config.remote_api_key,
            )
        self._invoker: ResilientInvoker | None = None
        if remote_client is not None:
            self._invoker = ResilientInvoker(
                client=remote_client,
                observability_manager=self._observability_manager,
                default_timeout=self._config.remote_timeout_seconds,
                procedure_timeouts=self._config.procedure_timeouts,
            )

        self._audit_trail = AuditTrail(
            state_store=self._state_store,
            observability_manager=self._observability_manager,
            identity_resolver=identity_resolver,
            default_recent_limit=self._config.audit_recent_default_limit,
        )

        self._machines: dict[EntityKind, LifecycleMachine] = {}
        for machine_type in MACHINE_TYPES:
            machine = machine_type(
                state_store=self._state_store,
                audit_trail=self._audit_trail,
                observability_manager=self._observability_manager,
                invoker=self._invoker,
                settings=self._config,
            )
            self._machines[machine.kind] = machine

        self._pipelines = {
            kind: BulkImportPipeline(
                machine=self._machines[kind],
                state_store=self._state_store,
                observability_manager=self._observability_manager,
                max_batch_rows=self._config.max_batch_rows,
            )
            for kind in BULK_IMPORT_KINDS
        }

    @classmethod
    def from_config_file(cls, path: str | Path, **kwargs: Any) -> "CommunityOpsEngine":
        """Create an engine from a YAML or JSON configuration file.

        Args:
            path: Path to the configuration file.
            **kwargs: Other constructor arguments (state_store, remote_client, ...).

        Raises:
            ConfigurationError: If the file is missing or invalid.
        """
        settings = ConfigurationFileLoader(path).load_settings()
        return cls(config=settings, **kwargs)

    async def __aenter__(self) -> "CommunityOpsEngine":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Cancel abandoned remote calls and release the remote client."""
        if self._invoker is not None:
            await self._invoker.close()

    @property
    def state_store(self) -> StateStore:
        return self._state_store

    @property
    def observability_manager(self) -> ObservabilityManager:
        return self._observability_manager

    @property
    def audit_trail(self) -> AuditTrail:
        return self._audit_trail

    @property
    def invoker(self) -> ResilientInvoker | None:
        return self._invoker

    @property
    def settings(self) -> EngineSettings:
        return self._config

    def machine(self, kind: EntityKind | str) -> LifecycleMachine:
        """Return the lifecycle machine for an entity kind.

        Raises:
            ValidationFailedError: If the kind is unknown.
        """
        return self._machines[self._kind(kind)]

    @staticmethod
    def _kind(kind: EntityKind | str) -> EntityKind:
        try:
            return EntityKind(kind)
        except ValueError:
            raise ValidationFailedError(f"Unknown entity kind: {kind}", field="kind") from None

    def _pipeline(self, kind: EntityKind | str) -> BulkImportPipeline:
        resolved = self._kind(kind)
        if resolved not in self._pipelines:
            raise ValidationFailedError(
                f"Bulk import is not available for {resolved.value}",
                field="kind",
            )
        return self._pipelines[resolved]

    async def create(
        self,
        kind: EntityKind | str,
        fields: Mapping[str, Any] | BaseModel,
        actor: Actor,
        tenant_id: str | None = None,
    ) -> TransitionResult:
        """Create an entity of ``kind`` in its initial status."""
        if isinstance(fields, Mapping):
            fields = dict(fields)
        return await self.machine(kind).create(fields, actor, tenant_id=tenant_id)

    async def transition(
        self,
        kind: EntityKind | str,
        entity_id: str,
        action: str,
        params: Mapping[str, Any] | BaseModel | None,
        actor: Actor,
        expected_status: str | None = None,
    ) -> TransitionResult:
        """Apply ``action`` to an entity. See LifecycleMachine.transition."""
        if isinstance(params, Mapping):
            params = dict(params)
        return await self.machine(kind).transition(
            entity_id, action, params, actor, expected_status=expected_status
        )

    async def get_entity(self, kind: EntityKind | str, entity_id: str, actor: Actor) -> LifecycleEntity:
        return await self.machine(kind).get(entity_id, actor)

    async def allowed_actions(self, kind: EntityKind | str, entity_id: str, actor: Actor) -> list[str]:
        machine = self.machine(kind)
        return machine.allowed_actions(await machine.get(entity_id, actor), actor)

    async def approve_stickers(
        self,
        sticker_ids: Sequence[str],
        expiry_date: date | str,
        actor: Actor,
    ) -> BulkApprovalResult:
        """Approve many requested stickers with one expiry date.

        See VehicleStickerMachine.approve_many.
        """
        machine = self.machine(EntityKind.VehicleSticker)
        assert isinstance(machine, VehicleStickerMachine)
        return await machine.approve_many(list(sticker_ids), expiry_date, actor)

    async def import_batch(
        self,
        kind: EntityKind | str,
        rows: Sequence[Mapping[str, Any]],
        scope: str,
        actor: Actor,
    ) -> BatchResult:
        """Bulk-create entities from raw rows. See BulkImportPipeline.import_batch."""
        return await self._pipeline(kind).import_batch(rows, scope, actor)

    async def import_csv(
        self,
        kind: EntityKind | str,
        csv_text: str,
        scope: str,
        actor: Actor,
    ) -> BatchResult:
        """Parse a CSV file and bulk-create its rows.

        Raises:
            ValidationFailedError: If the file is empty or misses required columns.
        """
        pipeline = self._pipeline(kind)
        return await pipeline.import_batch(parse_residence_csv(csv_text), scope, actor)

    def csv_template(self, kind: EntityKind | str) -> str:
        self._pipeline(kind)
        return generate_csv_template()

    async def audit_recent(self, limit: int | None = None, tenant_id: str | None = None) -> list[AuditEntry]:
        """Most recent audit entries, most recent first."""
        return await self._audit_trail.recent(limit, tenant_id=tenant_id)

    async def audit_history(self, kind: EntityKind | str, entity_id: str) -> list[AuditEntry]:
        """Audit entries of one entity, oldest first."""
        return await self._audit_trail.history(self._kind(kind).value, entity_id)
