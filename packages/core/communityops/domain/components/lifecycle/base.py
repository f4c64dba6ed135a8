"""Shared transition contract for every entity lifecycle machine."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python

from communityops.domain.components.audit_trail import AuditTrail
from communityops.domain.components.resilient_invoker import ResilientInvoker
from communityops.domain.interfaces.observability_manager import ObservabilityManager
from communityops.domain.interfaces.state_store import StateStore, UniqueConstraintError
from communityops.domain.models.actor import Actor, AdminRole
from communityops.domain.models.audit_entry import AuditEntry
from communityops.domain.models.community import Community, CommunityStatus
from communityops.domain.models.entity import EntityKind, LifecycleEntity, utcnow
from communityops.domain.models.invocation import InvocationResponse
from communityops.domain.models.system_error import (
    AuditUnavailableError,
    ConflictError,
    EntityNotFoundError,
    InvalidTransitionError,
    InvocationErrorKind,
    PermissionDeniedError,
    RemoteInvocationError,
    ValidationFailedError,
)
from communityops.domain.models.transition_result import TransitionResult
from communityops.infrastructure.config.settings import EngineSettings
from communityops.infrastructure.utils.validation import parse_model, to_validation_failed

CREATE_ACTION = "create"


class NoParams(BaseModel):
    """Parameters of actions that take none."""

    model_config = ConfigDict(extra="ignore")


class TransitionRule(BaseModel):
    """One row of a kind's transition table.

    Attributes:
        action: Action name.
        sources: Status values the action may start from.
        target: Fixed target status. None keeps the current status unless the
            machine resolves a target from the parameters.
        params_model: Pydantic model the action's parameters must satisfy.
        remote_procedure: Remote procedure that must succeed before the
            local commit, if the action is remote-backed.
        idempotent: Repeating the action on an entity it already applied to
            is accepted as a no-op that is still audited.
        roles: Roles allowed to perform the action. Empty allows every role.
    """

    action: str = Field(..., min_length=1)
    sources: tuple[str, ...] = Field(..., min_length=1)
    target: str | None = Field(default=None)
    params_model: type[BaseModel] = Field(default=NoParams)
    remote_procedure: str | None = Field(default=None)
    idempotent: bool = Field(default=False)
    roles: frozenset[AdminRole] = Field(default_factory=frozenset)

    model_config = ConfigDict(frozen=True)

    def allows(self, status: str) -> bool:
        return status in self.sources

    def permits(self, actor: Actor) -> bool:
        return not self.roles or actor.role in self.roles


def rule(
    action: str,
    sources: Any,
    target: Any = None,
    params_model: type[BaseModel] = NoParams,
    remote_procedure: str | None = None,
    idempotent: bool = False,
    roles: Any = (),
) -> TransitionRule:
    """Build a TransitionRule from enum members or plain values."""
    if not isinstance(sources, (list, tuple, set, frozenset)):
        sources = (sources,)
    return TransitionRule(
        action=action,
        sources=tuple(getattr(s, "value", s) for s in sources),
        target=getattr(target, "value", target),
        params_model=params_model,
        remote_procedure=remote_procedure,
        idempotent=idempotent,
        roles=frozenset(roles),
    )


class LifecycleMachine:
    """Finite-state machine for one entity kind.

    Subclasses declare ``entity_model``, ``create_model`` and ``rules`` (the
    static transition table consulted before any mutation) and override the
    hooks they need:

    - ``validate``: cross-entity checks for an action
    - ``resolve_target``: target status for actions without a fixed target
    - ``apply``: kind-specific field changes committed with the status
    - ``remote_payload``: payload for remote-backed actions
    - ``validate_create`` / ``creation_fields``: the create operation

    A transition runs in this order: load and tenant check, expected status
    check, legality check, role check, parameter validation, cross-validation, actor
    resolution, remote call, then the conditional write and the audit append
    under the entity's commit lock. Nothing is persisted before the remote
    call succeeds, and a failed audit append restores the prior state.
    """

    entity_model: ClassVar[type[LifecycleEntity]]
    create_model: ClassVar[type[BaseModel]]
    rules: ClassVar[dict[str, TransitionRule]] = {}
    tenant_scoped: ClassVar[bool] = True
    label: ClassVar[str] = "Record"

    def __init__(
        self,
        state_store: StateStore,
        audit_trail: AuditTrail,
        observability_manager: ObservabilityManager,
        invoker: ResilientInvoker | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        """Initialize the machine.

        Args:
            state_store: StateStore for entity persistence.
            audit_trail: AuditTrail recording every committed action.
            observability_manager: ObservabilityManager for events and logs.
            invoker: ResilientInvoker for remote-backed actions. Without one,
                remote-backed actions fail with RemoteInvocationError.
            settings: Engine settings. Defaults to EngineSettings().
        """
        self._state_store = state_store
        self._audit = audit_trail
        self._observability = observability_manager
        self._invoker = invoker
        self._settings = settings or EngineSettings()
        # entity id -> (lock, number of callers holding or awaiting it)
        self._commit_locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @property
    def kind(self) -> EntityKind:
        return self.entity_model.kind

    @property
    def initial_status(self) -> str:
        default = self.entity_model.model_fields["status"].default
        return getattr(default, "value", default)

    def rule_for(self, action: str) -> TransitionRule:
        """Return the rule for an action.

        Raises:
            InvalidTransitionError: If the kind has no such action.
        """
        try:
            return self.rules[action]
        except KeyError:
            raise InvalidTransitionError(
                f"Unknown action '{action}' for {self.label.lower()}",
                technical=f"{self.kind.value} has no action {action!r}",
            ) from None

    def is_reapply(self, entity: LifecycleEntity, transition_rule: TransitionRule) -> bool:
        """True when an idempotent action has already been applied to the entity.

        Only rules flagged ``idempotent`` qualify; by default the action counts
        as applied once its fixed target is the entity's status.
        """
        return (
            transition_rule.idempotent
            and transition_rule.target is not None
            and transition_rule.target == entity.status_value
        )

    def allowed_actions(self, entity: LifecycleEntity, actor: Actor | None = None) -> list[str]:
        """Actions accepted from the entity's current status, re-applies included.

        With an actor, actions its role may not perform are left out.
        """
        return [
            name
            for name, transition_rule in self.rules.items()
            if (transition_rule.allows(entity.status_value) or self.is_reapply(entity, transition_rule))
            and (actor is None or transition_rule.permits(actor))
        ]

    def check_role(self, transition_rule: TransitionRule, actor: Actor) -> None:
        """Raise PermissionDeniedError if the actor's role may not run the action."""
        if not transition_rule.permits(actor):
            allowed = ", ".join(sorted(role.value for role in transition_rule.roles))
            raise PermissionDeniedError(
                f"Your role cannot {transition_rule.action.replace('_', ' ')} this {self.label.lower()}",
                technical=f"{self.kind.value}.{transition_rule.action} requires one of: {allowed}",
            )

    async def get(self, entity_id: str, actor: Actor) -> LifecycleEntity:
        """Load an entity the actor is allowed to see.

        Raises:
            EntityNotFoundError: If it does not exist or belongs to another tenant.
        """
        entity = await self._state_store.get_entity(self.kind, entity_id)
        if entity is None or not actor.can_access(entity.scope_id):
            raise EntityNotFoundError(
                f"{self.label} not found or access denied",
                technical=f"{self.kind.value} {entity_id}",
            )
        return entity

    # Hooks

    def resolve_target(
        self, entity: LifecycleEntity, transition_rule: TransitionRule, params: BaseModel
    ) -> str:
        return transition_rule.target or entity.status_value

    async def validate(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
    ) -> None:
        return None

    def apply(
        self,
        entity: LifecycleEntity,
        transition_rule: TransitionRule,
        params: BaseModel,
        actor: Actor,
        now: datetime,
    ) -> dict[str, Any]:
        return {}

    def remote_payload(
        self, entity: LifecycleEntity, transition_rule: TransitionRule, params: BaseModel
    ) -> dict[str, Any]:
        payload = {"id": entity.id, "action": transition_rule.action}
        payload.update(params.model_dump(mode="json", exclude_none=True))
        return payload

    async def validate_create(self, data: BaseModel, actor: Actor, tenant_id: str | None) -> None:
        return None

    def creation_fields(self, data: BaseModel, actor: Actor, now: datetime) -> dict[str, Any]:
        return data.model_dump()

    # Shared helpers for subclasses

    async def require_related(
        self,
        kind: EntityKind,
        entity_id: str,
        tenant_id: str | None,
        label: str,
    ) -> LifecycleEntity:
        """Load a related entity from the same tenant.

        Raises:
            ValidationFailedError: If it does not exist in that tenant.
        """
        related = await self._state_store.get_entity(kind, entity_id)
        if related is None or related.scope_id != tenant_id:
            raise ValidationFailedError(
                f"{label} not found",
                field=f"{kind.value}_id",
                technical=f"{kind.value} {entity_id} not in tenant {tenant_id}",
            )
        return related

    async def resolve_tenant(
        self, actor: Actor, tenant_id: str | None, data: BaseModel | None = None
    ) -> str | None:
        """Resolve and check the community a new entity is created in.

        Raises:
            ValidationFailedError: If no community can be determined or it is deleted.
            EntityNotFoundError: If the community is outside the actor's tenant.
        """
        if not self.tenant_scoped:
            return None
        tenant_id = tenant_id or actor.tenant_id
        if not tenant_id:
            raise ValidationFailedError("Community is required", field="tenant_id")
        if not actor.can_access(tenant_id):
            raise EntityNotFoundError("Community not found or access denied")
        community = await self._state_store.get_entity(EntityKind.Community, tenant_id)
        if community is None:
            raise EntityNotFoundError("Community not found or access denied")
        if isinstance(community, Community) and community.status == CommunityStatus.Deleted:
            raise ValidationFailedError(
                "Community has been deleted",
                field="tenant_id",
            )
        return tenant_id

    # Operations

    async def create(
        self,
        fields: dict[str, Any] | BaseModel,
        actor: Actor,
        tenant_id: str | None = None,
    ) -> TransitionResult:
        """Create an entity in the kind's initial status.

        Args:
            fields: Creation fields, validated against ``create_model``.
            actor: Caller identity.
            tenant_id: Community to create in. Defaults to the actor's community.

        Returns:
            TransitionResult with the stored entity and its audit entry.

        Raises:
            ValidationFailedError: If fields are invalid or the natural key is taken.
            EntityNotFoundError: If the community is missing or not accessible.
            AuditUnavailableError: If the actor cannot be resolved or the
                audit append fails (the entity is then removed again).
        """
        data = parse_model(self.create_model, fields)
        tenant_id = await self.resolve_tenant(actor, tenant_id, data)
        await self.validate_create(data, actor, tenant_id)
        actor = await self._audit.authorize(actor)

        now = utcnow()
        values = self.creation_fields(data, actor, now)
        values.update(
            {
                "tenant_id": tenant_id if self.tenant_scoped else values.get("tenant_id"),
                "status": self.initial_status,
                "version": 1,
                "created_at": now,
                "updated_at": now,
            }
        )
        try:
            entity = self.entity_model.model_validate(values)
        except PydanticValidationError as e:
            raise to_validation_failed(e) from e

        try:
            await self._state_store.insert_entity(entity)
        except UniqueConstraintError as e:
            raise ValidationFailedError(
                f"{e.field.replace('_', ' ').capitalize()} {e.value} already exists",
                field=e.field,
                technical=str(e),
            ) from e

        entry = self._audit_entry(
            entity,
            CREATE_ACTION,
            actor,
            prior_status=None,
            new_status=entity.status_value,
            changes={"fields": to_jsonable_python(data.model_dump(exclude_none=True))},
        )
        try:
            stored_entry = await self._audit.append(entry)
        except AuditUnavailableError:
            await self._state_store.remove_entity(self.kind, entity.id)
            raise

        await self._emit(
            "entity_created",
            {
                "entity_kind": self.kind.value,
                "entity_id": entity.id,
                "tenant_id": entity.tenant_id,
                "status": entity.status_value,
            },
            actor,
        )
        return TransitionResult(
            entity=entity,
            action=CREATE_ACTION,
            prior_status=None,
            new_status=entity.status_value,
            audit_entry=stored_entry,
        )

    async def transition(
        self,
        entity_id: str,
        action: str,
        params: dict[str, Any] | BaseModel | None,
        actor: Actor,
        expected_status: str | None = None,
    ) -> TransitionResult:
        """Apply an action to an entity.

        Args:
            entity_id: Entity identifier.
            action: Action name from the kind's transition table.
            params: Action parameters, validated against the rule's params model.
            actor: Caller identity.
            expected_status: Status the caller observed. If the persisted
                status differs the call fails with ConflictError.

        Returns:
            TransitionResult with the committed entity and its audit entry.

        Raises:
            EntityNotFoundError: If the entity is missing or not accessible.
            ConflictError: If the entity changed since the caller observed it.
            InvalidTransitionError: If the action is unknown or not legal
                from the current status.
            PermissionDeniedError: If the actor's role may not perform the action.
            ValidationFailedError: If parameters violate the action's constraints.
            AuditUnavailableError: If the actor cannot be resolved or the
                audit append fails.
            RemoteInvocationError: If a remote-backed step does not succeed.
        """
        entity = await self.get(entity_id, actor)
        current = entity.status_value
        expected = getattr(expected_status, "value", expected_status)
        if expected is not None and expected != current:
            raise ConflictError(
                f"{self.label} is now {current}, not {expected}",
                technical=f"{self.kind.value} {entity_id} expected {expected} found {current}",
            )

        transition_rule = self.rule_for(action)
        reapplied = self.is_reapply(entity, transition_rule)
        if not reapplied and not transition_rule.allows(current):
            raise InvalidTransitionError(
                f"Cannot {action.replace('_', ' ')} {self.label.lower()} with status: {current}",
                technical=f"{self.kind.value}.{action} allowed from {list(transition_rule.sources)}",
            )
        self.check_role(transition_rule, actor)

        parsed = parse_model(transition_rule.params_model, params)
        if not reapplied:
            await self.validate(entity, transition_rule, parsed, actor)
        actor = await self._audit.authorize(actor)

        target = current if reapplied else self.resolve_target(entity, transition_rule, parsed)

        remote_response: InvocationResponse | None = None
        if not reapplied and transition_rule.remote_procedure is not None:
            remote_response = await self._invoke_remote(entity, transition_rule, parsed)

        now = utcnow()
        changes = {} if reapplied else self.apply(entity, transition_rule, parsed, actor, now)
        try:
            updated = self.entity_model.model_validate(
                {
                    **entity.model_dump(),
                    **changes,
                    "status": target,
                    "version": entity.version + 1,
                    "updated_at": now,
                }
            )
        except PydanticValidationError as e:
            raise to_validation_failed(e) from e

        entry = self._audit_entry(
            entity,
            action,
            actor,
            prior_status=current,
            new_status=target,
            changes={
                "params": to_jsonable_python(parsed.model_dump(exclude_none=True)),
                "before": to_jsonable_python({key: getattr(entity, key) for key in changes}),
                "after": to_jsonable_python(changes),
            },
            reapplied=reapplied,
        )
        stored_entry = await self._commit(entity, updated, entry, remote_response is not None)

        await self._emit(
            "entity_transitioned",
            {
                "entity_kind": self.kind.value,
                "entity_id": entity.id,
                "action": action,
                "from_status": current,
                "to_status": target,
                "reapplied": reapplied,
            },
            actor,
        )
        return TransitionResult(
            entity=updated,
            action=action,
            prior_status=current,
            new_status=target,
            audit_entry=stored_entry,
            reapplied=reapplied,
            remote_response=remote_response,
        )

    async def _invoke_remote(
        self, entity: LifecycleEntity, transition_rule: TransitionRule, params: BaseModel
    ) -> InvocationResponse:
        procedure_id = transition_rule.remote_procedure or ""
        if self._invoker is None:
            raise RemoteInvocationError(
                InvocationErrorKind.Generic,
                message="Remote actions are not configured",
                procedure_id=procedure_id,
                technical="No ResilientInvoker configured",
            )
        return await self._invoker.invoke(
            procedure_id,
            self.remote_payload(entity, transition_rule, params),
        )

    @asynccontextmanager
    async def _entity_lock(self, entity_id: str) -> AsyncIterator[None]:
        """Serialize commits for one entity; the lock is dropped once unused."""
        lock, users = self._commit_locks.get(entity_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._commit_locks[entity_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            _, users = self._commit_locks[entity_id]
            if users == 1:
                del self._commit_locks[entity_id]
            else:
                self._commit_locks[entity_id] = (lock, users - 1)

    async def _commit(
        self,
        before: LifecycleEntity,
        after: LifecycleEntity,
        entry: AuditEntry,
        remote_applied: bool,
    ) -> AuditEntry:
        """Conditionally write ``after`` and append its audit entry atomically.

        Raises:
            ConflictError: If the stored entity no longer matches ``before``.
            AuditUnavailableError: If the append fails; ``before`` is restored.
        """
        async with self._entity_lock(before.id):
            written = await self._state_store.write_entity(
                after,
                expected_status=before.status_value,
                expected_version=before.version,
            )
            if not written:
                if remote_applied:
                    await self._observability.log(
                        level="WARNING",
                        message="Remote action succeeded but the local commit conflicted",
                        context={"entity_kind": self.kind.value, "entity_id": before.id},
                    )
                raise ConflictError(
                    f"{self.label} was changed by someone else",
                    technical=(
                        f"{self.kind.value} {before.id} no longer at "
                        f"{before.status_value}/v{before.version}"
                    ),
                )
            try:
                return await self._audit.append(entry)
            except AuditUnavailableError:
                await self._state_store.write_entity(
                    before,
                    expected_status=after.status_value,
                    expected_version=after.version,
                )
                raise

    def _audit_entry(
        self,
        entity: LifecycleEntity,
        action: str,
        actor: Actor,
        prior_status: str | None,
        new_status: str,
        changes: dict[str, Any],
        reapplied: bool = False,
    ) -> AuditEntry:
        return AuditEntry(
            actor_id=actor.id or "",
            actor_role=actor.role.value,
            action_type=f"{self.kind.value}.{action}",
            action=action,
            entity_kind=self.kind.value,
            entity_id=entity.id,
            tenant_id=entity.scope_id,
            prior_status=prior_status,
            new_status=new_status,
            changes=changes,
            reapplied=reapplied,
        )

    async def _emit(self, event_type: str, payload: dict[str, Any], actor: Actor) -> None:
        try:
            await self._observability.emit_event(
                event_type=event_type,
                payload=payload,
                metadata={"actor_id": actor.id, "actor_role": actor.role.value},
            )
        except Exception as e:
            # Log error but don't fail the operation if event emission fails
            await self._observability.log(
                level="WARNING",
                message=f"Failed to emit {event_type} event: {e}",
                context={"entity_kind": self.kind.value, "entity_id": payload.get("entity_id")},
            )


def table(*rules: TransitionRule) -> dict[str, TransitionRule]:
    """Index transition rules by action name."""
    return {r.action: r for r in rules}
