"""ResilientInvoker component for deadline-bounded remote procedure calls."""

import asyncio
from typing import Any

import httpx
import structlog

from communityops.domain.interfaces.observability_manager import ObservabilityManager
from communityops.domain.interfaces.remote_procedure import (
    RemoteProcedureClient,
    RemoteProcedureError,
)
from communityops.domain.models.invocation import InvocationResponse
from communityops.domain.models.system_error import (
    InvocationErrorKind,
    RemoteInvocationError,
)
from communityops.infrastructure.config.settings import DEFAULT_REMOTE_TIMEOUT_SECONDS

logger = structlog.get_logger(__name__)

NETWORK_MARKERS = ("fetch", "network", "connection", "failed to send")
SERVICE_MARKERS = ("503", "502", "504", "service unavailable", "bad gateway")
UNAUTHORIZED_MARKERS = (
    "unauthorized",
    "jwt",
    "token expired",
    "session expired",
    "forbidden",
    "401",
    "403",
)


def classify_message(message: str | None) -> InvocationErrorKind:
    """Classify a failure from its message text.

    Args:
        message: Error message reported by the remote side or the transport.

    Returns:
        The matching InvocationErrorKind, Generic if nothing matches.
    """
    text = (message or "").lower()
    if any(marker in text for marker in UNAUTHORIZED_MARKERS):
        return InvocationErrorKind.Unauthorized
    if any(marker in text for marker in SERVICE_MARKERS):
        return InvocationErrorKind.ServiceUnavailable
    if any(marker in text for marker in NETWORK_MARKERS):
        return InvocationErrorKind.NetworkUnavailable
    return InvocationErrorKind.Generic


def classify_error(error: BaseException) -> InvocationErrorKind:
    """Classify an exception raised by a remote procedure client.

    Args:
        error: Exception raised by the client call.

    Returns:
        The InvocationErrorKind describing the failure.
    """
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return InvocationErrorKind.Timeout
    if isinstance(error, (httpx.NetworkError, ConnectionError)):
        return InvocationErrorKind.NetworkUnavailable
    if isinstance(error, RemoteProcedureError) and error.status_code is not None:
        if error.status_code in (401, 403):
            return InvocationErrorKind.Unauthorized
        if error.status_code >= 500:
            return InvocationErrorKind.ServiceUnavailable
    if isinstance(error, OSError):
        return InvocationErrorKind.NetworkUnavailable
    return classify_message(str(error))


class ResilientInvoker:
    """Wraps remote procedure calls with a deadline and an error taxonomy.

    The underlying call races a timer. If the timer wins the call is
    abandoned locally, not cancelled: the remote side may still apply the
    effect, so a Timeout means the outcome is unknown.

    Example:
        ```python
        invoker = ResilientInvoker(client, observability, default_timeout=15.0)
        try:
            response = await invoker.invoke("approve-sticker", {"sticker_id": sid})
        except RemoteInvocationError as e:
            if e.kind == InvocationErrorKind.Timeout:
                ...  # re-read entity state before retrying
        ```
    """

    def __init__(
        self,
        client: RemoteProcedureClient,
        observability_manager: ObservabilityManager,
        default_timeout: float = DEFAULT_REMOTE_TIMEOUT_SECONDS,
        procedure_timeouts: dict[str, float] | None = None,
    ) -> None:
        """Initialize ResilientInvoker.

        Args:
            client: Client performing the actual remote call.
            observability_manager: ObservabilityManager for events and logs.
            default_timeout: Deadline in seconds when none is given.
            procedure_timeouts: Deadline overrides keyed by procedure id.
        """
        if default_timeout <= 0:
            raise ValueError("default_timeout must be greater than 0")
        self._client = client
        self._observability = observability_manager
        self._default_timeout = default_timeout
        self._procedure_timeouts = dict(procedure_timeouts or {})
        self._abandoned: set[asyncio.Future[Any]] = set()

    @property
    def abandoned_count(self) -> int:
        """Number of abandoned calls still running."""
        return len(self._abandoned)

    def timeout_for(self, procedure_id: str, timeout: float | None = None) -> float:
        if timeout is not None:
            return timeout
        return self._procedure_timeouts.get(procedure_id, self._default_timeout)

    async def invoke(
        self,
        procedure_id: str,
        payload: dict[str, Any],
        timeout: float | None = None,
    ) -> InvocationResponse:
        """Invoke a remote procedure within a deadline.

        Args:
            procedure_id: Procedure identifier.
            payload: Flat key-value payload.
            timeout: Deadline in seconds. Defaults to the procedure's configured
                deadline, then to the invoker default.

        Returns:
            The successful response envelope.

        Raises:
            RemoteInvocationError: If the call times out, fails, or the
                envelope reports failure. ``kind`` carries the classification.
        """
        deadline = self.timeout_for(procedure_id, timeout)
        task = asyncio.ensure_future(self._client.call(procedure_id, payload))

        done, _ = await asyncio.wait({task}, timeout=deadline)
        if not done:
            self._abandon(task, procedure_id, deadline)
            error = RemoteInvocationError(
                InvocationErrorKind.Timeout,
                procedure_id=procedure_id,
                technical=f"{procedure_id} did not respond within {deadline}s",
            )
            await self._report_failure(procedure_id, error)
            raise error

        try:
            response = task.result()
        except Exception as e:
            kind = classify_error(e)
            error = RemoteInvocationError(
                kind,
                message=self._user_message(kind, e),
                procedure_id=procedure_id,
                technical=f"{type(e).__name__}: {e}",
            )
            await self._report_failure(procedure_id, error)
            raise error from e

        if not response.success:
            kind = classify_message(response.message)
            error = RemoteInvocationError(
                kind,
                message=response.message if kind == InvocationErrorKind.Generic else None,
                procedure_id=procedure_id,
                technical=response.message,
            )
            await self._report_failure(procedure_id, error)
            raise error

        return response

    @staticmethod
    def _user_message(kind: InvocationErrorKind, error: Exception) -> str | None:
        if kind == InvocationErrorKind.Generic:
            message = error.message if isinstance(error, RemoteProcedureError) else str(error)
            return message or None
        return None

    def _abandon(self, task: asyncio.Future[Any], procedure_id: str, deadline: float) -> None:
        """Keep a reference to a timed-out call so it can finish in the background."""
        self._abandoned.add(task)

        def _on_done(finished: asyncio.Future[Any]) -> None:
            self._abandoned.discard(finished)
            if finished.cancelled():
                outcome = "cancelled"
            elif finished.exception() is not None:
                outcome = f"failed: {finished.exception()}"
            else:
                outcome = "completed"
            logger.info(
                "Abandoned remote invocation finished",
                procedure_id=procedure_id,
                deadline_seconds=deadline,
                outcome=outcome,
            )

        task.add_done_callback(_on_done)

    async def _report_failure(self, procedure_id: str, error: RemoteInvocationError) -> None:
        event_type = (
            "remote_invocation_abandoned"
            if error.kind == InvocationErrorKind.Timeout
            else "remote_invocation_failed"
        )
        try:
            await self._observability.emit_event(
                event_type=event_type,
                payload={
                    "procedure_id": procedure_id,
                    "kind": error.kind.value,
                    "technical": error.technical,
                },
            )
        except Exception as e:
            await self._observability.log(
                level="WARNING",
                message=f"Failed to emit {event_type} event: {e}",
                context={"procedure_id": procedure_id},
            )

    async def close(self) -> None:
        """Cancel abandoned calls that are still running and close the client."""
        pending = list(self._abandoned)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self._client.close()
