"""Where the engine sends its events and diagnostics."""

from abc import ABC, abstractmethod
from typing import Any


class ObservabilityManager(ABC):
    """Sink for engine events (entity_created, entity_transitioned,
    remote_invocation_failed, remote_invocation_abandoned, batch_imported,
    batch_rejected) and for free-form log records.

    Callers in the engine never let a failure here fail an operation; they
    catch it and log at WARNING instead.
    """

    @abstractmethod
    async def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record one engine event.

        Args:
            event_type: Event name, e.g. "entity_transitioned".
            payload: Event fields (entity kind and id, statuses, counts).
            metadata: Actor details and similar context.

        Raises:
            ObservabilityError: If the event cannot be recorded.
        """

    @abstractmethod
    async def log(
        self,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Write a log record at ``level`` (DEBUG to CRITICAL).

        Raises:
            ObservabilityError: If the record cannot be written.
        """


class ObservabilityError(Exception):
    """An event or log record could not be written."""
