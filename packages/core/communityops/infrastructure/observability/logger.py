"""structlog-backed observability for the engine."""

import logging
from collections.abc import MutableMapping
from typing import Any

import structlog

from communityops.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from communityops.domain.models.entity import utcnow

LOGGER_NAME = "communityops"
REDACTED = "[REDACTED]"
SENSITIVE_KEYS = frozenset(
    {
        "password",
        "temporary_password",
        "token",
        "access_token",
        "refresh_token",
        "api_key",
        "remote_api_key",
        "authorization",
        "secret",
    }
)
# Keys structlog itself puts in the event dict.
_RESERVED_KEYS = frozenset({"event", "level", "logger", "timestamp"})


def sanitize_for_logging(data: Any) -> Any:
    """Return a copy of ``data`` with credentials redacted.

    Values under credential-like keys and bare bearer tokens are replaced,
    at any nesting depth. The input is never modified.
    """
    if isinstance(data, dict):
        return {
            key: REDACTED
            if isinstance(key, str) and key.lower() in SENSITIVE_KEYS
            else sanitize_for_logging(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [sanitize_for_logging(item) for item in data]
    if isinstance(data, str) and data.startswith("Bearer ") and len(data) > len("Bearer "):
        return REDACTED
    return data


def redact_sensitive(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor applying sanitize_for_logging to every field."""
    for key in list(event_dict):
        if key not in _RESERVED_KEYS:
            event_dict[key] = (
                REDACTED if key.lower() in SENSITIVE_KEYS else sanitize_for_logging(event_dict[key])
            )
    return event_dict


def configure_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """Route structlog through the stdlib ``communityops`` logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_format: JSON lines for production, console rendering otherwise.
    """
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    std_logger = logging.getLogger(LOGGER_NAME)
    std_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    if not std_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        std_logger.addHandler(handler)


class DefaultObservabilityManager(ObservabilityManager):
    """Writes engine events and diagnostics as structured log records.

    Events are logged at INFO under the ``engine_event`` message with the
    event type and payload as fields; everything passes through the
    redaction processor first.
    """

    def __init__(self, log_level: str = "INFO", json_format: bool = True) -> None:
        configure_logging(log_level, json_format)
        self._logger = structlog.get_logger(LOGGER_NAME)

    async def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        fields: dict[str, Any] = {"event_type": event_type, "payload": dict(payload)}
        if metadata:
            fields["metadata"] = {"emitted_at": utcnow().isoformat(), **metadata}
        try:
            self._logger.info("engine_event", **fields)
        except Exception as e:
            raise ObservabilityError(f"Could not emit {event_type}: {e}") from e

    async def log(
        self,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        method = getattr(self._logger, level.lower(), None)
        if method is None:
            method = self._logger.info
        try:
            method(message, **(context or {}))
        except Exception as e:
            raise ObservabilityError(f"Could not write log record: {e}") from e
