"""Configuration settings using pydantic-settings."""

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_REMOTE_TIMEOUT_SECONDS = 15.0


class EngineSettings(BaseSettings):
    """Configuration settings for CommunityOpsEngine.

    Settings can be loaded from environment variables or passed as a dictionary.
    Environment variables are prefixed with 'COMMUNITYOPS_'
    (e.g., COMMUNITYOPS_REMOTE_TIMEOUT_SECONDS=10).

    Example:
        ```python
        # From environment variables
        settings = EngineSettings()

        # From dictionary
        settings = EngineSettings(remote_timeout_seconds=5.0)

        # Per-procedure deadline
        settings = EngineSettings(procedure_timeouts={"approve-sticker": 30.0})
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="COMMUNITYOPS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Remote invocation configuration
    remote_timeout_seconds: float = Field(
        default=DEFAULT_REMOTE_TIMEOUT_SECONDS,
        description="Default deadline for remote-backed actions in seconds",
        gt=0,
    )
    procedure_timeouts: dict[str, float] = Field(
        default_factory=dict,
        description="Deadline overrides keyed by procedure id",
    )
    remote_base_url: str | None = Field(
        default=None,
        description="Base URL of the remote procedure host",
    )
    remote_api_key: str | None = Field(
        default=None,
        description="Bearer token sent to remote procedures",
    )

    # Lifecycle configuration
    community_retention_days: int = Field(
        default=30,
        description="Days a deleted community's data is retained",
        ge=0,
    )

    # Audit configuration
    audit_recent_default_limit: int = Field(
        default=10,
        description="Default number of entries returned by audit_recent",
        ge=1,
    )

    # Bulk ingestion configuration
    max_batch_rows: int = Field(
        default=5000,
        description="Largest batch accepted by the bulk import pipeline",
        ge=1,
    )

    # Observability configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="Render logs as JSON (False for human-readable console output)",
    )

    @field_validator("procedure_timeouts")
    @classmethod
    def validate_procedure_timeouts(cls, v: dict[str, float]) -> dict[str, float]:
        for procedure_id, timeout in v.items():
            if timeout <= 0:
                raise ValueError(f"Timeout for '{procedure_id}' must be greater than 0")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    def timeout_for(self, procedure_id: str) -> float:
        """Return the deadline for a procedure, falling back to the default."""
        return self.procedure_timeouts.get(procedure_id, self.remote_timeout_seconds)

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "EngineSettings":
        """Create settings from a dictionary.

        Args:
            config: Dictionary with configuration values.

        Returns:
            EngineSettings instance.
        """
        return cls(**config)
