"""Engine configuration files (YAML or JSON)."""

import json
import os
from collections.abc import Callable
from pathlib import Path
from typing import IO, Any

import yaml

from communityops.infrastructure.config.settings import EngineSettings

CONFIG_FILE_ENV = "COMMUNITYOPS_CONFIG_FILE"
SECTIONS = ("settings", "procedures")


class ConfigurationError(Exception):
    """A configuration file is missing, unreadable or malformed.

    Attributes:
        message: What is wrong.
        field: Dotted path of the offending entry, when there is one.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


def _parse_yaml(stream: IO[str]) -> Any:
    try:
        return yaml.safe_load(stream)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed YAML: {e}") from e


def _parse_json(stream: IO[str]) -> Any:
    try:
        return json.load(stream)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed JSON: {e}") from e


_PARSERS: dict[str, Callable[[IO[str]], Any]] = {
    ".yaml": _parse_yaml,
    ".yml": _parse_yaml,
    ".json": _parse_json,
}


class ConfigurationFileLoader:
    """Reads a configuration file into EngineSettings.

    Both sections are optional:

    ```yaml
    settings:
      remote_base_url: https://example.supabase.co
      community_retention_days: 30
    procedures:
      - procedure_id: approve-sticker
        timeout_seconds: 20
    ```

    ``procedures`` entries override the same ids in
    ``settings.procedure_timeouts``.
    """

    def __init__(self, config_file_path: str | Path | None = None) -> None:
        """Resolve the file path.

        Args:
            config_file_path: File to read. Falls back to the
                COMMUNITYOPS_CONFIG_FILE environment variable.

        Raises:
            ConfigurationError: If no path is given or the file is missing.
        """
        config_file_path = config_file_path or os.getenv(CONFIG_FILE_ENV)
        if not config_file_path:
            raise ConfigurationError(f"No configuration file given and {CONFIG_FILE_ENV} is not set")
        self._path = Path(config_file_path)
        if not self._path.is_file():
            raise ConfigurationError(f"No configuration file at {self._path}")

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        """Read the raw file contents; an empty file yields ``{}``.

        Raises:
            ConfigurationError: If the extension is unknown, or the file is
                unreadable or not a mapping.
        """
        parser = _PARSERS.get(self._path.suffix.lower())
        if parser is None:
            raise ConfigurationError(
                f"Cannot read {self._path.suffix or 'extensionless'} files; "
                f"use one of {', '.join(sorted(_PARSERS))}"
            )
        try:
            with self._path.open(encoding="utf-8") as stream:
                data = parser(stream)
        except OSError as e:
            raise ConfigurationError(f"Cannot read {self._path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError("Top level of the file must be a mapping")
        return data

    def parse_settings(self, config: dict[str, Any]) -> dict[str, Any]:
        """Return the ``settings`` section after checking its keys."""
        section = config.get("settings") or {}
        if not isinstance(section, dict):
            raise ConfigurationError("Expected a mapping", field="settings")
        unknown = sorted(set(section) - set(EngineSettings.model_fields))
        if unknown:
            raise ConfigurationError(
                f"Unknown setting(s): {', '.join(map(str, unknown))}",
                field="settings",
            )
        return dict(section)

    def parse_procedures(self, config: dict[str, Any]) -> dict[str, float]:
        """Return procedure id to timeout (seconds) from the ``procedures`` section."""
        section = config.get("procedures") or []
        if not isinstance(section, list):
            raise ConfigurationError("Expected a list", field="procedures")

        timeouts: dict[str, float] = {}
        for position, entry in enumerate(section):
            where = f"procedures[{position}]"
            if not isinstance(entry, dict):
                raise ConfigurationError("Expected a mapping", field=where)
            procedure_id = entry.get("procedure_id")
            if not isinstance(procedure_id, str) or not procedure_id.strip():
                raise ConfigurationError("Must be a non-empty string", field=f"{where}.procedure_id")
            timeout = entry.get("timeout_seconds")
            # bool is an int subclass
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
                raise ConfigurationError("Must be a positive number", field=f"{where}.timeout_seconds")
            timeouts[procedure_id.strip()] = float(timeout)
        return timeouts

    def validate_structure(self, config: dict[str, Any]) -> None:
        """Check top-level keys and both sections.

        Raises:
            ConfigurationError: On the first problem found.
        """
        for key in config:
            if key not in SECTIONS:
                raise ConfigurationError(
                    f"Unknown section (expected {' or '.join(SECTIONS)})",
                    field=str(key),
                )
        self.parse_settings(config)
        self.parse_procedures(config)

    def load_settings(self) -> EngineSettings:
        """Read, validate and build EngineSettings.

        Raises:
            ConfigurationError: If the file or any value is invalid.
        """
        config = self.load()
        self.validate_structure(config)
        values = self.parse_settings(config)
        timeouts = {**(values.get("procedure_timeouts") or {}), **self.parse_procedures(config)}
        if timeouts:
            values["procedure_timeouts"] = timeouts
        try:
            return EngineSettings.from_dict(values)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value: {e}", field="settings") from e
