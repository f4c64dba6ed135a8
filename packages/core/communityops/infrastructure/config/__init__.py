"""Configuration infrastructure module."""

from communityops.infrastructure.config.file_loader import (
    ConfigurationError,
    ConfigurationFileLoader,
)
from communityops.infrastructure.config.settings import EngineSettings

__all__ = [
    "EngineSettings",
    "ConfigurationFileLoader",
    "ConfigurationError",
]
