"""Pytest configuration and shared fixtures."""
from pathlib import Path

from dotenv import load_dotenv

# COMMUNITYOPS_* overrides: repository root first, then packages/core
_repo_root = Path(__file__).resolve().parents[3]
for _candidate in (_repo_root / ".env", _repo_root / "packages" / "core" / ".env"):
    if _candidate.is_file():
        load_dotenv(_candidate)
        break

from fixtures.test_data import (  # noqa: E402, F401
    engine,
    observability,
    remote_client,
    settings,
    store,
    superadmin,
)
