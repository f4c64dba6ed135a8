"""State store implementations."""

from communityops.infrastructure.state_store.memory_store import InMemoryStateStore

__all__ = ["InMemoryStateStore"]
