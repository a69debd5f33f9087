"""Persistent synchronization state."""

from mochi_sync.database.repository import StatePersistenceFailure, StateStore

__all__ = ["StatePersistenceFailure", "StateStore"]
