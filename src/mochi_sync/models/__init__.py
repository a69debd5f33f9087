"""Data models for mochi-sync."""

from mochi_sync.models.card import CardKind, CardRecord, ParseResult
from mochi_sync.models.sync_state import (
    UNKNOWN_REMOTE_ID,
    CardFailure,
    CardState,
    SyncState,
    SyncSummary,
)

__all__ = [
    "UNKNOWN_REMOTE_ID",
    "CardFailure",
    "CardKind",
    "CardRecord",
    "CardState",
    "ParseResult",
    "SyncState",
    "SyncSummary",
]
