"""Synchronization state and run summary models."""

from dataclasses import dataclass, field
from typing import Optional

# Stored when Mochi accepted a card but its response carried no recognizable ID.
UNKNOWN_REMOTE_ID = "unknown"


@dataclass
class CardState:
    """What we know about a card after its last successful sync."""

    remote_id: str
    content_hash: str
    last_sync: int  # Milliseconds since the epoch


@dataclass
class SyncState:
    """Mapping from local card identity to remote identity and fingerprint.

    Loaded once at the start of a run, mutated by the reconciler and
    persisted once at the end. Entries are never removed.
    """

    cards: dict[str, CardState] = field(default_factory=dict)
    decks: dict[str, str] = field(default_factory=dict)  # Deck name -> remote deck ID

    def get(self, local_id: str) -> Optional[CardState]:
        """Get the stored state for a card, if any."""
        return self.cards.get(local_id)

    def record(
        self, local_id: str, remote_id: str, content_hash: str, timestamp: int
    ) -> CardState:
        """Create or overwrite the entry for a card."""
        entry = CardState(
            remote_id=remote_id, content_hash=content_hash, last_sync=timestamp
        )
        self.cards[local_id] = entry
        return entry

    def resolve_deck(self, name: Optional[str]) -> Optional[str]:
        """Look up a remote deck ID by its display name."""
        if not name:
            return None
        return self.decks.get(name)


@dataclass
class CardFailure:
    """A card whose remote call failed during a run."""

    local_id: str
    operation: str  # "create" or "update"
    error_kind: str
    message: str


@dataclass
class SyncSummary:
    """Counts reported at the end of a run."""

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    total_found: int = 0
    documents_updated: int = 0
    failures: list[CardFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def message(self) -> str:
        """Human-readable one line summary."""
        if self.total_found == 0:
            return "Sync complete but no cards found."
        text = f"Sync complete: {self.created} created, {self.updated} updated."
        if self.failures:
            text += f" {self.failed} failed."
        return text
