"""Reconciliation of extracted cards against Mochi."""

import time
from typing import Callable, Optional

from mochi_sync.models.card import CardRecord
from mochi_sync.models.sync_state import CardFailure, CardState, SyncState, SyncSummary
from mochi_sync.services.fingerprint import compute_fingerprint, render_content
from mochi_sync.services.mochi_client import MochiAPIError, MochiClient
from mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class Reconciler:
    """Decides, per card, whether to create, update or leave it alone.

    Cards are processed one at a time. After every remote call, successful
    or not, the reconciler waits ``delay`` seconds so that Mochi's rate
    limit is not hit. A failed call is recorded on the summary and leaves
    the card's state untouched so it is retried on the next run.
    """

    DEFAULT_DELAY = 0.5

    def __init__(
        self,
        client: MochiClient,
        default_deck_id: str,
        delay: float = DEFAULT_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], int] = _now_ms,
    ):
        """Initialize the reconciler.

        Args:
            client: Mochi API client
            default_deck_id: Deck for new cards that name no known deck
            delay: Seconds to wait after every remote call
            sleep: Used to wait between remote calls
            clock: Returns the current time in milliseconds
        """
        self.client = client
        self.default_deck_id = default_deck_id
        self.delay = delay
        self._sleep = sleep
        self._clock = clock

    def deck_id_for(self, card: CardRecord, state: SyncState) -> str:
        """Deck a new card is created in."""
        deck_id = state.resolve_deck(card.deck)
        if deck_id:
            return deck_id
        if card.deck:
            logger.warning(
                "deck_not_resolved",
                local_id=card.local_id,
                deck=card.deck,
                fallback=self.default_deck_id,
            )
        return self.default_deck_id

    def reconcile(self, cards: list[CardRecord], state: SyncState) -> SyncSummary:
        """Push new and changed cards to Mochi.

        Args:
            cards: Every card found in this run, in document order
            state: State loaded at the start of the run, updated in place

        Returns:
            SyncSummary with created, updated and failed counts
        """
        summary = SyncSummary(total_found=len(cards))

        for card in cards:
            if self._sync_card(card, state, summary):
                self._sleep(self.delay)

        logger.info(
            "reconcile_finished",
            created=summary.created,
            updated=summary.updated,
            unchanged=summary.unchanged,
            failed=summary.failed,
        )
        return summary

    def plan(self, cards: list[CardRecord], state: SyncState) -> SyncSummary:
        """Count what reconcile() would do, without calling Mochi."""
        summary = SyncSummary(total_found=len(cards))
        for card in cards:
            existing = state.get(card.local_id)
            if existing is None:
                summary.created += 1
            elif existing.content_hash != compute_fingerprint(card):
                summary.updated += 1
            else:
                summary.unchanged += 1
        return summary

    def _sync_card(
        self, card: CardRecord, state: SyncState, summary: SyncSummary
    ) -> bool:
        """Sync one card.

        Returns:
            True if a remote call was attempted
        """
        fingerprint = compute_fingerprint(card)
        existing = state.get(card.local_id)

        if existing is not None and existing.content_hash == fingerprint:
            summary.unchanged += 1
            return False

        content = render_content(card)
        operation = "create" if existing is None else "update"

        try:
            if existing is None:
                self._create(card, content, fingerprint, state)
                summary.created += 1
            else:
                self._update(card, content, fingerprint, existing)
                summary.updated += 1
        except MochiAPIError as e:
            logger.error(
                f"card_{operation}_failed",
                local_id=card.local_id,
                source=card.source,
                error_kind=type(e).__name__,
                status_code=e.status_code,
                error=e.message,
            )
            summary.failures.append(
                CardFailure(
                    local_id=card.local_id,
                    operation=operation,
                    error_kind=type(e).__name__,
                    message=e.message,
                )
            )

        return True

    def _create(
        self, card: CardRecord, content: str, fingerprint: str, state: SyncState
    ) -> None:
        deck_id = self.deck_id_for(card, state)
        ref = self.client.create_card(content, deck_id, card.tags)
        state.record(card.local_id, ref.remote_id, fingerprint, self._clock())
        logger.info(
            "card_created", local_id=card.local_id, remote_id=ref.remote_id, deck_id=deck_id
        )

    def _update(
        self, card: CardRecord, content: str, fingerprint: str, existing: CardState
    ) -> None:
        self.client.update_card(existing.remote_id, content, card.tags)
        existing.content_hash = fingerprint
        existing.last_sync = self._clock()
        logger.info("card_updated", local_id=card.local_id, remote_id=existing.remote_id)

    def refresh_decks(self, state: SyncState) -> Optional[int]:
        """Replace the deck name map with Mochi's current deck list.

        Returns:
            Number of decks found, or None if listing failed
        """
        try:
            decks = self.client.list_decks()
        except MochiAPIError as e:
            logger.warning("deck_refresh_failed", error=e.message)
            return None
        state.decks = {deck.name: deck.id for deck in decks if deck.name}
        return len(state.decks)
