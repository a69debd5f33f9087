"""One synchronization run: extract, write back identifiers, reconcile, persist."""

import threading
from typing import Optional

from mochi_sync.database.repository import StateStore
from mochi_sync.models.card import CardRecord
from mochi_sync.models.sync_state import SyncSummary
from mochi_sync.services.extractor import CardExtractor
from mochi_sync.services.reconciler import Reconciler
from mochi_sync.services.vault import Vault
from mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)

# Sync state is owned by one run at a time
_run_lock = threading.Lock()


class SyncInProgressError(Exception):
    """Raised when a run is started while another one is still going."""

    pass


class SyncRunner:
    """Runs the sync pipeline over every document of a vault."""

    def __init__(
        self,
        vault: Vault,
        store: StateStore,
        reconciler: Reconciler,
        extractor: Optional[CardExtractor] = None,
    ):
        self.vault = vault
        self.store = store
        self.reconciler = reconciler
        self.extractor = extractor or CardExtractor()

    def collect_cards(self, write: bool = True) -> tuple[list[CardRecord], int]:
        """Parse every document, saving those that got new identifiers.

        A document that cannot be read, decoded or written back is skipped
        with a warning, together with its cards.

        Args:
            write: Whether to write rewritten documents back to the vault

        Returns:
            Tuple of (cards in document order, number of documents rewritten)
        """
        cards: list[CardRecord] = []
        rewritten = 0

        for document in self.vault.list_documents():
            try:
                result = self.extractor.parse(self.vault.read(document), document)
                if result.needs_write and write:
                    self.vault.write(document, result.updated_text)
            except (OSError, UnicodeDecodeError) as e:
                # Cards whose new IDs were not saved would be created again next run
                logger.warning("document_skipped", document=document, error=str(e))
                continue

            if result.needs_write:
                rewritten += 1
            cards.extend(result.cards)

        return cards, rewritten

    def run(self, dry_run: bool = False, refresh_decks: bool = False) -> SyncSummary:
        """Run a full sync.

        Args:
            dry_run: Only report what would change; touch nothing
            refresh_decks: Reload the deck name map from Mochi first

        Returns:
            SyncSummary of the run

        Raises:
            SyncInProgressError: If another run holds the state
            StatePersistenceFailure: If the state cannot be loaded or saved.
                Cards already pushed to Mochi stay pushed.
        """
        if not _run_lock.acquire(blocking=False):
            raise SyncInProgressError("A sync is already running")

        try:
            logger.info("sync_started", vault=str(self.vault.root), dry_run=dry_run)
            state = self.store.load()

            cards, rewritten = self.collect_cards(write=not dry_run)

            if dry_run:
                summary = self.reconciler.plan(cards, state)
            else:
                if refresh_decks:
                    self.reconciler.refresh_decks(state)
                summary = self.reconciler.reconcile(cards, state)
                self.store.persist(state)

            summary.documents_updated = rewritten
            logger.info(
                "sync_completed",
                total_found=summary.total_found,
                created=summary.created,
                updated=summary.updated,
                failed=summary.failed,
                documents_updated=rewritten,
            )
            return summary
        finally:
            _run_lock.release()
