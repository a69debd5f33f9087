"""State store backed by SQLite."""

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mochi_sync.database.schema import CardStateRecord, DeckRecord, init_database
from mochi_sync.models.sync_state import CardState, SyncState
from mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)


class StatePersistenceFailure(Exception):
    """Raised when the sync state cannot be loaded or saved."""

    pass


class StateStore:
    """Loads and persists the SyncState of a run."""

    def __init__(self, database_url: str):
        """Initialize the store with a database connection.

        Raises:
            StatePersistenceFailure: If the database cannot be opened
        """
        try:
            self.session_factory = init_database(database_url)
        except SQLAlchemyError as e:
            raise StatePersistenceFailure(f"Opening sync state failed: {e}") from e

    def _get_session(self) -> Session:
        """Get a new database session."""
        return self.session_factory()

    def load(self) -> SyncState:
        """Load the current state, empty if nothing has been stored yet."""
        try:
            with self._get_session() as session:
                cards = {
                    r.local_id: CardState(
                        remote_id=r.remote_id,
                        content_hash=r.content_hash,
                        last_sync=r.last_sync,
                    )
                    for r in session.scalars(select(CardStateRecord))
                }
                decks = {r.name: r.remote_id for r in session.scalars(select(DeckRecord))}
        except SQLAlchemyError as e:
            raise StatePersistenceFailure(f"Loading sync state failed: {e}") from e

        return SyncState(cards=cards, decks=decks)

    def persist(self, state: SyncState) -> None:
        """Save the whole state in a single transaction.

        Either every entry is written or the previously stored state is
        left untouched.

        Raises:
            StatePersistenceFailure: If the transaction fails
        """
        try:
            with self._get_session() as session, session.begin():
                for local_id, entry in state.cards.items():
                    session.merge(
                        CardStateRecord(
                            local_id=local_id,
                            remote_id=entry.remote_id,
                            content_hash=entry.content_hash,
                            last_sync=entry.last_sync,
                        )
                    )
                # The deck table mirrors the remote deck list, so replace it wholesale
                session.execute(delete(DeckRecord))
                for name, remote_id in state.decks.items():
                    session.add(DeckRecord(name=name, remote_id=remote_id))
        except SQLAlchemyError as e:
            raise StatePersistenceFailure(f"Saving sync state failed: {e}") from e

        logger.debug("state_persisted", cards=len(state.cards), decks=len(state.decks))

    def get_stats(self) -> dict:
        """Get state store statistics."""
        with self._get_session() as session:
            tracked_cards = session.scalar(select(func.count()).select_from(CardStateRecord))
            known_decks = session.scalar(select(func.count()).select_from(DeckRecord))
            last_sync = session.scalar(select(func.max(CardStateRecord.last_sync)))

            return {
                "tracked_cards": tracked_cards or 0,
                "known_decks": known_decks or 0,
                "last_sync": last_sync,
            }
