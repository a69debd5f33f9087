"""SQLAlchemy database schema for mochi-sync."""

from sqlalchemy import BigInteger, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class CardStateRecord(Base):
    """Last synchronized state of one card, keyed by its local ID."""

    __tablename__ = "card_states"

    local_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    remote_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    last_sync: Mapped[int] = mapped_column(BigInteger, nullable=False)


class DeckRecord(Base):
    """Deck display name to Mochi deck ID mapping."""

    __tablename__ = "deck_ids"

    name: Mapped[str] = mapped_column(Text, primary_key=True)
    remote_id: Mapped[str] = mapped_column(String(64), nullable=False)


def get_engine(database_url: str):
    """Create database engine."""
    return create_engine(database_url, echo=False)


def get_session_factory(engine) -> sessionmaker[Session]:
    """Create session factory."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_database(database_url: str) -> sessionmaker[Session]:
    """Initialize database and return session factory."""
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)
    return get_session_factory(engine)
