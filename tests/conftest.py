"""Pytest fixtures for mochi-sync tests."""

import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from mochi_sync.database.repository import StateStore
from mochi_sync.services.mochi_client import MochiClient, RemoteCardRef


@pytest.fixture
def temp_db_path():
    """Provide a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def store(temp_db_path):
    """Provide a state store with a temporary database."""
    return StateStore(f"sqlite:///{temp_db_path}")


@pytest.fixture
def mock_client():
    """Provide a Mochi client whose calls succeed with sequential IDs."""
    client = MagicMock(spec=MochiClient)
    counter = {"n": 0}

    def create_card(content, deck_id, tags=None):
        counter["n"] += 1
        return RemoteCardRef(remote_id=f"remote-{counter['n']}")

    client.create_card.side_effect = create_card
    client.update_card.side_effect = lambda remote_id, content, tags=None: RemoteCardRef(
        remote_id=remote_id
    )
    client.list_decks.return_value = []
    return client
