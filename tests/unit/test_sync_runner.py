"""Unit tests for SyncRunner."""

import re
from unittest.mock import MagicMock

import pytest

from mochi_sync.database.repository import StatePersistenceFailure
from mochi_sync.models.card import CardKind
from mochi_sync.models.sync_state import SyncState
from mochi_sync.services import sync_runner
from mochi_sync.services.reconciler import Reconciler
from mochi_sync.services.sync_runner import SyncInProgressError, SyncRunner
from mochi_sync.services.vault import Vault

SCENARIO_DOC = """# Geography

```mochi
Q: capital of X
---
A: Y
Tags: geo, easy
```
"""


@pytest.fixture
def vault(tmp_path):
    """A vault with one document holding one card without an ID."""
    (tmp_path / "geo.md").write_text(SCENARIO_DOC, encoding="utf-8")
    return Vault(tmp_path)


@pytest.fixture
def runner(vault, store, mock_client):
    """SyncRunner over a temporary vault and state store."""
    reconciler = Reconciler(client=mock_client, default_deck_id="deck-1", sleep=MagicMock())
    return SyncRunner(vault=vault, store=store, reconciler=reconciler)


class TestScenario:
    """End-to-end runs over a real vault and database."""

    def test_first_run_creates_and_inserts_id(self, runner, vault, store, mock_client):
        """The first run writes an ID into the document and creates the card."""
        summary = runner.run()

        text = vault.read("geo.md")
        match = re.search(r"```mochi\n%% id:([0-9a-f]{8}) %%\nQ: capital of X\n", text)
        assert match
        local_id = match.group(1)

        mock_client.create_card.assert_called_once_with(
            "Q: capital of X\n---\nA: Y", "deck-1", ["geo", "easy"]
        )
        assert summary.created == 1
        assert summary.updated == 0
        assert summary.total_found == 1
        assert summary.documents_updated == 1
        assert store.load().get(local_id).remote_id == "remote-1"

    def test_second_run_is_noop(self, runner, vault, mock_client):
        """Running again without edits changes nothing."""
        runner.run()
        text_after_first = vault.read("geo.md")

        summary = runner.run()

        assert vault.read("geo.md") == text_after_first
        assert summary.created == 0
        assert summary.updated == 0
        assert summary.documents_updated == 0
        assert mock_client.create_card.call_count == 1
        mock_client.update_card.assert_not_called()

    def test_edit_triggers_update(self, runner, vault, mock_client):
        """Editing the answer updates the card once."""
        runner.run()
        vault.write("geo.md", vault.read("geo.md").replace("A: Y", "A: Z"))

        summary = runner.run()

        assert summary.updated == 1
        mock_client.update_card.assert_called_once()
        assert mock_client.update_card.call_args[0][0] == "remote-1"

    def test_whitespace_edit_is_ignored(self, runner, vault, mock_client):
        """Trailing whitespace on a line is not a content change."""
        runner.run()
        vault.write("geo.md", vault.read("geo.md").replace("A: Y", "A: Y   "))

        summary = runner.run()

        assert summary.updated == 0
        mock_client.update_card.assert_not_called()


class TestCollectCards:
    """Tests for collect_cards."""

    def test_documents_in_order(self, tmp_path, runner):
        """Cards come in document order, then in-document order."""
        (tmp_path / "a.md").write_text(
            "```mochi\n%% id:a1 %%\n{{1::x}}\n```\n```mochi\n%% id:a2 %%\nQ\n---\nA\n```\n",
            encoding="utf-8",
        )

        cards, rewritten = runner.collect_cards()

        assert [c.local_id for c in cards][:2] == ["a1", "a2"]
        assert cards[0].kind == CardKind.CLOZE
        assert cards[2].source == "geo.md"
        assert rewritten == 1

    def test_undecodable_document_skipped(self, tmp_path, runner):
        """A document that is not UTF-8 is skipped and the run goes on."""
        (tmp_path / "bad.md").write_bytes(b"\xff\xfe bad bytes")

        summary = runner.run()

        assert summary.created == 1
        assert summary.total_found == 1

    def test_unwritable_document_skipped(self, runner, vault, mock_client, monkeypatch):
        """Cards of a document whose new IDs cannot be saved are not synced."""

        def fail(document, text):
            raise PermissionError("read-only")

        monkeypatch.setattr(vault, "write", fail)

        summary = runner.run()

        assert summary.total_found == 0
        assert summary.documents_updated == 0
        mock_client.create_card.assert_not_called()
        assert vault.read("geo.md") == SCENARIO_DOC

    def test_no_write(self, runner, vault):
        """write=False leaves documents untouched."""
        runner.collect_cards(write=False)

        assert vault.read("geo.md") == SCENARIO_DOC


class TestDryRun:
    """Tests for dry runs."""

    def test_dry_run_touches_nothing(self, runner, vault, store, mock_client):
        """A dry run reports but does not write, call or persist."""
        summary = runner.run(dry_run=True)

        assert summary.created == 1
        assert summary.documents_updated == 1
        assert vault.read("geo.md") == SCENARIO_DOC
        mock_client.create_card.assert_not_called()
        assert store.load().cards == {}


class TestFailures:
    """Tests for fatal failures."""

    def test_persistence_failure_is_fatal(self, vault, mock_client):
        """A failed save propagates; remote creates already happened."""
        store = MagicMock()
        store.load.return_value = SyncState()
        store.persist.side_effect = StatePersistenceFailure("disk full")
        reconciler = Reconciler(client=mock_client, default_deck_id="deck-1", sleep=MagicMock())
        runner = SyncRunner(vault=vault, store=store, reconciler=reconciler)

        with pytest.raises(StatePersistenceFailure):
            runner.run()

        mock_client.create_card.assert_called_once()

    def test_concurrent_run_rejected(self, runner):
        """A second run cannot start while one holds the lock."""
        assert sync_runner._run_lock.acquire(blocking=False)
        try:
            with pytest.raises(SyncInProgressError):
                runner.run()
        finally:
            sync_runner._run_lock.release()

    def test_lock_released_after_failure(self, vault, mock_client, runner):
        """The run lock is released when a run fails."""
        store = MagicMock()
        store.load.side_effect = StatePersistenceFailure("corrupt")
        reconciler = Reconciler(client=mock_client, default_deck_id="deck-1", sleep=MagicMock())
        failing = SyncRunner(vault=vault, store=store, reconciler=reconciler)

        with pytest.raises(StatePersistenceFailure):
            failing.run()

        assert runner.run().created == 1


class TestRefreshDecks:
    """Tests for deck refresh during a run."""

    def test_refresh_decks_persisted(self, runner, store, mock_client):
        """Refreshed deck names are saved with the state."""
        from mochi_sync.services.mochi_client import RemoteDeck

        mock_client.list_decks.return_value = [RemoteDeck(id="d1", name="Geo")]

        runner.run(refresh_decks=True)

        assert store.load().decks == {"Geo": "d1"}
