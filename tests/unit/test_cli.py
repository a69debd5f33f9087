"""Unit tests for the command line interface."""

import re

from typer.testing import CliRunner

from mochi_sync import __version__
from mochi_sync.cli import app
from mochi_sync.config import get_settings

runner = CliRunner()


class TestNewCard:
    """Tests for the new-card command."""

    def test_prints_template(self):
        """Without a file the template is printed."""
        result = runner.invoke(app, ["new-card"])

        assert result.exit_code == 0
        assert re.search(r"%% id:[0-9a-f]{8} %%", result.output)

    def test_appends_to_document(self, tmp_path):
        """With a file the template is appended after the existing text."""
        document = tmp_path / "notes.md"
        document.write_text("# Notes", encoding="utf-8")

        result = runner.invoke(app, ["new-card", str(document)])

        assert result.exit_code == 0
        text = document.read_text(encoding="utf-8")
        assert text.startswith("# Notes\n\n```mochi\n%% id:")
        assert text.endswith("---\n\n```\n")


class TestVersion:
    """Tests for the version command."""

    def test_version(self):
        """The package version is shown."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestSync:
    """Tests for the sync command."""

    def test_unopenable_database_is_reported(self, tmp_path, monkeypatch):
        """A database that cannot be opened ends with one message and exit code 1."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("MOCHI_SYNC_API_KEY", "key")
        monkeypatch.setenv("MOCHI_SYNC_DEFAULT_DECK_ID", "deck-1")
        monkeypatch.setenv("MOCHI_SYNC_VAULT_PATH", str(tmp_path))
        # A directory cannot be opened as a SQLite file
        monkeypatch.setenv("MOCHI_SYNC_DATABASE_PATH", str(tmp_path))
        get_settings.cache_clear()
        try:
            result = runner.invoke(app, ["sync"])
        finally:
            get_settings.cache_clear()

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Opening sync state failed" in result.output
