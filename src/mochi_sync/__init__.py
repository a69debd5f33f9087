"""mochi-sync: keep Markdown flashcards in sync with Mochi."""

__version__ = "0.1.0"
