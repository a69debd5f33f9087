"""Change detection and rendering of cards for Mochi."""

import hashlib

from mochi_sync.models.card import CardKind, CardRecord
from mochi_sync.services.extractor import SEPARATOR


def compute_fingerprint(card: CardRecord) -> str:
    """Compute SHA256 hash of a card's content and tags for change detection."""
    tags = ",".join(card.tags)
    if card.kind == CardKind.CLOZE:
        combined = card.content + tags
    else:
        combined = card.question + card.answer + tags
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()


def render_content(card: CardRecord) -> str:
    """Markdown body sent to Mochi."""
    if card.kind == CardKind.CLOZE:
        return card.content
    return f"{card.question}\n{SEPARATOR}\n{card.answer}"
