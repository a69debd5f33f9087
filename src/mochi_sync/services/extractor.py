"""Card extraction from Markdown documents.

A card is a fenced code block tagged ``mochi``::

    ```mochi
    %% id:3f9a1c0e %%
    What is the capital of France?
    ---
    Paris
    Tags: geo, easy
    ```

Blocks without an ``%% id:... %%`` line get one inserted, so the card keeps
its identity across runs.
"""

import re
import uuid
from dataclasses import dataclass
from typing import Optional

from mochi_sync.models.card import CardKind, CardRecord, ParseResult
from mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)

FENCE_LANGUAGE = "mochi"
SEPARATOR = "---"
ID_LENGTH = 8

CARD_BLOCK_RE = re.compile(r"```mochi[ \t]*\r?\n(.*?)```", re.DOTALL)
ID_LINE_RE = re.compile(r"\A\s*%%[ \t]*id:([\w-]+)[ \t]*%%[ \t]*(?:\r?\n|\Z)")
TAGS_RE = re.compile(r"^[ \t]*Tags:(.*)$", re.MULTILINE)
DECK_RE = re.compile(r"^[ \t]*Deck:(.*)$", re.MULTILINE)
CLOZE_RE = re.compile(r"\{\{([A-Za-z]?)(\d+)::?([^}]+)\}\}")
SEPARATOR_LINE_RE = re.compile(r"^[ \t]*-{3,}[ \t]*\r?$", re.MULTILINE)


class ParseSkip(Exception):
    """A card block without a usable payload. Never leaves this module."""

    pass


@dataclass
class TextPatch:
    """Replace text[start:end] with replacement."""

    start: int
    end: int
    replacement: str


def apply_patches(text: str, patches: list[TextPatch]) -> str:
    """Apply non-overlapping patches in one pass.

    Patches are spliced from the highest offset down so that every offset
    still refers to the original text when it is used.
    """
    for patch in sorted(patches, key=lambda p: p.start, reverse=True):
        text = text[: patch.start] + patch.replacement + text[patch.end :]
    return text


def normalize_cloze(content: str) -> str:
    """Rewrite every cloze token to the {{c1::text}} form."""
    return CLOZE_RE.sub(lambda m: f"{{{{c{m.group(2)}::{m.group(3)}}}}}", content)


def id_line(card_id: str) -> str:
    """The annotation line that pins a card's identity."""
    return f"%% id:{card_id} %%"


class CardExtractor:
    """Finds card blocks in a document and turns them into CardRecords."""

    def __init__(self) -> None:
        self._issued: set[str] = set()

    def generate_id(self, taken: Optional[set[str]] = None) -> str:
        """Generate a short random identifier.

        Identifiers are 8 lowercase hex characters. Ones already present in
        ``taken`` or issued earlier by this extractor are never returned.
        """
        taken = taken or set()
        while True:
            card_id = uuid.uuid4().hex[:ID_LENGTH]
            if card_id not in taken and card_id not in self._issued:
                self._issued.add(card_id)
                return card_id

    def new_card_template(self, card_id: Optional[str] = None) -> str:
        """An empty QA card block with a fresh identifier."""
        card_id = card_id or self.generate_id()
        return f"```{FENCE_LANGUAGE}\n{id_line(card_id)}\n\n{SEPARATOR}\n\n```\n"

    def parse(self, text: str, source: str) -> ParseResult:
        """Extract cards from the text of one document.

        Args:
            text: Full document text
            source: Handle of the document, stored on every card

        Returns:
            ParseResult with the valid cards, plus the rewritten text if any
            block needed an identifier
        """
        matches = list(CARD_BLOCK_RE.finditer(text))
        existing_ids = set()
        for match in matches:
            id_match = ID_LINE_RE.match(match.group(1))
            if id_match:
                existing_ids.add(id_match.group(1).strip())

        cards: list[CardRecord] = []
        patches: list[TextPatch] = []

        for match in matches:
            body = match.group(1)
            id_match = ID_LINE_RE.match(body)
            payload = body[id_match.end() :] if id_match else body

            try:
                card = self._parse_payload(payload)
            except ParseSkip as e:
                logger.debug(
                    "card_block_skipped",
                    source=source,
                    offset=match.start(),
                    reason=str(e),
                )
                continue

            card.source = source
            card.raw_text = match.group(0)
            if id_match:
                card.local_id = id_match.group(1).strip()
            else:
                card.local_id = self.generate_id(existing_ids)
                existing_ids.add(card.local_id)
                insert_at = match.start(1)
                # Match the fence line's terminator
                newline = "\r\n" if text.endswith("\r\n", 0, insert_at) else "\n"
                patches.append(
                    TextPatch(insert_at, insert_at, id_line(card.local_id) + newline)
                )
            cards.append(card)

        updated_text = apply_patches(text, patches) if patches else None
        if patches:
            logger.info("card_ids_inserted", source=source, count=len(patches))

        return ParseResult(cards=cards, updated_text=updated_text)

    def _parse_payload(self, payload: str) -> CardRecord:
        """Classify a block body (without its id line).

        Raises:
            ParseSkip: If the body is neither a cloze nor a QA card
        """
        tags_match = TAGS_RE.search(payload)
        deck_match = DECK_RE.search(payload)

        tags = []
        if tags_match:
            tags = [t.strip() for t in tags_match.group(1).split(",") if t.strip()]
        deck = deck_match.group(1).strip() if deck_match else ""

        content = TAGS_RE.sub("", payload, count=1)
        content = DECK_RE.sub("", content, count=1).strip()

        if CLOZE_RE.search(content):
            return CardRecord(
                local_id="",
                kind=CardKind.CLOZE,
                content=normalize_cloze(content),
                tags=tags,
                deck=deck or None,
            )

        separator = SEPARATOR_LINE_RE.search(content)
        if not separator:
            raise ParseSkip("no cloze token or separator line")

        question = content[: separator.start()].strip()
        # Later separator lines belong to the answer
        answer = SEPARATOR_LINE_RE.sub(SEPARATOR, content[separator.end() :]).strip()
        if not question or not answer:
            raise ParseSkip("empty question or answer")

        return CardRecord(
            local_id="",
            kind=CardKind.QA,
            question=question,
            answer=answer,
            tags=tags,
            deck=deck or None,
        )
