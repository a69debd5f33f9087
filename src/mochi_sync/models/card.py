"""Card models extracted from Markdown documents."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class CardKind(str, Enum):
    """Kind of flashcard."""

    QA = "qa"  # Question and answer split by a separator line
    CLOZE = "cloze"  # Running text with {{c1::hidden}} tokens


@dataclass
class CardRecord:
    """A flashcard found in a card block of a document."""

    local_id: str
    kind: CardKind

    # QA payload
    question: str = ""
    answer: str = ""

    # Cloze payload
    content: str = ""

    tags: list[str] = field(default_factory=list)
    deck: Optional[str] = None  # Deck name override

    # Where the card came from
    source: str = ""
    raw_text: str = ""

    def __post_init__(self) -> None:
        """Validate and convert fields after initialization."""
        if isinstance(self.kind, str):
            self.kind = CardKind(self.kind)

    def is_valid(self) -> bool:
        """Whether the card has an identifier and a payload for its kind."""
        if not self.local_id:
            return False
        if self.kind == CardKind.CLOZE:
            return bool(self.content)
        return bool(self.question and self.answer)


@dataclass
class ParseResult:
    """Cards found in one document plus the rewritten text, if any."""

    cards: list[CardRecord] = field(default_factory=list)
    updated_text: Optional[str] = None

    @property
    def needs_write(self) -> bool:
        """True if identifiers were inserted and the document must be saved."""
        return self.updated_text is not None
