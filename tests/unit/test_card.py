"""Unit tests for CardRecord."""

import pytest

from mochi_sync.models.card import CardKind, CardRecord, ParseResult


class TestCardRecord:
    """Tests for CardRecord."""

    def test_kind_coerced_from_string(self):
        """A plain string kind becomes a CardKind."""
        card = CardRecord(local_id="a", kind="cloze", content="{{c1::x}}")

        assert card.kind is CardKind.CLOZE

    @pytest.mark.parametrize(
        "card,expected",
        [
            (CardRecord(local_id="a", kind=CardKind.QA, question="Q", answer="A"), True),
            (CardRecord(local_id="a", kind=CardKind.QA, question="Q"), False),
            (CardRecord(local_id="", kind=CardKind.QA, question="Q", answer="A"), False),
            (CardRecord(local_id="a", kind=CardKind.CLOZE, content="{{c1::x}}"), True),
            (CardRecord(local_id="a", kind=CardKind.CLOZE), False),
        ],
    )
    def test_is_valid(self, card, expected):
        """A card needs an identifier and the payload of its kind."""
        assert card.is_valid() is expected


class TestParseResult:
    """Tests for ParseResult."""

    def test_needs_write(self):
        """Only a rewritten text needs writing back."""
        assert not ParseResult().needs_write
        assert ParseResult(updated_text="x").needs_write
