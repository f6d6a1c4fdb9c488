"""Tests for message normalization and the fast-path parser."""

import pytest

from followup_bot.bot.command_parser import FastPathParser, normalize_text
from followup_bot.models.intent import Action


class TestNormalizeText:
    """Tests for normalize_text."""

    def test_curly_quotes_straightened(self):
        """Smart quotes from mobile clients become plain quotes."""
        assert normalize_text("who’s overdue") == "who's overdue"
        assert normalize_text("“Friday”") == '"Friday"'

    def test_mailto_and_tel_unwrapped(self):
        """Email and phone markup collapse to their visible label."""
        text = "add Jane Doe <mailto:jane@x.com|jane@x.com> <tel:5551234|555-1234>"
        assert normalize_text(text) == "add Jane Doe jane@x.com 555-1234"

    def test_links_unwrapped(self):
        """Labeled links keep the label; bare links keep the URL."""
        assert normalize_text("see <https://a.com|this deck>") == "see this deck"
        assert normalize_text("see <https://a.com>") == "see https://a.com"

    def test_user_tags_preserved(self):
        """Mentions survive so assignments can use them."""
        text = "assign  Jane Doe to   <@U012ABC>"
        assert normalize_text(text) == "assign Jane Doe to <@U012ABC>"

    def test_empty(self):
        assert normalize_text("") == ""


class TestFastPathParser:
    """Tests for FastPathParser."""

    @pytest.fixture
    def parser(self) -> FastPathParser:
        return FastPathParser()

    def test_diagnostic(self, parser):
        """'test monday' is the write diagnostic."""
        raw = parser.parse("test monday")
        assert raw.data["action"] == Action.DIAGNOSTIC.value
        assert raw.source == "fast_path"
        assert raw.data["confidence"] == 1.0

    @pytest.mark.parametrize(
        "text", ["who's overdue?", "Who is overdue", "whos overdue", "show overdue investors"]
    )
    def test_list_overdue(self, parser, text):
        """Common overdue phrasings match."""
        raw = parser.parse(text)
        assert raw.data["action"] == Action.LIST_OVERDUE.value

    @pytest.mark.parametrize(
        "text,name",
        [
            ("status on Jalin Moore", "Jalin Moore"),
            ("what's the status on Jalin Moore?", "Jalin Moore"),
            ("check on Acme Capital", "Acme Capital"),
        ],
    )
    def test_check_status_captures_name(self, parser, text, name):
        """The investor name is captured without trailing punctuation."""
        raw = parser.parse(text)
        assert raw.data["action"] == Action.CHECK_STATUS.value
        assert raw.data["investorName"] == name

    def test_check_status_on_everyone_not_matched(self, parser):
        """Bulk requests are left to the model."""
        assert parser.parse("status on all investors") is None

    @pytest.mark.parametrize(
        "text,name",
        [
            ("contacted Jalin Moore today", "Jalin Moore"),
            ("I spoke with Jalin Moore.", "Jalin Moore"),
            ("we just reached out to Priya", "Priya"),
            ("spoke to Marcus Bell!", "Marcus Bell"),
        ],
    )
    def test_log_contact(self, parser, text, name):
        """First-person contact reports capture the investor."""
        raw = parser.parse(text)
        assert raw.data["action"] == Action.LOG_CONTACT.value
        assert raw.data["investorName"] == name

    def test_no_match(self, parser):
        """Anything else falls through."""
        assert parser.parse("follow up with Jalin next Tuesday") is None
        assert parser.parse("") is None
