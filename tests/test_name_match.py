"""Tests for fuzzy investor name matching."""

import pytest
from conftest import make_record

from followup_bot.config import DUPLICATE_THRESHOLD, GOING_COLD_MARKER
from followup_bot.resolution.name_match import EntityMatcher, MatchStatus, clean_query


class TestCleanQuery:
    """Tests for clean_query."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("with 'Wyatt Heavy'", "Wyatt Heavy"),
            ("for Jalin Moore?", "Jalin Moore"),
            (f"{GOING_COLD_MARKER} Jalin Moore", "Jalin Moore"),
            ('"Priya"', "Priya"),
        ],
    )
    def test_clean(self, text, expected):
        assert clean_query(text) == expected


class TestEntityMatcher:
    """Tests for EntityMatcher."""

    def test_partial_first_name(self, sample_records):
        """A first name alone resolves to the full record."""
        result = EntityMatcher().match("jalin", sample_records)
        assert result.matched
        assert result.record.id == "1001"

    def test_small_typo(self, sample_records):
        result = EntityMatcher().match("Priya Natarajn", sample_records)
        assert result.matched
        assert result.record.id == "1002"

    def test_marker_ignored_on_records(self):
        """Records flagged going cold still match their plain name."""
        records = [make_record(f"{GOING_COLD_MARKER} Jalin Moore", "1001")]
        result = EntityMatcher().match("Jalin Moore", records)
        assert result.matched
        assert result.distance == pytest.approx(0.0)

    def test_no_match_offers_suggestions(self, sample_records):
        """Unrelated names are rejected."""
        result = EntityMatcher().match("Zebulon Quaye", sample_records)
        assert result.status == MatchStatus.NO_MATCH
        assert result.record is None
        assert len(result.suggestions) <= 3

    def test_no_records(self):
        """An empty board is distinct from a bad name."""
        result = EntityMatcher().match("Jalin", [])
        assert result.status == MatchStatus.NO_RECORDS

    def test_empty_query(self, sample_records):
        assert EntityMatcher().match("  ", sample_records).status == MatchStatus.NO_MATCH

    def test_close_runner_up_reported(self):
        """Near-identical names come back as alternatives."""
        records = [
            make_record("John Smith", "1"),
            make_record("John Smithe", "2"),
            make_record("Priya Natarajan", "3"),
        ]
        result = EntityMatcher().match("John Smith", records)
        assert result.record.id == "1"
        assert [r.id for r in result.alternatives] == ["2"]

    def test_duplicate_threshold_stricter(self, sample_records):
        """The duplicate matcher still catches an exact repeat."""
        matcher = EntityMatcher(threshold=DUPLICATE_THRESHOLD)
        assert matcher.match("Marcus Bell", sample_records).record.id == "1003"

    def test_whole_token_beats_substring(self):
        """A short name picks the record containing it as a word."""
        records = [make_record("Jalin Moore", "1"), make_record("Al Green", "2")]
        result = EntityMatcher().match("Al", records)
        assert result.record.id == "2"
        assert result.distance == pytest.approx(0.0)
        assert result.alternatives == []

    def test_shared_letters_not_accepted(self):
        """Overlapping letters alone are not a match."""
        records = [make_record("Jalin Moore", "1"), make_record("Al Green", "2")]
        result = EntityMatcher().match("Greg", records)
        assert result.status == MatchStatus.NO_MATCH

    def test_surname_tie_prefers_closer_name(self):
        """Records sharing the word rank by full-name similarity."""
        records = [make_record("Moore Capital Partners", "1"), make_record("Jalin Moore", "2")]
        result = EntityMatcher().match("Moore", records)
        assert result.record.id == "2"
        assert [r.id for r in result.alternatives] == ["1"]
