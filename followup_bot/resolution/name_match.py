"""Fuzzy matching of free-text investor names against board records."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from rapidfuzz import fuzz, process, utils

from followup_bot.config import MATCH_THRESHOLD
from followup_bot.models.record import Record, strip_marker

logger = logging.getLogger(__name__)

# Classifiers sometimes leave these attached ("follow up with Jane")
_LEADING_PREPOSITIONS = re.compile(
    r"^(?:(?:with|for|to|on|about|regarding)\s+)+", re.IGNORECASE
)
_EDGE_PUNCTUATION = "\"'`.,;:!?()[]"


def clean_query(text: str) -> str:
    """Normalize a search string before matching.

    Strips the going-cold marker, surrounding quotes and leading
    prepositions: "with 'Wyatt Heavy'" -> "Wyatt Heavy".
    """
    query = strip_marker(text or "").strip(_EDGE_PUNCTUATION + " ")
    query = _LEADING_PREPOSITIONS.sub("", query)
    return query.strip(_EDGE_PUNCTUATION + " ")


class MatchStatus(Enum):
    MATCHED = "matched"
    NO_MATCH = "no_match"
    NO_RECORDS = "no_records"


@dataclass
class MatchResult:
    """Outcome of a name lookup.

    Attributes:
        status: Whether a record was accepted.
        query: The cleaned search string.
        record: The accepted record, when matched.
        distance: 0 (identical) to 1 (unrelated) for the accepted record.
        alternatives: Runners-up scoring close to the accepted record.
        suggestions: Best candidate names when nothing was accepted.
    """

    status: MatchStatus
    query: str
    record: Optional[Record] = None
    distance: Optional[float] = None
    alternatives: List[Record] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.status == MatchStatus.MATCHED and self.record is not None


class EntityMatcher:
    """Resolves a free-text name to a single record."""

    def __init__(
        self,
        threshold: float = MATCH_THRESHOLD,
        alternative_margin: float = 0.1,
        suggestion_limit: int = 3,
    ):
        """Initialize matcher.

        Args:
            threshold: Largest accepted distance.
            alternative_margin: Distance gap under which runners-up are
                reported as "did you mean" alternatives.
            suggestion_limit: Candidate names to offer on a failed lookup.
        """
        self.threshold = threshold
        self.alternative_margin = alternative_margin
        self.suggestion_limit = suggestion_limit

    def match(self, name: str, records: Sequence[Record]) -> MatchResult:
        """Find the best record for a name.

        Never raises; an empty record list is reported distinctly from a
        name that matched nothing.

        Args:
            name: Free-text name from the message.
            records: Candidate records.

        Returns:
            MatchResult describing the outcome.
        """
        query = clean_query(name)
        if not records:
            return MatchResult(status=MatchStatus.NO_RECORDS, query=query)
        if not query:
            return MatchResult(status=MatchStatus.NO_MATCH, query=query)

        choices = [r.clean_name for r in records]
        ranked = process.extract(
            query,
            choices,
            scorer=fuzz.token_set_ratio,
            processor=utils.default_process,
            limit=None,
        )
        if not ranked:
            return MatchResult(status=MatchStatus.NO_MATCH, query=query)

        # Whole-token hits tie at 100; the closer full name wins
        processed = utils.default_process(query)
        ranked.sort(
            key=lambda hit: (
                -hit[1],
                -fuzz.ratio(processed, utils.default_process(hit[0])),
                hit[2],
            )
        )

        _, top_score, top_index = ranked[0]
        top_distance = 1.0 - top_score / 100.0

        if top_distance > self.threshold:
            suggestions = [
                choices[index]
                for _, score, index in ranked[: self.suggestion_limit]
                if score > 0
            ]
            logger.info(
                f"No match for {query!r} (best distance {top_distance:.2f}), "
                f"suggesting {suggestions}"
            )
            return MatchResult(
                status=MatchStatus.NO_MATCH, query=query, suggestions=suggestions
            )

        alternatives = [
            records[index]
            for _, score, index in ranked[1:]
            if (1.0 - score / 100.0) - top_distance < self.alternative_margin
        ]
        record = records[top_index]
        logger.debug(
            f"Matched {query!r} -> {record.clean_name!r} "
            f"(distance {top_distance:.2f}, {len(alternatives)} alternatives)"
        )
        return MatchResult(
            status=MatchStatus.MATCHED,
            query=query,
            record=record,
            distance=top_distance,
            alternatives=alternatives,
        )
