"""Resolution of free-text names, dates and people."""

from followup_bot.resolution.date_parser import NaturalDateInterpreter, ParsedDate
from followup_bot.resolution.identity import IdentityMatch, IdentityResolver
from followup_bot.resolution.name_match import EntityMatcher, MatchResult, MatchStatus

__all__ = [
    "NaturalDateInterpreter",
    "ParsedDate",
    "IdentityMatch",
    "IdentityResolver",
    "EntityMatcher",
    "MatchResult",
    "MatchStatus",
]
