"""Monday.com board access."""

from followup_bot.board.client import (
    BoardClient,
    BoardError,
    BoardTransientError,
    RetryPolicy,
)
from followup_bot.board.mutations import DiagnosticResult, NewContact, RecordMutations
from followup_bot.board.queries import Communication, Offering, RecordQueries

__all__ = [
    "BoardClient",
    "BoardError",
    "BoardTransientError",
    "RetryPolicy",
    "DiagnosticResult",
    "NewContact",
    "RecordMutations",
    "Communication",
    "Offering",
    "RecordQueries",
]
