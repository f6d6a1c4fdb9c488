"""Shared fixtures for follow-up bot tests."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

import pytest

from followup_bot.config import BoardConfig, BotConfig
from followup_bot.models.record import Record
from followup_bot.state import BotState

TZ = ZoneInfo("America/New_York")

# Monday morning in New York
NOW = datetime(2026, 10, 19, 10, 30, tzinfo=TZ)
TODAY = NOW.date()

HOT = "\U0001F525 Hot Lead"
WARM = "\U0001F7E1 Warm Prospect"
COLD_NEW = "\U0001F535 Cold / New Lead"
COMMITTED = "✅ Committed"
FUNDED = "\U0001F4B0 Funded"


def make_record(
    name: str = "Jalin Moore",
    id: str = "1001",
    status: str = WARM,
    last_contact: Optional[date] = None,
    next_follow_up: Optional[date] = None,
    **kwargs: Any,
) -> Record:
    """Build a record with sensible defaults."""
    kwargs.setdefault(
        "link", f"https://elitecapitalgroup.monday.com/boards/18399326252/pulses/{id}"
    )
    return Record(
        id=id,
        name=name,
        status=status,
        last_contact=last_contact,
        next_follow_up=next_follow_up,
        **kwargs,
    )


def column(col_id: str, text: str = "", value: Optional[str] = None) -> Dict[str, Any]:
    """Build a raw board column value."""
    return {"id": col_id, "text": text, "value": value}


@pytest.fixture
def record_factory() -> Callable[..., Record]:
    return make_record


@pytest.fixture
def board_config() -> BoardConfig:
    return BoardConfig(
        api_token="test-token",
        api_url="https://api.monday.test/v2",
        account="elitecapitalgroup",
        activity_logging=False,
    )


@pytest.fixture
def bot_config(board_config: BoardConfig) -> BotConfig:
    config = BotConfig(board=board_config)
    config.slack.bot_token = "xoxb-test"
    config.slack.app_token = "xapp-test"
    config.slack.channel_id = "C123"
    config.schedule.timezone = "America/New_York"
    config.team_roster = {"anton": "U0ANTON"}
    return config


@pytest.fixture
def state() -> BotState:
    return BotState()


@pytest.fixture
def sample_records() -> List[Record]:
    return [
        make_record("Jalin Moore", "1001", WARM, last_contact=date(2026, 10, 9)),
        make_record("Priya Natarajan", "1002", HOT, last_contact=date(2026, 10, 18)),
        make_record("Marcus Bell", "1003", COLD_NEW),
    ]
