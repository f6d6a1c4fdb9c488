"""Configuration for the investor follow-up bot."""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

# Load .env from current working directory
load_dotenv(os.path.join(os.getcwd(), ".env"))

logger = logging.getLogger(__name__)

# Prepended to a record name when it has gone too long without contact
GOING_COLD_MARKER = "\U0001F534"

# Normalized fuzzy distance (0 = identical, 1 = unrelated)
MATCH_THRESHOLD = 0.35
# Stricter distance used when checking a new contact against existing records.
# Deliberately separate from MATCH_THRESHOLD until product confirms one value.
DUPLICATE_THRESHOLD = 0.3

CONFIDENCE_THRESHOLD = 0.5
STALE_AFTER_DAYS = 30
DEFAULT_NOT_CONTACTED_DAYS = 14


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class CadenceTier:
    """Contact cadence for a status label."""

    min_days: int
    max_days: int
    cold_after: int
    auto_next_days: int


CADENCE_TIERS: Dict[str, CadenceTier] = {
    "\U0001F525 Hot Lead": CadenceTier(1, 3, 4, 1),
    "\U0001F7E1 Warm Prospect": CadenceTier(5, 7, 8, 5),
    "\U0001F535 Cold / New Lead": CadenceTier(14, 21, 22, 14),
    "\U0001F535 Cold / New": CadenceTier(14, 21, 22, 14),
    "✅ Committed": CadenceTier(7, 7, 10, 7),
    "\U0001F4B0 Funded": CadenceTier(30, 30, 45, 30),
}

NEW_RECORD_STATUS = "\U0001F535 Cold / New Lead"
COMMITTED_STATUSES = ("✅ Committed", "\U0001F4B0 Funded")


def get_cadence_tier(status: Optional[str]) -> Optional[CadenceTier]:
    """Look up the cadence tier for a status label.

    Args:
        status: Status label exactly as the board shows it.

    Returns:
        The tier, or None when the status is missing or unrecognized.
    """
    if not status:
        return None
    return CADENCE_TIERS.get(status.strip())


@dataclass
class SlackConfig:
    """Slack integration configuration."""

    bot_token: str = field(default_factory=lambda: os.getenv("SLACK_BOT_TOKEN", ""))
    app_token: str = field(default_factory=lambda: os.getenv("SLACK_APP_TOKEN", ""))
    channel_id: str = field(default_factory=lambda: os.getenv("SLACK_CHANNEL_ID", ""))
    channel_name: str = field(
        default_factory=lambda: os.getenv(
            "SLACK_CHANNEL_NAME", "monday-investor-followups"
        )
    )
    bot_user_id: str = field(
        default_factory=lambda: os.getenv("SLACK_BOT_USER_ID", "")
    )


@dataclass
class RecordColumns:
    """Column ids on the investor list board."""

    status: str = "color_mm0d1f8z"
    email: str = "email_mm0dh83c"
    phone: str = "phone_mm0dymr8"
    company: str = "text_mm0da4z4"
    source: str = "dropdown_mm0dxpzg"
    investor_type: str = "dropdown_mm0dtj0p"
    referred_by: str = "text_mm0db450"
    investment_interest: str = "numeric_mm0dx8ez"
    deal_interest: str = "dropdown_mm0dvrsf"
    assigned_to: str = "multiple_person_mm0dq26t"
    last_contact: str = "date_mm0dm8y0"
    next_follow_up: str = "date_mm0drsbg"
    notes: str = "long_text_mm0dvjg7"
    new_leads_group: str = "group_mm0ddbx"


@dataclass
class ActivityColumns:
    """Column ids on the relationship management board."""

    status: str = "color_mm0mbm8z"
    cadence: str = "color_mm0m5rtx"
    last_contact: str = "date_mm0m92td"
    next_follow_up: str = "date_mm0mme0w"
    method: str = "color_mm0m1ysc"
    email: str = "email_mm0mjwa8"
    phone: str = "phone_mm0m8ye5"
    notes: str = "long_text_mm0mrnn5"
    linked_record: str = "board_relation_mm0myg9c"
    person: str = "person"
    created: str = "date4"
    active_group: str = "topics"
    completed_group: str = "group_title"
    urgent_label_index: int = 2


@dataclass
class CommsColumns:
    """Column ids on the communications log board."""

    kind: str = "color_mm0dm156"
    deal: str = "text_mm0dv1rk"
    date_sent: str = "date_mm0dmpph"
    send_status: str = "color_mm0dvx47"
    sent_by: str = "multiple_person_mm0dp5dx"
    notes: str = "long_text_mm0dfe63"
    ad_hoc_group: str = "topics"


@dataclass
class BoardConfig:
    """Monday.com API and board layout configuration."""

    api_token: str = field(default_factory=lambda: os.getenv("MONDAY_API_TOKEN", ""))
    api_url: str = field(
        default_factory=lambda: os.getenv(
            "MONDAY_API_URL", "https://api.monday.com/v2"
        )
    )
    api_version: str = field(
        default_factory=lambda: os.getenv("MONDAY_API_VERSION", "2024-10")
    )
    timeout: float = field(
        default_factory=lambda: float(os.getenv("MONDAY_TIMEOUT", "30"))
    )
    retry_backoff: float = field(
        default_factory=lambda: float(os.getenv("MONDAY_RETRY_BACKOFF", "30"))
    )
    account: str = field(
        default_factory=lambda: os.getenv("MONDAY_ACCOUNT", "elitecapitalgroup")
    )
    records_board_id: str = field(
        default_factory=lambda: os.getenv("MONDAY_RECORDS_BOARD_ID", "18399326252")
    )
    activity_board_id: str = field(
        default_factory=lambda: os.getenv("MONDAY_ACTIVITY_BOARD_ID", "18399401453")
    )
    comms_board_id: str = field(
        default_factory=lambda: os.getenv("MONDAY_COMMS_BOARD_ID", "18399326425")
    )
    offerings_board_id: str = field(
        default_factory=lambda: os.getenv("MONDAY_OFFERINGS_BOARD_ID", "18399326336")
    )
    activity_logging: bool = field(
        default_factory=lambda: _env_bool("MONDAY_ACTIVITY_LOGGING")
    )
    records: RecordColumns = field(default_factory=RecordColumns)
    activity: ActivityColumns = field(default_factory=ActivityColumns)
    comms: CommsColumns = field(default_factory=CommsColumns)

    def item_url(self, board_id: str, item_id: str) -> str:
        """Build the permalink for an item."""
        return f"https://{self.account}.monday.com/boards/{board_id}/pulses/{item_id}"

    def record_url(self, item_id: str) -> str:
        """Build the permalink for an investor list item."""
        return self.item_url(self.records_board_id, item_id)


@dataclass
class LLMConfig:
    """Language model configuration for intent parsing and suggestions."""

    enabled: bool = field(default_factory=lambda: _env_bool("LLM_ENABLED", "true"))
    base_url: Optional[str] = field(
        default_factory=lambda: os.getenv("LLM_BASE_URL") or None
    )
    api_key: str = field(
        default_factory=lambda: os.getenv("LLM_API_KEY")
        or os.getenv("OPENAI_API_KEY", "")
    )
    model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o-mini"))
    timeout: float = field(
        default_factory=lambda: float(os.getenv("LLM_TIMEOUT", "10.0"))
    )


@dataclass
class SMTPConfig:
    """Outbound email configuration."""

    host: str = field(default_factory=lambda: os.getenv("SMTP_HOST", ""))
    port: int = field(default_factory=lambda: int(os.getenv("SMTP_PORT", "587")))
    user: str = field(default_factory=lambda: os.getenv("SMTP_USER", ""))
    password: str = field(default_factory=lambda: os.getenv("SMTP_PASS", ""))
    sender: str = field(default_factory=lambda: os.getenv("SMTP_FROM", ""))

    @property
    def enabled(self) -> bool:
        """Email is sent only when a host and sender are configured."""
        return bool(self.host and self.sender)


@dataclass
class ReminderConfig:
    """Reminder persistence and polling configuration."""

    store_path: str = field(
        default_factory=lambda: os.getenv("REMINDER_STORE_PATH", "reminders.json")
    )
    check_interval: int = field(
        default_factory=lambda: int(os.getenv("REMINDER_CHECK_INTERVAL", "60"))
    )


@dataclass
class ScheduleConfig:
    """Cron scheduling configuration."""

    enabled: bool = field(default_factory=lambda: _env_bool("CRON_ENABLED", "true"))
    timezone: str = field(
        default_factory=lambda: os.getenv("BOT_TIMEZONE", "America/New_York")
    )
    daily_scan: str = "0 9 * * *"
    weekly_summary: str = "0 8 * * 1"
    stale_alerts: str = "30 8 * * 1"
    contact_poll: str = "*/15 * * * *"


@dataclass
class WebhookConfig:
    """Inbound board webhook server configuration."""

    enabled: bool = field(default_factory=lambda: _env_bool("WEBHOOK_ENABLED"))
    host: str = field(default_factory=lambda: os.getenv("WEBHOOK_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("WEBHOOK_PORT", "3000")))
    path: str = field(
        default_factory=lambda: os.getenv("WEBHOOK_PATH", "/webhooks/monday")
    )


@dataclass
class BotConfig:
    """Main configuration for the follow-up bot."""

    slack: SlackConfig = field(default_factory=SlackConfig)
    board: BoardConfig = field(default_factory=BoardConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    smtp: SMTPConfig = field(default_factory=SMTPConfig)
    reminders: ReminderConfig = field(default_factory=ReminderConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)

    # First name (lowercase) -> Slack user id, consulted before any API call
    team_roster: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "BotConfig":
        """Create config from environment variables.

        The roster is a JSON object in TEAM_ROSTER:
        TEAM_ROSTER='{"anton": "U0123", "casey": "U0456"}'
        """
        config = cls()

        roster_json = os.getenv("TEAM_ROSTER", "")
        if roster_json:
            try:
                raw = json.loads(roster_json)
                config.team_roster = {
                    str(name).strip().lower(): str(user_id)
                    for name, user_id in raw.items()
                }
            except (json.JSONDecodeError, AttributeError) as e:
                logger.warning(f"Ignoring invalid TEAM_ROSTER: {e}")

        # Override cron schedules from env
        for attr, env_name in (
            ("daily_scan", "CRON_DAILY_SCAN"),
            ("weekly_summary", "CRON_WEEKLY_SUMMARY"),
            ("stale_alerts", "CRON_STALE_ALERTS"),
            ("contact_poll", "CRON_CONTACT_POLL"),
        ):
            value = os.getenv(env_name)
            if value:
                setattr(config.schedule, attr, value)

        return config

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.slack.bot_token:
            errors.append("SLACK_BOT_TOKEN is required")
        if not self.slack.app_token:
            errors.append("SLACK_APP_TOKEN is required (for Socket Mode)")
        if not self.slack.channel_id and not self.slack.channel_name:
            errors.append("SLACK_CHANNEL_ID or SLACK_CHANNEL_NAME is required")
        if not self.board.api_token:
            errors.append("MONDAY_API_TOKEN is required")

        return errors
