"""Structured logging for the follow-up bot.

Every record carries a correlation id. The Slack front end sets it to the
inbound message ``ts``, so the classifier call, board writes and reply for
one message can be found together in the JSON log.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SERVICE_NAME = "followup-bot"

# Libraries whose INFO output drowns the bot's own
NOISY_LOGGERS = ("slack_bolt", "slack_sdk", "aiohttp", "openai", "httpx", "urllib3")

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="-")


def set_correlation_id(cid: str) -> None:
    """Tag everything logged from the current task with ``cid``."""
    _correlation_id.set(cid or "-")


def get_correlation_id() -> str:
    return _correlation_id.get()


def mask_email(email: Optional[str]) -> str:
    """Mask an email address for log output.

    "john.doe@company.com" becomes "j*******@c******.com".
    """
    if not email or not isinstance(email, str):
        return "[no email]"
    local, _, domain = email.partition("@")
    if not domain or not local:
        return "***@***"
    parts = domain.split(".")
    ext = parts.pop() if len(parts) > 1 else ""
    masked_local = local[0] + "*" * max(len(local) - 1, 3)
    masked_domain = ".".join(p[:1] + "*" * max(len(p) - 1, 3) for p in parts)
    return f"{masked_local}@{masked_domain}.{ext}" if ext else f"{masked_local}@{masked_domain}"


class CorrelationFilter(logging.Filter):
    """Copies the current correlation id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shipping."""

    # Attributes every LogRecord has; anything else was passed via ``extra``
    _STANDARD_FIELDS = frozenset(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__
    ) | {"message", "taskName", "correlation_id"}

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", get_correlation_id()),
        }
        if record.levelno >= logging.ERROR:
            entry["location"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in self._STANDARD_FIELDS or key.startswith("_"):
                continue
            entry[key] = value
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output for local runs."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = record.levelname[0]
        if self.use_color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"
        cid = getattr(record, "correlation_id", get_correlation_id())

        line = f"[{stamp}] {level} [{cid}] {record.name}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Install the bot's handlers on the root logger.

    Args:
        level: Log level name; unknown names fall back to INFO.
        json_output: Write JSON to stdout instead of console lines.
        log_file: Optional path that always receives JSON.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        JSONFormatter() if json_output else ConsoleFormatter(use_color=sys.stdout.isatty())
    )
    handlers = [console]

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        handler.addFilter(CorrelationFilter())
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name (typically ``__name__``)."""
    return logging.getLogger(name)
