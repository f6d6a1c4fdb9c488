"""Reminder emails sent over SMTP."""

import asyncio
import html
import logging
import smtplib
from datetime import date
from email.message import EmailMessage
from typing import Optional, Set

from followup_bot.config import SMTPConfig
from followup_bot.logging import mask_email
from followup_bot.models.record import Record
from followup_bot.utils import format_currency, format_date_short

logger = logging.getLogger(__name__)


def _greeting_name(address: str) -> str:
    local = address.split("@")[0] or "there"
    for sep in "._-":
        local = local.replace(sep, " ")
    return local[:1].upper() + local[1:]


def build_reminder_html(
    to: str, record: Record, today: date, suggestion: Optional[str] = None
) -> str:
    """Render the reminder body.

    Args:
        to: Recipient address (used for the greeting).
        record: The investor being followed up.
        today: Local date, for days since contact.
        suggestion: Optional suggested action.
    """
    days = record.days_since_contact(today)
    last_contact = format_date_short(record.last_contact) if record.last_contact else "Never"
    rows = [
        ("Investor", record.clean_name),
        ("Status", record.status or "N/A"),
        ("Deal Interest", record.deal_interest or "N/A"),
        ("Investment Interest", format_currency(record.investment_interest)),
        ("Last Contacted", last_contact),
        ("Days Since Last Contact", f"{days} days" if days is not None else "N/A"),
        ("Source", record.source or "N/A"),
    ]
    table = "\n".join(
        f'    <tr><td style="padding:8px; font-weight:bold;">{label}:</td>'
        f'<td style="padding:8px;">{html.escape(value)}</td></tr>'
        for label, value in rows
    )

    parts = [
        '<div style="font-family: Arial, sans-serif; max-width: 600px;">',
        "  <h2>&#x1F514; Follow-Up Reminder</h2>",
        f"  <p>Hey {html.escape(_greeting_name(to))},</p>",
        "  <p>This is your scheduled follow-up reminder:</p>",
        '  <table style="width:100%; border-collapse:collapse;">',
        table,
        "  </table>",
    ]
    if record.notes:
        parts.append(
            f'  <p><strong>Last Note:</strong> "{html.escape(record.notes[:300])}"</p>'
        )
    if suggestion:
        parts.append(f"  <p><strong>Suggested Action:</strong> {html.escape(suggestion)}</p>")
    if record.link:
        parts.append(f'  <p><a href="{html.escape(record.link)}">Open in Monday.com</a></p>')
    parts.extend(
        ["  <hr/>", '  <p style="color:#888;">Investor Follow-Up Bot</p>', "</div>"]
    )
    return "\n".join(parts)


class ReminderMailer:
    """Fire-and-forget reminder emails.

    ``send_later`` returns immediately; the SMTP conversation runs in a
    worker thread and its outcome is only logged.
    """

    def __init__(self, config: SMTPConfig):
        self.config = config
        self._tasks: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def send_later(
        self, to: str, record: Record, today: date, suggestion: Optional[str] = None
    ) -> Optional[asyncio.Task]:
        """Start sending a reminder email without waiting for it.

        Returns:
            The background task, or None when email is not configured.
        """
        if not self.enabled or not to:
            return None
        task = asyncio.create_task(self.send(to, record, today, suggestion))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def send(
        self, to: str, record: Record, today: date, suggestion: Optional[str] = None
    ) -> bool:
        """Send a reminder email.

        Returns:
            True on success, False on failure (never raises).
        """
        message = EmailMessage()
        message["Subject"] = f"\U0001F514 Follow-Up Reminder: {record.clean_name}, Due Now"
        message["From"] = self.config.sender
        message["To"] = to
        message.set_content(
            f"Time to follow up with {record.clean_name}. {record.link}".strip()
        )
        message.add_alternative(
            build_reminder_html(to, record, today, suggestion), subtype="html"
        )

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send reminder email to {mask_email(to)}: {e}")
            return False

        logger.info(
            f"Reminder email sent to {mask_email(to)} for {record.clean_name}"
        )
        return True

    def _deliver(self, message: EmailMessage) -> None:
        cfg = self.config
        if cfg.port == 465:
            server: smtplib.SMTP = smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=30)
        else:
            server = smtplib.SMTP(cfg.host, cfg.port, timeout=30)
        with server:
            if cfg.port != 465:
                server.starttls()
            if cfg.user:
                server.login(cfg.user, cfg.password)
            server.send_message(message)

    async def close(self) -> None:
        """Wait for in-flight emails to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
