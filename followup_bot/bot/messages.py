"""Slack mrkdwn formatting for replies, digests and alerts.

Every function returns a ready-to-post string. Board data is escaped with
``escape_mrkdwn`` before it is interpolated.
"""

from collections import Counter
from datetime import date
from typing import Dict, List, Mapping, Optional, Sequence

from followup_bot.board.mutations import DiagnosticResult
from followup_bot.config import CadenceTier
from followup_bot.models.intent import ContactField
from followup_bot.models.record import Record
from followup_bot.utils import escape_mrkdwn, format_currency, format_date_short

NO_OVERDUE_MESSAGE = ":white_check_mark: No overdue follow-ups right now!"
ALL_CLEAR_MESSAGE = ":white_check_mark: All clear, no follow-ups due today!"


def _long_date(day: date) -> str:
    """Format as "Monday, October 19, 2026"."""
    return f"{day.strftime('%A, %B')} {day.day}, {day.year}"


def _link(record: Record) -> str:
    return f"<{record.link}|Open in Monday>" if record.link else ""


def _last_contacted(record: Record, today: date) -> str:
    days = record.days_since_contact(today)
    return f"last contacted {days} days ago" if days is not None else "never contacted"


def _line(*parts: str) -> str:
    return "• " + " - ".join(p for p in parts if p)


def _assignee_tags(record: Record, assignee_map: Optional[Mapping[str, str]]) -> str:
    tags = []
    for person in record.assigned_to:
        person_id = str(person.id) if person.id is not None else ""
        if assignee_map and person_id in assignee_map:
            tags.append(f"<@{assignee_map[person_id]}>")
        else:
            tags.append(escape_mrkdwn(person.name or f"ID:{person_id}"))
    return f" → {', '.join(tags)}" if tags else ""


def format_daily_digest(
    overdue: Sequence[Record],
    due_today: Sequence[Record],
    today: date,
    suggestions: Optional[Mapping[str, str]] = None,
    assignee_map: Optional[Mapping[str, str]] = None,
) -> str:
    """Build the morning follow-up report.

    Args:
        overdue: Records whose next follow-up is in the past.
        due_today: Records whose next follow-up is today.
        today: Local date of the report.
        suggestions: Record id -> suggested action.
        assignee_map: Board person id -> Slack user id, for tagging owners.

    Returns:
        The digest, or the all-clear line when nothing is due.
    """
    if not overdue and not due_today:
        return ALL_CLEAR_MESSAGE

    lines = [f":clipboard: *Daily Follow-Up Report for {_long_date(today)}*", ""]

    if overdue:
        lines.append(f":red_circle: *OVERDUE ({len(overdue)}):*")
        for record in overdue:
            lines.append(
                _line(
                    f":red_circle: {escape_mrkdwn(record.name)}"
                    f"{_assignee_tags(record, assignee_map)}",
                    escape_mrkdwn(record.status),
                    _last_contacted(record, today),
                    escape_mrkdwn(record.deal_interest or "N/A"),
                    _link(record),
                )
            )
        lines.append("")

    if due_today:
        lines.append(f":calendar: *DUE TODAY ({len(due_today)}):*")
        for record in due_today:
            lines.append(
                _line(
                    f"{escape_mrkdwn(record.name)}{_assignee_tags(record, assignee_map)}",
                    escape_mrkdwn(record.status),
                    escape_mrkdwn(record.deal_interest or "N/A"),
                    _link(record),
                )
            )
        lines.append("")

    for record in list(overdue) + list(due_today):
        suggestion = (suggestions or {}).get(record.id)
        if not suggestion:
            continue
        note = (record.notes or "No notes")[:120]
        lines.append(f":bulb: *Suggested Touchpoint for {escape_mrkdwn(record.clean_name)}:*")
        lines.append(
            f"{escape_mrkdwn(record.investor_type or 'Unknown type')} investor interested in "
            f"{escape_mrkdwn(record.deal_interest or 'N/A')}. "
            f'Last note: "{escape_mrkdwn(note)}"'
        )
        lines.append(f"Suggested action: {escape_mrkdwn(suggestion)}")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_going_cold_alert(record: Record, days_since: int, tier: CadenceTier) -> str:
    name = escape_mrkdwn(record.clean_name)
    return "\n".join(
        [
            ":red_circle: *GOING COLD ALERT*",
            f":red_circle: {name} ({escape_mrkdwn(record.status)}) hasn't been "
            f"contacted in {days_since} days. The window is "
            f"{tier.min_days}-{tier.max_days} days.",
            f"Deal Interest: {escape_mrkdwn(record.deal_interest or 'N/A')} | "
            f"Investment Interest: {format_currency(record.investment_interest)}",
            f":point_right: {_link(record)}",
            "",
            f'Reply with: "follow up {name} tomorrow at 2pm" to reschedule',
        ]
    )


def format_weekly_summary(
    status_counts: Mapping[str, int],
    health: Mapping[str, int],
    deal_counts: Mapping[str, int],
    total_committed: float,
    today: date,
) -> str:
    """Build the Monday pipeline summary.

    Args:
        status_counts: Status label -> record count.
        health: Counts under "on_track", "going_cold" and "stale".
        deal_counts: Deal interest -> record count.
        total_committed: Investment interest summed over committed and funded records.
        today: Local date of the report.
    """
    lines = [f":bar_chart: *Weekly Pipeline Summary for {_long_date(today)}*", ""]

    lines.append("*Pipeline by Status:*")
    for status, count in status_counts.items():
        lines.append(f"• {escape_mrkdwn(status)}: {count}")
    lines.append("")

    lines.append("*Follow-Up Health:*")
    lines.append(f"• :white_check_mark: On track: {health.get('on_track', 0)} investors")
    lines.append(f"• :red_circle: Going cold: {health.get('going_cold', 0)} investors")
    lines.append(f"• :warning: Stale (30+ days): {health.get('stale', 0)} investors")
    lines.append("")

    if deal_counts:
        lines.append("*Deal Interest Breakdown:*")
        for deal, count in deal_counts.items():
            lines.append(f"• {escape_mrkdwn(deal)}: {count}")
        lines.append("")

    lines.append(f"*Total Committed:* {format_currency(total_committed)}")
    return "\n".join(lines)


def format_stale_alerts(records: Sequence[Record], today: date) -> str:
    if not records:
        return (
            ":white_check_mark: No stale investors, everyone has been "
            "contacted within 30 days."
        )
    lines = [
        f":warning: *Stale Investor Alert: {len(records)} investor(s) with 30+ days "
        "since last contact:*",
        "",
    ]
    for record in records:
        lines.append(
            _line(
                escape_mrkdwn(record.name),
                escape_mrkdwn(record.status),
                _last_contacted(record, today),
                _link(record),
            )
        )
    return "\n".join(lines)


def format_overdue_list(records: Sequence[Record], today: date) -> str:
    """List overdue records, or the canonical empty message."""
    if not records:
        return NO_OVERDUE_MESSAGE
    lines = [f":red_circle: *Overdue Follow-Ups ({len(records)}):*", ""]
    for record in records:
        lines.append(
            _line(
                escape_mrkdwn(record.name),
                escape_mrkdwn(record.status),
                _last_contacted(record, today),
                f"Follow-up was due: {format_date_short(record.next_follow_up)}",
                escape_mrkdwn(record.deal_interest or "N/A"),
                _link(record),
            )
        )
    return "\n".join(lines)


def format_status_card(record: Record, today: date) -> str:
    """Snapshot of one record for a status check."""
    follow_up = (
        ":red_circle: OVERDUE"
        if record.is_overdue(today)
        else format_date_short(record.next_follow_up)
    )
    last_contact = (
        format_date_short(record.last_contact) if record.last_contact else "Never"
    )
    assigned = (
        ", ".join(escape_mrkdwn(p.name or f"ID:{p.id}") for p in record.assigned_to)
        or "Unassigned"
    )
    lines = [
        f"*{escape_mrkdwn(record.name)}* - {escape_mrkdwn(record.status or 'No status')}",
        f"Deal Interest: {escape_mrkdwn(record.deal_interest or 'N/A')} | "
        f"Investment Interest: {format_currency(record.investment_interest)}",
        f"Last contacted: {last_contact} | Next follow-up: {follow_up}",
        f"Source: {escape_mrkdwn(record.source or 'N/A')} | Assigned to: {assigned}",
    ]
    if record.link:
        lines.append(_link(record))
    return "\n".join(lines)


def format_reminder_notification(
    subject_name: str,
    user_id: Optional[str],
    status: str = "",
    deal_interest: str = "",
    link: str = "",
    suggestion: Optional[str] = None,
) -> str:
    """In-channel reminder that a follow-up is due now."""
    mention = f"<@{user_id}>" if user_id else "Team"
    message = (
        f":alarm_clock: {mention}, time to follow up with *{escape_mrkdwn(subject_name)}*! "
        f"Status: {escape_mrkdwn(status or 'Unknown')} | "
        f"Deal Interest: {escape_mrkdwn(deal_interest or 'N/A')}"
    )
    if link:
        message += f" :point_right: <{link}|Open in Monday>"
    if suggestion:
        message += f"\n\n:bulb: *Suggested Action:* {escape_mrkdwn(suggestion)}"
    return message


def format_urgent_card(
    subject_name: str,
    last_contact: str,
    next_follow_up: str,
    notes: str,
    email: str,
    phone: str,
    link: str,
) -> str:
    """Alert posted when an activity item is flagged urgent on the board."""

    def value(text: str) -> str:
        return escape_mrkdwn(text) if text else "-"

    lines = [
        ":rotating_light: *URGENT FOLLOW-UP NEEDED*",
        f"*Investor:* {value(subject_name)}",
        f"*Last Contact:* {value(last_contact)}",
        f"*Next Follow-Up:* {value(next_follow_up)}",
        f"*Notes:* {value(notes)}",
        f"*Email:* {value(email)}",
        f"*Phone:* {value(phone)}",
    ]
    if link:
        lines.extend(["", f":link: <{link}|Open in Monday.com>"])
    return "\n".join(lines)


def format_status_list(status_filter: str, records: Sequence[Record], today: date) -> str:
    if not records:
        return f'No investors found with status matching "{escape_mrkdwn(status_filter)}".'
    lines = [
        f':mag: *Investors matching "{escape_mrkdwn(status_filter)}" ({len(records)}):*',
        "",
    ]
    for record in records:
        lines.append(
            _line(
                escape_mrkdwn(record.name),
                escape_mrkdwn(record.status),
                _last_contacted(record, today),
                escape_mrkdwn(record.deal_interest or "N/A"),
                _link(record),
            )
        )
    return "\n".join(lines)


def format_not_contacted_list(days: int, records: Sequence[Record], today: date) -> str:
    if not records:
        return (
            ":white_check_mark: Great news, everyone has been contacted "
            f"within the last {days} days!"
        )
    lines = [f":warning: *Investors not contacted in {days}+ days ({len(records)}):*", ""]
    for record in records:
        lines.append(
            _line(
                escape_mrkdwn(record.name),
                escape_mrkdwn(record.status),
                _last_contacted(record, today),
                _link(record),
            )
        )
    return "\n".join(lines)


def format_count(records: Sequence[Record]) -> str:
    """Record totals broken down by status."""
    counts = Counter(r.status or "No status" for r in records)
    lines = [f":bar_chart: *{len(records)} investors on the board*"]
    for status, count in counts.most_common():
        lines.append(f"• {escape_mrkdwn(status)}: {count}")
    return "\n".join(lines)


def format_contact_info(record: Record, field: ContactField) -> str:
    name = escape_mrkdwn(record.clean_name)
    phone = escape_mrkdwn(record.phone) or "not on file"
    email = escape_mrkdwn(record.email) or "not on file"

    if field == ContactField.PHONE:
        body = f":telephone_receiver: Phone for *{name}*: {phone}"
    elif field == ContactField.EMAIL:
        body = f":email: Email for *{name}*: {email}"
    else:
        parts = [f":bust_in_silhouette: *{name}*", f"Phone: {phone}", f"Email: {email}"]
        if record.company:
            parts.append(f"Company: {escape_mrkdwn(record.company)}")
        body = "\n".join(parts)

    if record.link:
        body += f"\n:point_right: {_link(record)}"
    return body


def format_diagnostic(result: DiagnosticResult) -> str:
    if not result.success:
        return (
            ":x: Monday.com write test FAILED!\n"
            f"Error: `{result.error}`\nCheck the bot logs for full details."
        )
    lines = [":white_check_mark: Monday.com write test PASSED!"]
    if result.record_name:
        lines.append(f"• Rewrote *{escape_mrkdwn(result.record_name)}* with its own name")
    lines.append(f"• Created test item {result.test_item_id} on the relationship board")
    if result.cleaned_up:
        lines.append("• Deleted the test item")
    else:
        lines.append(":warning: Could not delete the test item, please remove it manually")
    return "\n".join(lines)


def group_counts(values: List[str]) -> Dict[str, int]:
    """Count values in first-seen order, skipping blanks."""
    counts: Dict[str, int] = {}
    for value in values:
        if value:
            counts[value] = counts.get(value, 0) + 1
    return counts
