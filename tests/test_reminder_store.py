"""Tests for the reminder model and file-backed store."""

import json
import stat
from datetime import datetime, timedelta, timezone

import pytest
from conftest import NOW

from followup_bot.models.reminder import Reminder
from followup_bot.reminders.store import ReminderStore


def make_reminder(subject: str = "Jalin Moore", fire_at: datetime = NOW, **kwargs) -> Reminder:
    return Reminder.create(
        record_id=kwargs.pop("record_id", "1001"),
        subject_name=subject,
        fire_at=fire_at,
        user_id=kwargs.pop("user_id", "U0ANTON"),
        **kwargs,
    )


class TestReminder:
    """Tests for the Reminder model."""

    def test_naive_time_rejected(self):
        """Reminders must carry a timezone."""
        with pytest.raises(ValueError):
            make_reminder(fire_at=datetime(2026, 10, 20, 9, 0))

    def test_dict_keeps_offset(self):
        """Serialization preserves the instant."""
        reminder = make_reminder(user_email="anton@elitecap.com", category="Fund III")
        restored = Reminder.from_dict(reminder.to_dict())
        assert restored.fire_at == reminder.fire_at
        assert restored.fire_at.utcoffset() == timedelta(hours=-4)
        assert restored.category == "Fund III"
        assert restored.user_email == "anton@elitecap.com"

    def test_from_dict_accepts_zulu(self):
        reminder = Reminder.from_dict(
            {"id": "r1", "record_id": 1001, "fire_at": "2026-10-20T13:00:00Z"}
        )
        assert reminder.fire_at == datetime(2026, 10, 20, 13, 0, tzinfo=timezone.utc)
        assert reminder.record_id == "1001"

    def test_is_due(self):
        reminder = make_reminder(fire_at=NOW)
        assert reminder.is_due(NOW)
        assert not reminder.is_due(NOW - timedelta(seconds=1))


class TestReminderStore:
    """Tests for ReminderStore."""

    def test_missing_file_is_empty(self, tmp_path):
        store = ReminderStore(tmp_path / "reminders.json")
        assert store.load() == 0
        assert len(store) == 0

    def test_add_persists(self, tmp_path):
        """Added reminders survive a reload."""
        path = tmp_path / "reminders.json"
        store = ReminderStore(path)
        reminder = store.add(make_reminder())

        reloaded = ReminderStore(path)
        assert reloaded.load() == 1
        assert reloaded.all()[0].id == reminder.id

    def test_file_is_owner_only(self, tmp_path):
        path = tmp_path / "reminders.json"
        ReminderStore(path).add(make_reminder())
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert not (tmp_path / "reminders.json.tmp").exists()

    def test_remove(self, tmp_path):
        path = tmp_path / "reminders.json"
        store = ReminderStore(path)
        keep = store.add(make_reminder("Priya"))
        drop = store.add(make_reminder("Marcus"))
        assert store.remove(drop.id) is True
        assert store.remove(drop.id) is False
        assert [r["id"] for r in json.loads(path.read_text())] == [keep.id]

    def test_due_filters_by_time(self, tmp_path):
        store = ReminderStore(tmp_path / "reminders.json")
        past = store.add(make_reminder("Priya", fire_at=NOW - timedelta(minutes=5)))
        store.add(make_reminder("Marcus", fire_at=NOW + timedelta(days=1)))
        assert [r.id for r in store.due(NOW)] == [past.id]

    def test_due_compares_instants(self, tmp_path):
        """A UTC 'now' compares correctly against local fire times."""
        store = ReminderStore(tmp_path / "reminders.json")
        store.add(make_reminder(fire_at=NOW))
        assert len(store.due(NOW.astimezone(timezone.utc))) == 1

    def test_bad_entries_skipped(self, tmp_path):
        """One corrupt entry does not lose the rest."""
        path = tmp_path / "reminders.json"
        good = make_reminder().to_dict()
        path.write_text(json.dumps([good, {"id": "broken"}, "nonsense"]))
        store = ReminderStore(path)
        assert store.load() == 1

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "reminders.json"
        path.write_text("{not json")
        assert ReminderStore(path).load() == 0
