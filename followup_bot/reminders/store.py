"""File-backed reminder queue."""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Union

from followup_bot.logging import mask_email
from followup_bot.models.reminder import Reminder

logger = logging.getLogger(__name__)


class ReminderStore:
    """Durable list of scheduled reminders.

    The whole list is rewritten to a JSON array on every add and remove.
    Writes go to a temporary file that replaces the store, and the file is
    readable by its owner only.
    """

    def __init__(self, path: Union[str, Path]):
        """Initialize store.

        Args:
            path: JSON file holding the reminder array.
        """
        self.path = Path(path)
        self._reminders: List[Reminder] = []

    def load(self) -> int:
        """Read reminders from disk, replacing anything in memory.

        A missing file is an empty store. Unreadable entries are skipped.

        Returns:
            Number of reminders loaded.
        """
        self._reminders = []
        if not self.path.exists():
            logger.info(f"No reminder file at {self.path}, starting empty")
            return 0

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading reminders from {self.path}: {e}")
            return 0

        if not isinstance(data, list):
            logger.error(f"Reminder file {self.path} does not hold a list, ignoring")
            return 0

        for entry in data:
            try:
                self._reminders.append(Reminder.from_dict(entry))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping unreadable reminder {entry!r}: {e}")

        logger.info(f"Loaded {len(self._reminders)} reminders from {self.path}")
        return len(self._reminders)

    def _save(self) -> None:
        payload = json.dumps([r.to_dict() for r in self._reminders], indent=2)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.chmod(0o600)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Error saving reminders to {self.path}: {e}")

    def add(self, reminder: Reminder) -> Reminder:
        """Queue a reminder and persist the store."""
        self._reminders.append(reminder)
        self._save()
        logger.info(
            f"Added reminder {reminder.id} for {reminder.subject_name} at "
            f"{reminder.fire_at.isoformat()} (user: {reminder.user_id}, "
            f"email: {mask_email(reminder.user_email)})"
        )
        return reminder

    def remove(self, reminder_id: str) -> bool:
        """Drop a reminder and persist the store.

        Returns:
            True if a reminder was removed.
        """
        before = len(self._reminders)
        self._reminders = [r for r in self._reminders if r.id != reminder_id]
        if len(self._reminders) == before:
            return False
        self._save()
        return True

    def due(self, now: datetime) -> List[Reminder]:
        """Reminders whose fire time is at or before ``now``."""
        return [r for r in self._reminders if r.is_due(now)]

    def all(self) -> List[Reminder]:
        return list(self._reminders)

    def __len__(self) -> int:
        return len(self._reminders)
