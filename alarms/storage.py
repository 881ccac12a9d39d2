from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Lock
from typing import Iterable, List

from .errors import PersistenceUnavailable
from .models import Reminder, ReminderSource, Settings

logger = logging.getLogger(__name__)

KEY_EVENTS = "routine-os-events"
KEY_TASKS = "routine-os-tasks"
KEY_SETTINGS = "routine-os-settings"


class JsonReminderStore:
    """Mapping store for events, tasks and settings kept in a single JSON file.

    The file layout matches the key-value store the UI writes: one key per
    collection, events and tasks as lists of camelCase records.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = Lock()

    def load_reminders(self) -> List[Reminder]:
        payload = self._read()
        reminders: List[Reminder] = []
        reminders.extend(_parse_items(payload.get(KEY_EVENTS), ReminderSource.EVENT))
        reminders.extend(_parse_items(payload.get(KEY_TASKS), ReminderSource.TASK))
        return reminders

    def load_settings(self) -> Settings:
        return Settings.from_dict(self._read().get(KEY_SETTINGS))

    def save_reminders(self, reminders: Iterable[Reminder]) -> None:
        events = []
        tasks = []
        for reminder in reminders:
            target = tasks if reminder.source is ReminderSource.TASK else events
            target.append(reminder.to_dict())
        self._update({KEY_EVENTS: events, KEY_TASKS: tasks})

    def save_settings(self, settings: Settings) -> None:
        self._update({KEY_SETTINGS: settings.to_dict()})

    def _read(self) -> dict:
        with self._lock:
            if not self.path.exists():
                return {}
            try:
                with self.path.open("r", encoding="utf-8") as f:
                    payload = json.load(f)
            except (OSError, ValueError) as exc:
                raise PersistenceUnavailable(f"Failed to read {self.path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise PersistenceUnavailable(f"Unexpected payload in {self.path}")
        return payload

    def _update(self, values: dict) -> None:
        payload = self._read()
        payload.update(values)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
        logger.debug("Saved %s to %s", ", ".join(sorted(values)), self.path)


def _parse_items(items, source: ReminderSource) -> List[Reminder]:
    reminders: List[Reminder] = []
    for item in items or []:
        try:
            reminders.append(Reminder.from_dict(item, source))
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Skipping %s item due to parse error: %s", source.value, exc)
    return reminders
