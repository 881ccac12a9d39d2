from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Set


class ReminderKind(str, Enum):
    ONE_TIME = "onetime"
    RECURRING = "recurring"


class ReminderSource(str, Enum):
    EVENT = "event"
    TASK = "task"


_KNOWN_FIELDS = {
    "id",
    "title",
    "description",
    "date",
    "type",
    "alarmEnabled",
    "alarmTimestamp",
    "skippedDates",
}


def _as_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y"}
    return bool(value)


@dataclass
class Reminder:
    id: str
    title: str
    occurrence_date: str
    source: ReminderSource = ReminderSource.EVENT
    kind: ReminderKind = ReminderKind.ONE_TIME
    description: str = ""
    alarm_enabled: bool = False
    alarm_timestamp: Optional[int] = None
    skipped_dates: Set[str] = field(default_factory=set)
    extra: dict = field(default_factory=dict)

    @property
    def recurring(self) -> bool:
        return self.kind is ReminderKind.RECURRING

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "title": self.title,
                "description": self.description,
                "date": self.occurrence_date,
                "type": self.kind.value,
                "alarmEnabled": self.alarm_enabled,
                "alarmTimestamp": self.alarm_timestamp,
                "skippedDates": sorted(self.skipped_dates),
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict, source: ReminderSource) -> "Reminder":
        reminder_id = data.get("id")
        date_raw = data.get("date")
        if not reminder_id or not date_raw:
            raise ValueError("Reminder payload missing id/date fields")
        kind_raw = str(data.get("type") or ReminderKind.ONE_TIME.value).lower()
        try:
            kind = ReminderKind(kind_raw)
        except ValueError as exc:
            raise ValueError(f"Unknown reminder type {kind_raw!r}") from exc
        timestamp_raw = data.get("alarmTimestamp")
        # Stored tasks predate the flag; recurring ones always carried the morning alarm.
        alarm_default = source is ReminderSource.TASK and kind is ReminderKind.RECURRING
        return cls(
            id=str(reminder_id),
            title=str(data.get("title") or ""),
            occurrence_date=str(date_raw),
            source=source,
            kind=kind,
            description=str(data.get("description") or ""),
            alarm_enabled=_as_bool(data.get("alarmEnabled"), alarm_default),
            alarm_timestamp=int(timestamp_raw) if timestamp_raw is not None else None,
            skipped_dates=set(data.get("skippedDates") or []),
            extra={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )


@dataclass
class Settings:
    alarms_enabled: bool = True
    notifications_enabled: bool = True

    def to_dict(self) -> dict:
        return {
            "alarmsEnabled": self.alarms_enabled,
            "notificationsEnabled": self.notifications_enabled,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Settings":
        if not data:
            return cls()
        return cls(
            alarms_enabled=_as_bool(data.get("alarmsEnabled"), True),
            notifications_enabled=_as_bool(data.get("notificationsEnabled"), True),
        )


@dataclass(frozen=True)
class ScheduleEntry:
    """One timer that should exist; also the payload handed back on fire."""

    token: int
    fire_at_ms: int
    reminder_id: str
    recurring: bool
    source: ReminderSource
    title: str
    description: str = ""
