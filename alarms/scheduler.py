from __future__ import annotations

import logging
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from threading import RLock
from typing import Callable, Dict, Iterable, List, Optional

from time_utils import from_epoch_ms, next_daily_time, to_epoch_ms

from .errors import ExactAlarmPermissionDenied, TimerRegistrationFailed
from .models import Reminder, ReminderSource, ScheduleEntry, Settings
from .timers import TimerFacility

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)
TASK_TITLE_PREFIX = "Task Reminder: "
TASK_DEFAULT_DESCRIPTION = "Don't forget to complete this task today!"


class RegistrationOutcome(str, Enum):
    EXACT = "exact"
    INEXACT = "inexact"
    FAILED = "failed"


@dataclass
class ReconcileReport:
    armed: List[ScheduleEntry] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    exact_permission_missing: bool = False
    alarms_enabled: bool = True

    @property
    def armed_ids(self) -> List[str]:
        return [entry.reminder_id for entry in self.armed]


def token_for(reminder_id: str) -> int:
    """Stable timer token for a reminder id, identical across processes."""
    return zlib.crc32(reminder_id.encode("utf-8")) & 0x7FFFFFFF


class AlarmScheduler:
    """Derives the timers that should exist and applies them to a TimerFacility.

    Nothing is remembered between passes: every reconcile recomputes the
    desired set from the reminders it is given and, for each one, cancels the
    reminder's token before registering it again. A single lock serializes
    passes so two cancel/register pairs for the same token never interleave.
    """

    def __init__(
        self,
        timers: TimerFacility,
        tzinfo,
        clock: Optional[Callable[[], datetime]] = None,
        recurring_task_hour: int = 8,
    ):
        self.timers = timers
        self.tzinfo = tzinfo
        self.recurring_task_hour = recurring_task_hour
        self._clock = clock or (lambda: datetime.now(self.tzinfo))
        self._lock = RLock()

    def now(self) -> datetime:
        return self._clock().astimezone(self.tzinfo)

    def reconcile(self, reminders: Iterable[Reminder], settings: Settings) -> ReconcileReport:
        snapshot = list(reminders)
        alarms_enabled = settings.alarms_enabled
        report = ReconcileReport(alarms_enabled=alarms_enabled)
        with self._lock:
            if not alarms_enabled:
                self.cancel_all(snapshot)
                logger.info("Alarms disabled; cancelled %s reminder timers", len(snapshot))
                return report

            now = self.now()
            exact = self.timers.can_schedule_exact()
            if not exact:
                report.exact_permission_missing = True
            for reminder in snapshot:
                try:
                    entry = self._reconcile_one(reminder, now, exact, report)
                except Exception as exc:
                    logger.error("Unexpected error reconciling %s", reminder.id, exc_info=True)
                    report.failures[reminder.id] = str(exc) or type(exc).__name__
                    continue
                if entry is not None:
                    report.armed.append(entry)

        if report.exact_permission_missing:
            logger.warning(
                "Exact alarm permission unavailable; %s alarms armed inexactly and may fire late",
                len(report.armed),
            )
        logger.info(
            "Reconciled %s reminders: %s armed, %s skipped, %s failed",
            len(snapshot),
            len(report.armed),
            len(report.skipped),
            len(report.failures),
        )
        return report

    def cancel_all(self, reminders: Iterable[Reminder]) -> None:
        with self._lock:
            for reminder in reminders:
                self.timers.cancel(token_for(reminder.id))

    def arm(self, entry: ScheduleEntry) -> RegistrationOutcome:
        """Cancel-then-register a single entry without touching other reminders."""
        with self._lock:
            report = ReconcileReport()
            outcome = self._cancel_then_register(entry, self.timers.can_schedule_exact(), report)
        if outcome is RegistrationOutcome.FAILED:
            logger.error("Failed to arm %s: %s", entry.reminder_id, report.failures.get(entry.reminder_id))
        return outcome

    def entry_for(self, reminder: Reminder, now: datetime) -> Optional[ScheduleEntry]:
        if not reminder.alarm_enabled:
            return None
        fire_at = self.next_fire_at(reminder, now)
        if fire_at is None or fire_at <= now:
            return None
        title = reminder.title
        description = reminder.description
        if reminder.source is ReminderSource.TASK and reminder.recurring:
            title = f"{TASK_TITLE_PREFIX}{reminder.title}"
            description = description or TASK_DEFAULT_DESCRIPTION
        return ScheduleEntry(
            token=token_for(reminder.id),
            fire_at_ms=to_epoch_ms(fire_at),
            reminder_id=reminder.id,
            recurring=reminder.recurring,
            source=reminder.source,
            title=title,
            description=description,
        )

    def next_fire_at(self, reminder: Reminder, now: datetime) -> Optional[datetime]:
        if reminder.recurring and reminder.source is ReminderSource.TASK:
            return next_daily_time(now, self.recurring_task_hour)
        if reminder.alarm_timestamp is None:
            return None
        fire_at = from_epoch_ms(reminder.alarm_timestamp, self.tzinfo)
        if reminder.recurring:
            return _roll_forward(fire_at, now)
        return fire_at

    def next_occurrence(self, entry: ScheduleEntry, fired_at_ms: int) -> ScheduleEntry:
        """The entry for the occurrence following the one scheduled at `fired_at_ms`."""
        fired_at = from_epoch_ms(fired_at_ms, self.tzinfo)
        if entry.source is ReminderSource.TASK:
            next_at = next_daily_time(max(fired_at, self.now()), self.recurring_task_hour)
        else:
            next_at = _roll_forward(fired_at + DAY, self.now())
        return ScheduleEntry(
            token=entry.token,
            fire_at_ms=to_epoch_ms(next_at),
            reminder_id=entry.reminder_id,
            recurring=entry.recurring,
            source=entry.source,
            title=entry.title,
            description=entry.description,
        )

    def _reconcile_one(
        self, reminder: Reminder, now: datetime, exact: bool, report: ReconcileReport
    ) -> Optional[ScheduleEntry]:
        # A reminder that no longer arms must not leave its previous timer behind.
        token = token_for(reminder.id)
        try:
            entry = self.entry_for(reminder, now)
        except (TypeError, ValueError, OverflowError) as exc:
            logger.warning("Cannot compute fire time for %s: %s", reminder.id, exc)
            report.failures[reminder.id] = str(exc)
            self.timers.cancel(token)
            return None
        if entry is None:
            self.timers.cancel(token)
            report.skipped.append(reminder.id)
            return None
        if self._cancel_then_register(entry, exact, report) is RegistrationOutcome.FAILED:
            return None
        return entry

    def _cancel_then_register(
        self, entry: ScheduleEntry, exact: bool, report: ReconcileReport
    ) -> RegistrationOutcome:
        self.timers.cancel(entry.token)
        if exact:
            try:
                self.timers.register(entry.token, entry.fire_at_ms, entry, exact=True)
                return RegistrationOutcome.EXACT
            except ExactAlarmPermissionDenied:
                logger.warning("Exact alarm refused for %s; falling back to inexact", entry.reminder_id)
                report.exact_permission_missing = True
            except TimerRegistrationFailed as exc:
                report.failures[entry.reminder_id] = str(exc)
                logger.error("Timer registration failed for %s: %s", entry.reminder_id, exc)
                return RegistrationOutcome.FAILED
        try:
            self.timers.register(entry.token, entry.fire_at_ms, entry, exact=False)
        except (ExactAlarmPermissionDenied, TimerRegistrationFailed) as exc:
            report.failures[entry.reminder_id] = str(exc)
            logger.error("Timer registration failed for %s: %s", entry.reminder_id, exc)
            return RegistrationOutcome.FAILED
        return RegistrationOutcome.INEXACT


def _roll_forward(fire_at: datetime, now: datetime) -> datetime:
    """Advance by whole days, keeping the wall-clock time, until after `now`."""
    if fire_at > now:
        return fire_at
    candidate = fire_at + ((now - fire_at) // DAY + 1) * DAY
    while candidate <= now:
        candidate = candidate + DAY
    return candidate
