from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from typing import Optional

from .models import ScheduleEntry
from .scheduler import AlarmScheduler, RegistrationOutcome
from .session import AlertSessionManager

logger = logging.getLogger(__name__)


class AlarmDeliveryHandler:
    """Callback bound to the timer facility.

    Starts the alert synchronously and hands the re-arm of a recurring
    reminder's next occurrence to the executor, so the firing timer thread
    is released as soon as the session is up.
    """

    def __init__(self, scheduler: AlarmScheduler, sessions: AlertSessionManager, executor: Executor):
        self.scheduler = scheduler
        self.sessions = sessions
        self.executor = executor

    def on_alarm_fired(self, entry: ScheduleEntry, fired_at_ms: Optional[int] = None) -> Optional[Future]:
        fired_at_ms = entry.fire_at_ms if fired_at_ms is None else fired_at_ms
        logger.info("Alarm fired for %s (%s)", entry.reminder_id, entry.title)
        try:
            self.sessions.start(entry.title, entry.description)
        except Exception:
            logger.error("Failed to start alert session for %s", entry.reminder_id, exc_info=True)
        if not entry.recurring:
            return None
        return self.executor.submit(self._rearm, entry, fired_at_ms)

    def _rearm(self, entry: ScheduleEntry, fired_at_ms: int) -> RegistrationOutcome:
        next_entry = self.scheduler.next_occurrence(entry, fired_at_ms)
        outcome = self.scheduler.arm(next_entry)
        if outcome is RegistrationOutcome.FAILED:
            logger.warning(
                "Recurring alarm %s not re-armed; it resumes on the next full reschedule",
                entry.reminder_id,
            )
        else:
            logger.info("Re-armed %s for %s (%s)", entry.reminder_id, next_entry.fire_at_ms, outcome.value)
        return outcome
