from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, Optional

from .delivery import AlarmDeliveryHandler
from .models import Reminder, ScheduleEntry, Settings
from .recovery import RecoveryTrigger
from .scheduler import AlarmScheduler, ReconcileReport
from .session import AlertSession, AlertSessionManager
from .storage import JsonReminderStore

logger = logging.getLogger(__name__)

EXACT_PERMISSION_PROMPT = (
    "Exact alarm permission is off, so reminders may fire late. "
    "Enable 'Alarms & reminders' to get them on time."
)


class AlarmManager:
    """Entry points the UI and the process adapter call into."""

    def __init__(
        self,
        store: JsonReminderStore,
        scheduler: AlarmScheduler,
        sessions: AlertSessionManager,
        workers: int = 2,
    ):
        self.store = store
        self.scheduler = scheduler
        self.sessions = sessions
        self._executor = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="alarm-worker")
        self.delivery = AlarmDeliveryHandler(scheduler, sessions, self._executor)
        self.recovery = RecoveryTrigger(store, scheduler)
        self._permission_prompted = False

    def start(self) -> Optional[ReconcileReport]:
        self.scheduler.timers.set_fire_callback(self.on_alarm_fired)
        logger.info("Alarm manager started (store=%s)", self.store.path)
        return self.on_system_restart()

    def shutdown(self) -> None:
        # Timers left armed would fire into a closed executor.
        self.scheduler.timers.cancel_everything()
        self.sessions.dismiss_active()
        self._executor.shutdown(wait=True)
        logger.info("Alarm manager stopped")

    def reconcile_alarms(self, reminders: Iterable[Reminder], settings: Settings) -> ReconcileReport:
        report = self.scheduler.reconcile(reminders, settings)
        self._surface_permission_gap(report)
        return report

    def reschedule_all_alarms(self) -> ReconcileReport:
        """Full rebuild from the store; store read failures propagate."""
        reminders = self.store.load_reminders()
        settings = self.store.load_settings()
        self.scheduler.cancel_all(reminders)
        return self.reconcile_alarms(reminders, settings)

    def on_system_restart(self) -> Optional[ReconcileReport]:
        report = self.recovery.on_system_restart()
        if report is not None:
            self._surface_permission_gap(report)
        return report

    def on_alarm_fired(self, entry: ScheduleEntry, fired_at_ms: Optional[int] = None) -> Optional[Future]:
        return self.delivery.on_alarm_fired(entry, fired_at_ms)

    def dismiss_active_alert(self) -> Optional[AlertSession]:
        return self.sessions.dismiss_active()

    def can_schedule_exact_alarms(self) -> bool:
        return self.scheduler.timers.can_schedule_exact()

    def request_exact_alarm_permission(self) -> bool:
        return self.scheduler.timers.request_exact_permission()

    def _surface_permission_gap(self, report: ReconcileReport) -> None:
        if not report.exact_permission_missing:
            self._permission_prompted = False
            return
        if not self._permission_prompted:
            logger.warning(EXACT_PERMISSION_PROMPT)
            self._permission_prompted = True
