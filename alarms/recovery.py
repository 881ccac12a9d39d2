from __future__ import annotations

import logging
from typing import Optional

from .errors import PersistenceUnavailable
from .scheduler import AlarmScheduler, ReconcileReport
from .storage import JsonReminderStore

logger = logging.getLogger(__name__)


class RecoveryTrigger:
    """Rebuilds every timer from the store after a restart.

    Timer tokens do not survive a restart, so this always runs a full
    cancel + reconcile. Repeated calls for the same boot are harmless.
    """

    def __init__(self, store: JsonReminderStore, scheduler: AlarmScheduler):
        self.store = store
        self.scheduler = scheduler

    def on_system_restart(self) -> Optional[ReconcileReport]:
        try:
            reminders = self.store.load_reminders()
            settings = self.store.load_settings()
        except PersistenceUnavailable as exc:
            logger.error("Cannot restore alarms after restart: %s", exc)
            return None
        try:
            self.scheduler.cancel_all(reminders)
            report = self.scheduler.reconcile(reminders, settings)
        except Exception:
            logger.error("Error rescheduling alarms after restart", exc_info=True)
            return None
        logger.info("Restored %s alarms after restart", len(report.armed))
        return report
