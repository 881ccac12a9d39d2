"""Alarm scheduling and delivery for routine reminders."""

from .delivery import AlarmDeliveryHandler
from .errors import AlarmError, ExactAlarmPermissionDenied, PersistenceUnavailable, TimerRegistrationFailed
from .manager import AlarmManager
from .models import Reminder, ReminderKind, ReminderSource, ScheduleEntry, Settings
from .recovery import RecoveryTrigger
from .scheduler import AlarmScheduler, ReconcileReport, RegistrationOutcome, token_for
from .session import AlertSession, AlertSessionManager, SessionState
from .storage import JsonReminderStore
from .timers import ThreadingTimerFacility, TimerFacility
