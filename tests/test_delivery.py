from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from alarms.delivery import AlarmDeliveryHandler
from alarms.models import Reminder, ReminderKind, ReminderSource, Settings
from alarms.scheduler import RegistrationOutcome, token_for
from alarms.session import SessionState
from time_utils import to_epoch_ms

UTC = timezone.utc


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def handler(scheduler, sessions, timers, executor):
    delivery = AlarmDeliveryHandler(scheduler, sessions, executor)
    timers.set_fire_callback(delivery.on_alarm_fired)
    return delivery


def test_one_time_alarm_starts_session_without_rearm(handler, scheduler, timers, sessions, clock):
    fire_at = clock.now + timedelta(seconds=60)
    reminder = Reminder(
        id="e1",
        title="Call mom",
        occurrence_date="2025-01-01",
        alarm_enabled=True,
        alarm_timestamp=to_epoch_ms(fire_at),
    )
    scheduler.reconcile([reminder], Settings())
    assert timers.armed[token_for("e1")].fire_at_ms == to_epoch_ms(fire_at)

    clock.advance(seconds=60)
    result = timers.fire(token_for("e1"))

    assert result is None
    assert sessions.active.title == "Call mom"
    assert sessions.active.state is SessionState.SOUNDING
    assert token_for("e1") not in timers.pending()


def test_recurring_task_rearms_day_after(handler, scheduler, timers, sessions, clock):
    task = Reminder(
        id="t1",
        title="Water plants",
        occurrence_date="2025-01-01",
        source=ReminderSource.TASK,
        kind=ReminderKind.RECURRING,
        alarm_enabled=True,
    )
    scheduler.reconcile([task], Settings())
    tomorrow_eight = datetime(2025, 1, 2, 8, 0, tzinfo=UTC)
    assert timers.armed[token_for("t1")].fire_at_ms == to_epoch_ms(tomorrow_eight)

    clock.now = tomorrow_eight
    future = timers.fire(token_for("t1"))
    assert future.result(timeout=2) is RegistrationOutcome.EXACT

    assert sessions.active.title == "Task Reminder: Water plants"
    pending = timers.pending()
    assert list(pending) == [token_for("t1")]
    assert pending[token_for("t1")].fire_at_ms == to_epoch_ms(datetime(2025, 1, 3, 8, 0, tzinfo=UTC))


def test_recurring_event_rearms_one_day_later(handler, scheduler, timers, clock):
    fire_at = clock.now + timedelta(minutes=30)
    event = Reminder(
        id="e2",
        title="Standup",
        occurrence_date="2025-01-01",
        kind=ReminderKind.RECURRING,
        alarm_enabled=True,
        alarm_timestamp=to_epoch_ms(fire_at),
    )
    scheduler.reconcile([event], Settings())
    clock.now = fire_at
    timers.fire(token_for("e2")).result(timeout=2)
    assert timers.armed[token_for("e2")].fire_at_ms == to_epoch_ms(fire_at + timedelta(days=1))


def test_late_fire_rearms_after_now(handler, scheduler, timers, clock):
    fire_at = clock.now + timedelta(minutes=5)
    event = Reminder(
        id="e3",
        title="Pills",
        occurrence_date="2025-01-01",
        kind=ReminderKind.RECURRING,
        alarm_enabled=True,
        alarm_timestamp=to_epoch_ms(fire_at),
    )
    scheduler.reconcile([event], Settings())
    # Delivered two days late, e.g. by an inexact timer after a long sleep.
    clock.now = fire_at + timedelta(days=2, minutes=1)
    timers.fire(token_for("e3")).result(timeout=2)
    assert timers.armed[token_for("e3")].fire_at_ms == to_epoch_ms(fire_at + timedelta(days=3))


def test_rearm_failure_is_not_raised(handler, scheduler, timers, clock):
    task = Reminder(
        id="t2",
        title="Journal",
        occurrence_date="2025-01-01",
        source=ReminderSource.TASK,
        kind=ReminderKind.RECURRING,
        alarm_enabled=True,
    )
    scheduler.reconcile([task], Settings())
    timers.failing_tokens.add(token_for("t2"))
    future = timers.fire(token_for("t2"))
    assert future.result(timeout=2) is RegistrationOutcome.FAILED
    assert timers.pending() == {}


def test_session_failure_still_rearms(scheduler, timers, executor, clock):
    class BrokenSessions:
        def start(self, title, description):
            raise RuntimeError("no audio device")

    delivery = AlarmDeliveryHandler(scheduler, BrokenSessions(), executor)
    timers.set_fire_callback(delivery.on_alarm_fired)
    task = Reminder(
        id="t3",
        title="Walk",
        occurrence_date="2025-01-01",
        source=ReminderSource.TASK,
        kind=ReminderKind.RECURRING,
        alarm_enabled=True,
    )
    scheduler.reconcile([task], Settings())
    assert timers.fire(token_for("t3")).result(timeout=2) is RegistrationOutcome.EXACT
    assert token_for("t3") in timers.pending()


def test_skipped_day_still_rearms_recurring_task(handler, scheduler, timers, sessions, clock):
    task = Reminder(
        id="t4",
        title="Meditate",
        occurrence_date="2025-01-01",
        source=ReminderSource.TASK,
        kind=ReminderKind.RECURRING,
        alarm_enabled=True,
        skipped_dates={"2025-01-02", "2025-01-03"},
    )
    scheduler.reconcile([task], Settings())
    clock.now = datetime(2025, 1, 2, 8, 0, tzinfo=UTC)
    assert timers.fire(token_for("t4")).result(timeout=2) is RegistrationOutcome.EXACT
    assert sessions.active.title == "Task Reminder: Meditate"
    assert timers.armed[token_for("t4")].fire_at_ms == to_epoch_ms(datetime(2025, 1, 3, 8, 0, tzinfo=UTC))
