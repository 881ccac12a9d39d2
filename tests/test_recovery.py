from datetime import timedelta

from alarms.models import Reminder, ReminderKind, ReminderSource, Settings
from alarms.recovery import RecoveryTrigger
from alarms.scheduler import token_for
from alarms.storage import JsonReminderStore
from time_utils import to_epoch_ms


def _store_with(tmp_path, clock, count, settings=None):
    store = JsonReminderStore(tmp_path / "routine_os.json")
    reminders = [
        Reminder(
            id=f"e{i}",
            title=f"Event {i}",
            occurrence_date="2025-01-01",
            alarm_enabled=True,
            alarm_timestamp=to_epoch_ms(clock.now + timedelta(hours=i + 1)),
        )
        for i in range(count)
    ]
    reminders.append(
        Reminder(
            id="old",
            title="Yesterday",
            occurrence_date="2024-12-31",
            alarm_enabled=True,
            alarm_timestamp=to_epoch_ms(clock.now - timedelta(days=1)),
        )
    )
    reminders.append(
        Reminder(
            id="quiet",
            title="No alarm",
            occurrence_date="2025-01-01",
            source=ReminderSource.TASK,
            kind=ReminderKind.RECURRING,
            alarm_enabled=False,
        )
    )
    store.save_reminders(reminders)
    store.save_settings(settings or Settings())
    return store


def test_restart_arms_every_future_enabled_reminder(tmp_path, scheduler, timers, clock):
    store = _store_with(tmp_path, clock, 4)
    report = RecoveryTrigger(store, scheduler).on_system_restart()
    assert sorted(report.armed_ids) == ["e0", "e1", "e2", "e3"]
    assert set(timers.pending()) == {token_for(f"e{i}") for i in range(4)}


def test_repeated_restart_signal_is_harmless(tmp_path, scheduler, timers, clock):
    store = _store_with(tmp_path, clock, 3)
    trigger = RecoveryTrigger(store, scheduler)
    trigger.on_system_restart()
    trigger.on_system_restart()
    assert len(timers.pending()) == 3
    assert timers.interleaved == []


def test_restart_with_alarms_disabled_arms_nothing(tmp_path, scheduler, timers, clock):
    store = _store_with(tmp_path, clock, 3, settings=Settings(alarms_enabled=False))
    report = RecoveryTrigger(store, scheduler).on_system_restart()
    assert report.armed == []
    assert timers.pending() == {}


def test_unreadable_store_is_logged_not_raised(tmp_path, scheduler, timers, caplog):
    path = tmp_path / "routine_os.json"
    path.write_text("{not json", encoding="utf-8")
    report = RecoveryTrigger(JsonReminderStore(path), scheduler).on_system_restart()
    assert report is None
    assert timers.calls == []
    assert "Cannot restore alarms" in caplog.text
