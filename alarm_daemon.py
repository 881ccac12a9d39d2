import logging
import signal
import sys
import threading
from typing import Callable

from alarms.errors import PersistenceUnavailable
from alarms.manager import AlarmManager
from alarms.scheduler import AlarmScheduler
from alarms.session import AlertSessionManager, ConsoleAlertSurface
from alarms.sounds import AudioOutput, LoggingVibrator, PacedSilentOutput
from alarms.storage import JsonReminderStore
from alarms.timers import ThreadingTimerFacility
from config import Config, load_config, setup_logging
from time_utils import format_tz_offset, from_epoch_ms, resolve_timezone

logger = logging.getLogger("alarm_daemon")

_stop = threading.Event()
_restart = threading.Event()


def graceful_exit(signum, frame) -> None:  # pragma: no cover - signal handler
    logger.info("Shutting down (signal %s)", signum)
    _stop.set()


def request_restore(signum, frame) -> None:  # pragma: no cover - signal handler
    logger.info("Restart signal %s received, restoring alarms", signum)
    _restart.set()


def build_audio_factory(config: Config) -> Callable[[], AudioOutput]:
    if not config.alert_audio_enabled:
        logger.info("Alert audio disabled; alarms will only vibrate and log")
        return lambda: PacedSilentOutput(config.alert_sample_rate)

    # PyAudio is only needed when audio is on.
    from audio_io import PyAudioOutput, create_pyaudio, describe_output_device

    pa = create_pyaudio()
    logger.info("Alert output device %s", describe_output_device(pa, config.alert_output_device_index))
    return lambda: PyAudioOutput(pa, config.alert_sample_rate, config.alert_output_device_index)


def build_manager(config: Config) -> AlarmManager:
    tzinfo = resolve_timezone(config.timezone_name)
    logger.info("Using timezone %s (UTC%s)", getattr(tzinfo, "key", tzinfo), format_tz_offset(tzinfo))
    timers = ThreadingTimerFacility(exact_permitted=config.exact_alarms_permitted)
    scheduler = AlarmScheduler(timers, tzinfo, recurring_task_hour=config.recurring_task_hour)
    sessions = AlertSessionManager(
        build_audio_factory(config),
        vibrator=LoggingVibrator(),
        surface=ConsoleAlertSurface(),
        sample_rate=config.alert_sample_rate,
        stop_timeout=config.alert_stop_timeout_s,
    )
    store = JsonReminderStore(config.data_path)
    return AlarmManager(store, scheduler, sessions, workers=config.alarm_workers)


def print_status(manager: AlarmManager) -> None:
    pending = manager.scheduler.timers.pending()
    if not pending:
        logger.info("No alarms armed")
    for timer in sorted(pending.values(), key=lambda t: t.fire_at_ms):
        when = from_epoch_ms(timer.fire_at_ms, manager.scheduler.tzinfo)
        logger.info(
            "%s %s (%s)%s",
            when.strftime("%Y-%m-%d %H:%M"),
            timer.entry.title,
            timer.entry.reminder_id,
            "" if timer.exact else " [inexact]",
        )


def command_loop(manager: AlarmManager) -> None:
    for line in sys.stdin:
        command = line.strip().lower()
        if command in {"d", "dismiss"}:
            manager.dismiss_active_alert()
        elif command in {"r", "reschedule"}:
            try:
                manager.reschedule_all_alarms()
            except PersistenceUnavailable as exc:
                logger.error("Reschedule failed: %s", exc)
        elif command in {"s", "status"}:
            print_status(manager)
        elif command in {"q", "quit"}:
            _stop.set()
            return
        elif command:
            logger.info("Commands: dismiss, reschedule, status, quit")


def main() -> None:
    config = load_config()
    setup_logging(config.log_level)
    logger.info("Starting alarm daemon (data=%s)", config.data_path)
    signal.signal(signal.SIGINT, graceful_exit)
    signal.signal(signal.SIGTERM, graceful_exit)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, request_restore)

    manager = build_manager(config)
    if not manager.can_schedule_exact_alarms():
        manager.request_exact_alarm_permission()
    manager.start()
    print_status(manager)

    threading.Thread(target=command_loop, args=(manager,), name="alarm-commands", daemon=True).start()
    try:
        while not _stop.wait(0.5):
            if _restart.is_set():
                _restart.clear()
                manager.on_system_restart()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        manager.shutdown()


if __name__ == "__main__":
    main()
