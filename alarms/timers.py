from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock, Timer, current_thread
from typing import Callable, Dict, Optional

from .errors import ExactAlarmPermissionDenied, TimerRegistrationFailed
from .models import ScheduleEntry

logger = logging.getLogger(__name__)

FireCallback = Callable[[ScheduleEntry, int], None]


@dataclass(frozen=True)
class PendingTimer:
    token: int
    fire_at_ms: int
    exact: bool
    entry: ScheduleEntry


class TimerFacility:
    """Platform wake-up timers keyed by an integer token.

    Registering a token that is already pending replaces the previous timer.
    Implementations raise ExactAlarmPermissionDenied when `exact` is requested
    without permission and TimerRegistrationFailed for anything else.
    """

    def set_fire_callback(self, callback: FireCallback) -> None:
        raise NotImplementedError

    def register(self, token: int, fire_at_ms: int, entry: ScheduleEntry, exact: bool) -> None:
        raise NotImplementedError

    def cancel(self, token: int) -> None:
        raise NotImplementedError

    def can_schedule_exact(self) -> bool:
        raise NotImplementedError

    def request_exact_permission(self) -> bool:
        raise NotImplementedError

    def pending(self) -> Dict[int, PendingTimer]:
        raise NotImplementedError

    def cancel_everything(self) -> None:
        for token in list(self.pending()):
            self.cancel(token)


class ThreadingTimerFacility(TimerFacility):
    """In-process timers, one `threading.Timer` per token.

    Timers live only as long as the process, which is exactly the loss the
    restart recovery path rebuilds from the reminder store.
    """

    def __init__(self, exact_permitted: bool = True, clock: Callable[[], float] = time.time):
        self._exact_permitted = exact_permitted
        self._clock = clock
        self._callback: Optional[FireCallback] = None
        self._timers: Dict[int, Timer] = {}
        self._pending: Dict[int, PendingTimer] = {}
        self._lock = Lock()

    def set_fire_callback(self, callback: FireCallback) -> None:
        self._callback = callback

    def register(self, token: int, fire_at_ms: int, entry: ScheduleEntry, exact: bool) -> None:
        if exact and not self._exact_permitted:
            raise ExactAlarmPermissionDenied("Exact alarms are not permitted")
        if self._callback is None:
            raise TimerRegistrationFailed("No fire callback bound to the timer facility")
        delay = max(0.0, fire_at_ms / 1000 - self._clock())
        timer = Timer(delay, self._fire, args=(token,))
        timer.daemon = True
        timer.name = f"alarm-timer-{token}"
        with self._lock:
            previous = self._timers.pop(token, None)
            if previous:
                previous.cancel()
            self._timers[token] = timer
            self._pending[token] = PendingTimer(token, fire_at_ms, exact, entry)
        try:
            timer.start()
        except RuntimeError as exc:
            with self._lock:
                self._timers.pop(token, None)
                self._pending.pop(token, None)
            raise TimerRegistrationFailed(f"Could not start timer thread: {exc}") from exc
        logger.debug("Timer %s armed in %.1fs (exact=%s)", token, delay, exact)

    def cancel(self, token: int) -> None:
        with self._lock:
            timer = self._timers.pop(token, None)
            self._pending.pop(token, None)
        if timer:
            timer.cancel()
            logger.debug("Timer %s cancelled", token)

    def cancel_everything(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._pending.clear()
        for timer in timers:
            timer.cancel()

    def can_schedule_exact(self) -> bool:
        return self._exact_permitted

    def request_exact_permission(self) -> bool:
        # Nothing to prompt for in-process; the setting comes from configuration.
        if not self._exact_permitted:
            logger.warning("Exact alarms disabled; set ALARM_EXACT_PERMITTED=true to allow them")
        return self._exact_permitted

    def pending(self) -> Dict[int, PendingTimer]:
        with self._lock:
            return dict(self._pending)

    def _fire(self, token: int) -> None:
        with self._lock:
            # A re-register may have replaced this timer after it started firing.
            if self._timers.get(token) is not current_thread():
                return
            self._timers.pop(token, None)
            pending = self._pending.pop(token, None)
        if pending is None or self._callback is None:
            return
        try:
            self._callback(pending.entry, pending.fire_at_ms)
        except Exception:  # pragma: no cover - callback safety
            logger.error("Alarm fire callback failed for token %s", token, exc_info=True)
