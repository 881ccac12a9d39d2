from __future__ import annotations

import atexit
import logging
from enum import Enum
from threading import Event, Lock, Thread
from typing import Callable, Optional

from .sounds import (
    SAMPLE_RATE,
    VIBRATION_PATTERN_MS,
    AudioOutput,
    Vibrator,
    build_alert_cycle,
    iter_chunks,
)

logger = logging.getLogger(__name__)

CHUNK_MS = 50


class SessionState(str, Enum):
    IDLE = "idle"
    SOUNDING = "sounding"
    DISMISSED = "dismissed"


class AlertSurface:
    """Persistent user-facing alert with a single dismiss action."""

    def show(self, title: str, description: str, on_dismiss: Callable[[], None]) -> None:
        raise NotImplementedError

    def hide(self) -> None:
        raise NotImplementedError


class ConsoleAlertSurface(AlertSurface):
    def __init__(self) -> None:
        self.visible = False
        self.on_dismiss: Optional[Callable[[], None]] = None

    def show(self, title: str, description: str, on_dismiss: Callable[[], None]) -> None:
        self.visible = True
        self.on_dismiss = on_dismiss
        logger.warning("ALARM: %s %s", title, f"- {description}" if description else "")
        logger.warning("Type 'dismiss' and press Enter to stop the alarm")

    def hide(self) -> None:
        self.visible = False
        self.on_dismiss = None


class AlertSession:
    """One fired alarm: surface, looping audio and vibration until dismissed."""

    def __init__(
        self,
        title: str,
        description: str,
        audio: AudioOutput,
        vibrator: Vibrator,
        surface: AlertSurface,
        sample_rate: int = SAMPLE_RATE,
        stop_timeout: float = 0.5,
    ):
        self.title = title
        self.description = description
        self.audio = audio
        self.vibrator = vibrator
        self.surface = surface
        self.sample_rate = sample_rate
        self.stop_timeout = stop_timeout
        self.state = SessionState.IDLE
        self.resources_released = False
        self._stop_event = Event()
        self._released = Event()
        self._lock = Lock()
        self._thread: Optional[Thread] = None

    def start(self) -> None:
        with self._lock:
            if self.state is not SessionState.IDLE:
                raise RuntimeError(f"Cannot start alert session in state {self.state.value}")
            self.state = SessionState.SOUNDING
        self.surface.show(self.title, self.description, self.dismiss)
        self.vibrator.vibrate(VIBRATION_PATTERN_MS, repeat=True)
        self._thread = Thread(target=self._audio_loop, name="alert-audio", daemon=True)
        self._thread.start()
        logger.info("Alert session started: %s", self.title)

    def dismiss(self) -> None:
        """Stop the alert. Later callers block until the first teardown is done."""
        with self._lock:
            already_dismissed = self.state is SessionState.DISMISSED
            was_sounding = self.state is SessionState.SOUNDING
            self.state = SessionState.DISMISSED
        if already_dismissed:
            self._released.wait()
            return
        try:
            self._stop_event.set()
            if self._thread is not None:
                self._thread.join(timeout=self.stop_timeout)
                if self._thread.is_alive():
                    logger.warning("Alert audio thread did not stop within %.1fs", self.stop_timeout)
            try:
                self.audio.close()
            except Exception:
                logger.error("Failed to close alert audio output", exc_info=True)
            self.vibrator.cancel()
            if was_sounding:
                self.surface.hide()
            self.resources_released = True
        finally:
            self._released.set()
        logger.info("Alert session dismissed: %s", self.title)

    @property
    def is_sounding(self) -> bool:
        return self.state is SessionState.SOUNDING

    def _audio_loop(self) -> None:
        cycle = build_alert_cycle(sample_rate=self.sample_rate)
        chunk_samples = self.sample_rate * CHUNK_MS // 1000
        try:
            while not self._stop_event.is_set():
                for chunk in iter_chunks(cycle, chunk_samples):
                    if self._stop_event.is_set():
                        return
                    self.audio.write(chunk)
        except Exception:  # pragma: no cover - device errors
            logger.error("Alert audio loop failed", exc_info=True)


class AlertSessionManager:
    """Keeps at most one session sounding; a new alert supersedes the current one."""

    def __init__(
        self,
        audio_factory: Callable[[], AudioOutput],
        vibrator: Vibrator,
        surface: AlertSurface,
        sample_rate: int = SAMPLE_RATE,
        stop_timeout: float = 0.5,
        register_atexit: bool = True,
    ):
        self.audio_factory = audio_factory
        self.vibrator = vibrator
        self.surface = surface
        self.sample_rate = sample_rate
        self.stop_timeout = stop_timeout
        self._active: Optional[AlertSession] = None
        self._lock = Lock()
        if register_atexit:
            atexit.register(self.dismiss_active)

    @property
    def active(self) -> Optional[AlertSession]:
        with self._lock:
            return self._active

    def start(self, title: str, description: str) -> AlertSession:
        with self._lock:
            previous = self._active
            if previous is not None:
                if previous.is_sounding:
                    logger.info("Superseding alert session %r with %r", previous.title, title)
                # Waits out a teardown already running on another thread; the
                # surface and vibrator are shared with the new session.
                previous.dismiss()
            session = AlertSession(
                title,
                description,
                audio=self.audio_factory(),
                vibrator=self.vibrator,
                surface=self.surface,
                sample_rate=self.sample_rate,
                stop_timeout=self.stop_timeout,
            )
            self._active = session
            session.start()
            return session

    def dismiss_active(self) -> Optional[AlertSession]:
        with self._lock:
            session = self._active
            self._active = None
        if session is not None:
            session.dismiss()
        return session
