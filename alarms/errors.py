from __future__ import annotations


class AlarmError(Exception):
    """Base class for alarm subsystem failures."""


class ExactAlarmPermissionDenied(AlarmError):
    """The timer facility refused an exact wake-up."""


class TimerRegistrationFailed(AlarmError):
    """The timer facility could not register a wake-up for other reasons."""


class PersistenceUnavailable(AlarmError):
    """The reminder store could not be read."""
