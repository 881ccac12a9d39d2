from datetime import datetime

import pytest

from alarms.scheduler import AlarmScheduler
from alarms.session import AlertSessionManager

from fakes import UTC, FakeAudioOutput, FakeSurface, FakeTimerFacility, FakeVibrator, MutableClock


@pytest.fixture
def clock():
    return MutableClock(datetime(2025, 1, 1, 9, 0, tzinfo=UTC))


@pytest.fixture
def timers():
    return FakeTimerFacility()


@pytest.fixture
def scheduler(timers, clock):
    return AlarmScheduler(timers, UTC, clock=clock)


@pytest.fixture
def audio_outputs():
    return []


@pytest.fixture
def vibrator():
    return FakeVibrator()


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def sessions(audio_outputs, vibrator, surface):
    def factory():
        output = FakeAudioOutput()
        audio_outputs.append(output)
        return output

    manager = AlertSessionManager(factory, vibrator, surface, register_atexit=False)
    yield manager
    manager.dismiss_active()
