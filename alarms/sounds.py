from __future__ import annotations

import logging
import math
import time
from typing import Iterator, Tuple

import numpy as np

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100
HIT_FREQ_HZ = 70.0
HIT_DURATION_MS = 220
HIT_DECAY = 12.0
HIT_GAIN = 0.8
PAUSE_MS = 900

# Off/on/off milliseconds, repeated from index 0; mirrors the hit + pause rhythm.
VIBRATION_PATTERN_MS: Tuple[int, ...] = (0, 150, 950)


def generate_drum_hit(
    sample_rate: int = SAMPLE_RATE,
    freq: float = HIT_FREQ_HZ,
    duration_ms: int = HIT_DURATION_MS,
    decay: float = HIT_DECAY,
    gain: float = HIT_GAIN,
) -> np.ndarray:
    """Low sine burst with a fast exponential decay, as 16-bit PCM samples."""
    num_samples = sample_rate * duration_ms // 1000
    t = np.arange(num_samples, dtype=np.float64) / sample_rate
    envelope = np.exp(-t * decay)
    wave = np.sin(2 * math.pi * freq * t) * envelope * 32767 * gain
    return np.clip(wave, -32768, 32767).astype(np.int16)


def generate_silence(duration_ms: int, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    return np.zeros(sample_rate * duration_ms // 1000, dtype=np.int16)


def build_alert_cycle(sample_rate: int = SAMPLE_RATE, pause_ms: int = PAUSE_MS) -> np.ndarray:
    """One loop period of the alert: a hit followed by silence."""
    return np.concatenate(
        [generate_drum_hit(sample_rate=sample_rate), generate_silence(pause_ms, sample_rate)]
    )


def iter_chunks(samples: np.ndarray, chunk_samples: int) -> Iterator[bytes]:
    for start in range(0, len(samples), chunk_samples):
        yield samples[start : start + chunk_samples].tobytes()


class AudioOutput:
    """Sink for 16-bit mono PCM. `write` blocks roughly for the chunk's duration."""

    def write(self, chunk: bytes) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class PacedSilentOutput(AudioOutput):
    """Stand-in when audio is disabled: discards samples at real-time pace."""

    def __init__(self, sample_rate: int = SAMPLE_RATE):
        self.sample_rate = sample_rate
        self.closed = False

    def write(self, chunk: bytes) -> None:
        time.sleep(len(chunk) / 2 / self.sample_rate)

    def close(self) -> None:
        self.closed = True


class Vibrator:
    def vibrate(self, pattern_ms: Tuple[int, ...], repeat: bool = True) -> None:
        raise NotImplementedError

    def cancel(self) -> None:
        raise NotImplementedError


class LoggingVibrator(Vibrator):
    """Desktop hosts have no vibration motor; record the pattern instead."""

    def __init__(self) -> None:
        self.active = False

    def vibrate(self, pattern_ms: Tuple[int, ...], repeat: bool = True) -> None:
        self.active = True
        logger.info("Vibration pattern %s (repeat=%s)", pattern_ms, repeat)

    def cancel(self) -> None:
        if self.active:
            logger.info("Vibration cancelled")
        self.active = False
