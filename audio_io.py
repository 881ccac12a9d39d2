import logging
from typing import Optional

import pyaudio

from alarms.sounds import AudioOutput

logger = logging.getLogger(__name__)


def create_pyaudio() -> pyaudio.PyAudio:
    pa = pyaudio.PyAudio()
    return pa


def describe_output_device(pa: pyaudio.PyAudio, device_index: Optional[int]) -> str:
    if device_index is None:
        device_index = int(pa.get_default_output_device_info()["index"])
    info = pa.get_device_info_by_index(device_index)
    return f"{device_index}: {info.get('name', 'unknown')} (rate={int(info.get('defaultSampleRate', 0))})"


class PyAudioOutput(AudioOutput):
    """Blocking 16-bit mono output stream; one per alert session."""

    def __init__(self, pa: pyaudio.PyAudio, rate: int, device_index: Optional[int] = None):
        self.pa = pa
        self.rate = rate
        self.stream = self.pa.open(
            format=pyaudio.paInt16,
            channels=1,
            rate=self.rate,
            output=True,
            output_device_index=device_index,
        )

    def write(self, chunk: bytes) -> None:
        if self.stream is None:
            raise RuntimeError("Audio output stream is closed")
        self.stream.write(chunk)

    def close(self) -> None:
        if self.stream is None:
            return
        self.stream.stop_stream()
        self.stream.close()
        self.stream = None
