import time

import pyaudio

from alarms.sounds import SAMPLE_RATE, build_alert_cycle


def main():
    pa = pyaudio.PyAudio()
    cycle = build_alert_cycle(SAMPLE_RATE)
    stream = pa.open(format=pyaudio.paInt16, channels=1, rate=SAMPLE_RATE, output=True)
    print("Playing alert pattern (3 cycles)...")
    for _ in range(3):
        stream.write(cycle.tobytes())
    stream.stop_stream()
    stream.close()
    pa.terminate()
    time.sleep(0.1)


if __name__ == "__main__":
    main()
