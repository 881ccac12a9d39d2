import pyaudio

pa = pyaudio.PyAudio()

print("\n=== OUTPUT DEVICES (use with ALERT_OUTPUT_DEVICE_INDEX) ===\n")
for i in range(pa.get_device_count()):
    info = pa.get_device_info_by_index(i)
    if info.get("maxOutputChannels", 0) > 0:
        print(
            f"[OUT] Index {i}: {info['name']} | "
            f"rate={int(info['defaultSampleRate'])} | "
            f"channels={info['maxOutputChannels']}"
        )

pa.terminate()
