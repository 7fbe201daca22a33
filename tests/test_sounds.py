import wave

import numpy as np

from signed_alarm.sounds import SAMPLE_RATE, ensure_alarm_sound, scale_volume


def test_generates_missing_sound(tmp_path):
    path = tmp_path / "sounds" / "alarm.wav"
    ensure_alarm_sound(path, duration_seconds=0.5)
    with wave.open(str(path), "rb") as wav:
        assert wav.getframerate() == SAMPLE_RATE
        assert wav.getnframes() == SAMPLE_RATE // 2


def test_existing_sound_untouched(tmp_path):
    path = tmp_path / "alarm.wav"
    path.write_bytes(b"custom")
    ensure_alarm_sound(path)
    assert path.read_bytes() == b"custom"


def test_scale_volume():
    frames = np.array([1000, -2000], dtype=np.int16).tobytes()
    assert scale_volume(frames, 1.0) == frames
    halved = np.frombuffer(scale_volume(frames, 0.5), dtype=np.int16)
    assert halved.tolist() == [500, -1000]
