from __future__ import annotations

import logging
import wave
from pathlib import Path
from threading import Event, Thread
from typing import Optional

import numpy as np

try:
    import winsound
except ImportError:  # pragma: no cover - non-Windows fallback
    winsound = None  # type: ignore

try:  # Optional audio output outside Windows
    import pyaudio
except ImportError:  # pragma: no cover - optional
    pyaudio = None  # type: ignore

logger = logging.getLogger(__name__)

SAMPLE_RATE = 24000


def ensure_alarm_sound(path: Path, duration_seconds: float = 1.5) -> None:
    if path.exists():
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    freq = 880.0
    amplitude = 0.4
    t = np.arange(int(duration_seconds * SAMPLE_RATE)) / SAMPLE_RATE
    samples = (32767 * amplitude * np.sin(2 * np.pi * freq * t)).astype(np.int16)
    with wave.open(str(path), "w") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(SAMPLE_RATE)
        wav.writeframes(samples.tobytes())
    logger.info("Generated default alarm sound at %s", path)


def scale_volume(frames: bytes, volume: float) -> bytes:
    if volume >= 1.0:
        return frames
    samples = np.frombuffer(frames, dtype=np.int16).astype(np.float32)
    return (samples * max(0.0, volume)).astype(np.int16).tobytes()


class AlarmSoundPlayer:
    def __init__(self, default_sound_path: Path):
        self.default_sound_path = default_sound_path
        self._stop_event = Event()
        self._loop_thread: Optional[Thread] = None

    def start_loop(self, sound_path: Optional[Path] = None, loop: bool = True, volume: float = 1.0) -> None:
        path = sound_path or self.default_sound_path
        ensure_alarm_sound(path)
        self._stop_event.clear()
        if winsound:
            flags = winsound.SND_FILENAME | winsound.SND_ASYNC
            if loop:
                flags |= winsound.SND_LOOP
            try:
                winsound.PlaySound(str(path), flags)
                return
            except RuntimeError:
                logger.warning("winsound.PlaySound failed, falling back to playback loop")

        if self._loop_thread and self._loop_thread.is_alive():
            return
        self._loop_thread = Thread(
            target=self._play_loop, args=(path, loop, volume), name="alarm-sound", daemon=True
        )
        self._loop_thread.start()

    def stop_loop(self) -> None:
        self._stop_event.set()
        if winsound:
            try:
                winsound.PlaySound(None, winsound.SND_PURGE)
            except RuntimeError:
                logger.debug("winsound.PlaySound purge failed")

    def _play_loop(self, path: Path, loop: bool, volume: float) -> None:  # pragma: no cover - audio device loop
        if pyaudio is None:
            while not self._stop_event.is_set():
                logger.info("Alarm ringing...")
                if not loop:
                    return
                self._stop_event.wait(0.75)
            return

        with wave.open(str(path), "rb") as wav:
            rate = wav.getframerate()
            channels = wav.getnchannels()
            frames = scale_volume(wav.readframes(wav.getnframes()), volume)
        pa = pyaudio.PyAudio()
        stream = pa.open(format=pyaudio.paInt16, channels=channels, rate=rate, output=True)
        chunk = rate * channels * 2 // 10
        try:
            while not self._stop_event.is_set():
                for offset in range(0, len(frames), chunk):
                    if self._stop_event.is_set():
                        break
                    stream.write(frames[offset : offset + chunk])
                if not loop:
                    break
                self._stop_event.wait(0.25)
        except OSError as exc:
            logger.error("Alarm sound playback failed: %s", exc)
        finally:
            stream.stop_stream()
            stream.close()
            pa.terminate()
