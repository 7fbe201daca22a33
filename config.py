import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _get_env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip() in {"1", "true", "True", "yes", "YES", "y"}


def _get_env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _get_env_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return float(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


@dataclass
class Config:
    log_level: str
    timezone_name: Optional[str]
    alarm_id: int
    alarms_path: Path
    alarm_sound_path: Path
    alarm_check_interval_ms: int
    platform_call_timeout_ms: int
    loop_audio: bool
    vibrate: bool
    volume: float
    volume_enforced: bool
    full_screen_intent: bool
    warning_notification_on_kill: bool
    notification_title: str
    notification_body: str


def load_config(env_path: Optional[Path] = None) -> Config:
    if env_path is None:
        env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    volume = _get_env_float("ALARM_VOLUME", 1.0)
    if not 0.0 <= volume <= 1.0:
        raise ValueError("ALARM_VOLUME must be between 0.0 and 1.0")

    return Config(
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        timezone_name=os.getenv("TIMEZONE") or None,
        alarm_id=_get_env_int("ALARM_ID", 1001),
        alarms_path=Path(os.getenv("ALARM_STORAGE_PATH", "data/alarms.json")),
        alarm_sound_path=Path(os.getenv("ALARM_SOUND_PATH", "data/alarm.wav")),
        alarm_check_interval_ms=_get_env_int("ALARM_CHECK_INTERVAL_MS", 800),
        platform_call_timeout_ms=_get_env_int("PLATFORM_CALL_TIMEOUT_MS", 5000),
        loop_audio=_get_env_bool("ALARM_LOOP_AUDIO", True),
        vibrate=_get_env_bool("ALARM_VIBRATE", True),
        volume=volume,
        volume_enforced=_get_env_bool("ALARM_VOLUME_ENFORCED", True),
        full_screen_intent=_get_env_bool("ALARM_FULL_SCREEN", True),
        warning_notification_on_kill=_get_env_bool("ALARM_WARNING_ON_KILL", False),
        notification_title=os.getenv("ALARM_NOTIFICATION_TITLE", "Alarm ringing"),
        notification_body=os.getenv("ALARM_NOTIFICATION_BODY", "Tap to open and dismiss."),
    )


def setup_logging(log_level: str = "INFO") -> None:
    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    log_path = logs_dir / "signed_alarm.log"
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[file_handler, console_handler],
    )
