from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import List

from .platform import DeliveryOptions, PlatformAlarm

logger = logging.getLogger(__name__)


def alarm_to_dict(alarm: PlatformAlarm) -> dict:
    options = None
    if alarm.options is not None:
        options = asdict(alarm.options)
        options["audio_path"] = str(alarm.options.audio_path)
    return {
        "id": alarm.id,
        "trigger_at": alarm.trigger_at.isoformat(),
        "payload": alarm.payload,
        "options": options,
    }


def alarm_from_dict(data: dict) -> PlatformAlarm:
    trigger_raw = data.get("trigger_at")
    if "id" not in data or not trigger_raw:
        raise ValueError("Alarm record missing id/trigger_at fields")
    options_raw = data.get("options")
    options = None
    if options_raw:
        options_raw = dict(options_raw)
        options_raw["audio_path"] = Path(options_raw["audio_path"])
        options = DeliveryOptions(**options_raw)
    payload = data.get("payload")
    return PlatformAlarm(
        id=int(data["id"]),
        trigger_at=datetime.fromisoformat(trigger_raw),
        payload=payload if isinstance(payload, str) else None,
        options=options,
    )


def load_alarms(path: Path) -> List[PlatformAlarm]:
    if not path.exists():
        return []
    try:
        with path.open("r", encoding="utf-8") as f:
            records = json.load(f)
    except Exception as exc:  # pragma: no cover - corrupted file
        logger.error("Failed to load alarms from %s: %s", path, exc)
        return []
    alarms: List[PlatformAlarm] = []
    for item in records or []:
        try:
            alarms.append(alarm_from_dict(item))
        except Exception as exc:
            logger.warning("Skipping alarm record due to parse error: %s", exc)
    return alarms


def save_alarms(path: Path, alarms: List[PlatformAlarm]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    serializable = [alarm_to_dict(a) for a in alarms]
    fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(serializable, f, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
