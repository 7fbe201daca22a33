from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    if name:
        try:
            return ZoneInfo(name)
        except Exception as exc:  # pragma: no cover - environment-dependent
            logger.warning("Failed to load timezone %s via zoneinfo (%s)", name, exc)
    local_tz = datetime.now().astimezone().tzinfo
    if name and local_tz:
        logger.warning("Using system local timezone instead: %s", getattr(local_tz, "key", local_tz))
    return local_tz


def now_in_tz(tz) -> datetime:
    if tz:
        return datetime.now(tz)
    return datetime.now().astimezone()


def format_tz_offset(tz) -> str:
    sample = now_in_tz(tz)
    offset = sample.utcoffset()
    if offset is None:
        return ""
    total_minutes = int(offset.total_seconds() // 60)
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def format_datetime(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M")
