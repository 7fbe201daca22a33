from __future__ import annotations

import re
from datetime import datetime, time, timedelta, timezone

_TIME_RE = re.compile(r"^\s*(\d{1,2})[:.](\d{2})\s*$")


def parse_time_of_day(text: str) -> time:
    match = _TIME_RE.match(text or "")
    if not match:
        raise ValueError("time must be HH:MM")
    hour = int(match.group(1))
    minute = int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError("hour/minute out of range")
    return time(hour, minute)


def next_occurrence(time_of_day: time, now: datetime) -> datetime:
    """Return the first instant at ``time_of_day`` strictly after ``now``.

    The candidate keeps ``now``'s tzinfo. Aware values are compared as
    absolute instants so a DST shift cannot yield a result in the past.
    """

    candidate = datetime.combine(now.date(), time(time_of_day.hour, time_of_day.minute), tzinfo=now.tzinfo)
    if not _is_after(candidate, now):
        next_day = now.date() + timedelta(days=1)
        candidate = datetime.combine(next_day, time(time_of_day.hour, time_of_day.minute), tzinfo=now.tzinfo)
    return candidate


def _is_after(candidate: datetime, now: datetime) -> bool:
    if now.tzinfo is None:
        return candidate > now
    return candidate.astimezone(timezone.utc) > now.astimezone(timezone.utc)
