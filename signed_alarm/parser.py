from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import time
from typing import Optional

from .occurrence import parse_time_of_day

SET_WORDS = ("set", "arm", "alarm")
CANCEL_WORDS = ("cancel", "disarm")
STATUS_WORDS = ("status", "show", "next")
QUIT_WORDS = ("quit", "exit", "q")


@dataclass
class ConsoleCommand:
    action: str
    time_of_day: Optional[time] = None
    message: Optional[str] = None
    error: Optional[str] = None
    raw_text: str = ""


def parse_console_command(text: str) -> Optional[ConsoleCommand]:
    """Parse one console line such as ``set 07:30 stop-it`` into a command."""

    cleaned = (text or "").strip()
    if not cleaned:
        return None
    head, _, rest = cleaned.partition(" ")
    keyword = head.lower()
    rest = rest.strip()

    if keyword in CANCEL_WORDS:
        return ConsoleCommand(action="cancel", raw_text=cleaned)
    if keyword in STATUS_WORDS:
        return ConsoleCommand(action="status", raw_text=cleaned)
    if keyword in QUIT_WORDS:
        return ConsoleCommand(action="quit", raw_text=cleaned)

    if keyword in SET_WORDS:
        time_match = re.match(r"(?:at\s+)?(\S+)\s*(.*)$", rest, flags=re.IGNORECASE)
        if not time_match:
            return ConsoleCommand(action="set", error="Pick a time for the alarm.", raw_text=cleaned)
        try:
            time_of_day = parse_time_of_day(time_match.group(1))
        except ValueError:
            return ConsoleCommand(
                action="set",
                error=f"Could not read time {time_match.group(1)!r}, use HH:MM.",
                raw_text=cleaned,
            )
        message = time_match.group(2).strip() or None
        return ConsoleCommand(action="set", time_of_day=time_of_day, message=message, raw_text=cleaned)

    return ConsoleCommand(action="unknown", error="Commands: set HH:MM <message>, cancel, status, quit.", raw_text=cleaned)
