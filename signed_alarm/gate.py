"""Dismissal gate guarding the stop action of a ringing alarm."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from .payload import AlarmPayload


class MatchStatus(Enum):
    MATCH = "match"
    FALLBACK = "fallback"
    MISMATCH = "mismatch"


_STATUS_TEXT = {
    MatchStatus.MATCH: "Message matches.",
    MatchStatus.FALLBACK: "Fallback enabled - any message will stop.",
    MatchStatus.MISMATCH: "Message does not match.",
}


def expected_message(payload: Optional[AlarmPayload]) -> str:
    if payload is None:
        return ""
    return payload.message or ""


def match_status(payload: Optional[AlarmPayload], typed_text: Optional[str]) -> MatchStatus:
    """Compare typed input against the armed message.

    The typed text is trimmed, the expected message is not. When the payload
    could not be decoded any non-empty input is accepted, so a corrupted
    record never locks the user out of silencing the alarm.
    """

    expected = expected_message(payload)
    typed = (typed_text or "").strip()
    if expected:
        return MatchStatus.MATCH if typed == expected else MatchStatus.MISMATCH
    return MatchStatus.FALLBACK if typed else MatchStatus.MISMATCH


def matches(payload: Optional[AlarmPayload], typed_text: Optional[str]) -> bool:
    return match_status(payload, typed_text) is not MatchStatus.MISMATCH


def describe_status(status: MatchStatus) -> str:
    return _STATUS_TEXT[status]
