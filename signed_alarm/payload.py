from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class PayloadError(Enum):
    EMPTY = "empty"
    MALFORMED = "malformed"
    NOT_AN_OBJECT = "not_an_object"
    MISSING_MESSAGE = "missing_message"
    MESSAGE_NOT_TEXT = "message_not_text"
    EMPTY_MESSAGE = "empty_message"


@dataclass(frozen=True)
class AlarmPayload:
    message: str

    def __post_init__(self) -> None:
        if not isinstance(self.message, str) or not self.message:
            raise ValueError("Alarm payload message must be non-empty text")

    def encode(self) -> str:
        return encode_payload(self)

    @classmethod
    def try_decode(cls, text: Any) -> Optional["AlarmPayload"]:
        return decode_payload(text)


@dataclass(frozen=True)
class PayloadParseResult:
    payload: Optional[AlarmPayload] = None
    error: Optional[PayloadError] = None

    @property
    def ok(self) -> bool:
        return self.payload is not None


def encode_payload(payload: AlarmPayload) -> str:
    return json.dumps({"message": payload.message}, ensure_ascii=False)


def parse_payload(text: Any) -> PayloadParseResult:
    """Parse the text carried by a platform alarm record.

    Every failure is reported through ``PayloadParseResult.error``; nothing
    is raised regardless of what ``text`` holds.
    """

    if text is None or text == "":
        return PayloadParseResult(error=PayloadError.EMPTY)
    if not isinstance(text, str):
        return PayloadParseResult(error=PayloadError.MALFORMED)
    try:
        decoded = json.loads(text)
    except (ValueError, RecursionError):
        return PayloadParseResult(error=PayloadError.MALFORMED)

    if not isinstance(decoded, dict):
        return PayloadParseResult(error=PayloadError.NOT_AN_OBJECT)
    if "message" not in decoded:
        return PayloadParseResult(error=PayloadError.MISSING_MESSAGE)
    message = decoded["message"]
    if not isinstance(message, str):
        return PayloadParseResult(error=PayloadError.MESSAGE_NOT_TEXT)
    if not message:
        return PayloadParseResult(error=PayloadError.EMPTY_MESSAGE)
    return PayloadParseResult(payload=AlarmPayload(message=message))


def decode_payload(text: Any) -> Optional[AlarmPayload]:
    result = parse_payload(text)
    if result.error is not None:
        logger.debug("Alarm payload not decoded (reason=%s)", result.error.value)
    return result.payload
