from __future__ import annotations

from enum import Enum


class AlarmError(RuntimeError):
    pass


class PlatformError(AlarmError):
    """Raised by platform alarm services when a request cannot be carried out."""


class StopFailure(AlarmError):
    pass


class InvalidTransition(AlarmError):
    pass


class ArmError(Enum):
    INVALID_INPUT = "invalid_input"
    SERVICE_REJECTED = "service_rejected"
    BUSY = "busy"
