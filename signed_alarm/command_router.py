from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from time_utils import format_datetime

from .errors import StopFailure
from .gate import describe_status, match_status
from .lifecycle import AlarmLifecycle, LifecycleState
from .parser import parse_console_command

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    handled: bool
    response_text: Optional[str] = None
    action: Optional[str] = None
    quit: bool = False


class CommandRouter:
    """Turns console input into lifecycle calls and transient status lines.

    While the alarm rings every line is a dismissal attempt; the set and
    cancel commands are unavailable until it is dismissed.
    """

    def __init__(self, lifecycle: AlarmLifecycle):
        self.lifecycle = lifecycle

    def handle_text(self, text: str) -> CommandResult:
        if self.lifecycle.is_ringing:
            return self.handle_dismissal(text)

        parsed = parse_console_command(text)
        if not parsed:
            return CommandResult(handled=False)
        logger.debug("Console command: %s", parsed)

        if parsed.error:
            return CommandResult(handled=True, response_text=parsed.error, action=parsed.action)

        if parsed.action == "quit":
            return CommandResult(handled=True, action="quit", quit=True)

        if parsed.action == "status":
            return CommandResult(handled=True, response_text=self.describe(), action="status")

        if parsed.action == "cancel":
            if self.lifecycle.state is LifecycleState.IDLE:
                return CommandResult(handled=True, response_text="No alarm to cancel.", action="cancel")
            try:
                self.lifecycle.cancel()
            except StopFailure as exc:
                logger.error("Cancel failed: %s", exc)
                return CommandResult(handled=True, response_text="Could not cancel the alarm.", action="cancel")
            return CommandResult(handled=True, response_text="Alarm cancelled.", action="cancel")

        if parsed.action == "set":
            result = self.lifecycle.arm(parsed.time_of_day, parsed.message)
            if not result.ok:
                return CommandResult(handled=True, response_text=result.reason, action="set")
            resp = f"Alarm scheduled for {format_datetime(result.scheduled.trigger_at)}."
            return CommandResult(handled=True, response_text=resp, action="set")

        return CommandResult(handled=True, action=parsed.action)

    def handle_dismissal(self, typed_text: str) -> CommandResult:
        record = self.lifecycle.record
        status = match_status(record.payload if record else None, typed_text)
        feedback = describe_status(status)
        try:
            dismissed = self.lifecycle.try_dismiss(typed_text)
        except StopFailure as exc:
            logger.error("Dismissal failed: %s", exc)
            return CommandResult(handled=True, response_text="Could not stop the alarm, try again.", action="dismiss")
        if dismissed:
            return CommandResult(handled=True, response_text=f"{feedback} Alarm dismissed.", action="dismiss")
        return CommandResult(handled=True, response_text=feedback, action="dismiss")

    def describe(self) -> str:
        snapshot = self.lifecycle.snapshot()
        if snapshot.state is LifecycleState.IDLE or snapshot.scheduled_at is None:
            return "No alarm set."
        message = "Message saved." if snapshot.message is None else f"Message: {snapshot.message}"
        line = f"Next alarm: {format_datetime(snapshot.scheduled_at)}. {message}"
        if snapshot.state is LifecycleState.RINGING:
            line += " Alarm is ringing - complete the dismissal message."
        return line
