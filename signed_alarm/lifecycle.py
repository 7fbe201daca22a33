from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime, time
from enum import Enum
from threading import Event, RLock, Thread
from typing import Callable, Optional

from . import gate
from .errors import ArmError, InvalidTransition, StopFailure
from .occurrence import next_occurrence
from .payload import AlarmPayload, decode_payload
from .platform import AlarmPlatform, DeliveryOptions, PlatformAlarm, RingEvent, RingingSubscription

logger = logging.getLogger(__name__)

DEFAULT_ALARM_ID = 1001


class LifecycleState(Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RINGING = "ringing"


@dataclass(frozen=True)
class AlarmRecord:
    id: int
    trigger_at: datetime
    payload: Optional[AlarmPayload]
    raw_payload: Optional[str]
    options: DeliveryOptions

    @property
    def message(self) -> Optional[str]:
        return self.payload.message if self.payload else None


@dataclass(frozen=True)
class ScheduledInfo:
    trigger_at: datetime
    payload: AlarmPayload


@dataclass(frozen=True)
class ArmResult:
    scheduled: Optional[ScheduledInfo] = None
    error: Optional[ArmError] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.scheduled is not None


@dataclass(frozen=True)
class LifecycleSnapshot:
    state: LifecycleState
    scheduled_at: Optional[datetime] = None
    message: Optional[str] = None


class AlarmLifecycle:
    """Owns the single alarm slot and serializes every transition on it.

    ``arm``, ``cancel``, ``on_ring``, ``dismiss`` and ``try_dismiss`` are the
    only mutators. Each runs under one lock, including the outbound platform
    call, so no transition observes another one half done.
    """

    def __init__(
        self,
        platform: AlarmPlatform,
        options: DeliveryOptions,
        alarm_id: int = DEFAULT_ALARM_ID,
        call_timeout: float = 5.0,
        poll_interval: float = 0.2,
        clock: Optional[Callable[[], datetime]] = None,
        on_ringing: Optional[Callable[[AlarmRecord], None]] = None,
    ):
        self.platform = platform
        self.options = options
        self.alarm_id = alarm_id
        self.call_timeout = call_timeout
        self.poll_interval = max(0.05, poll_interval)
        self.clock = clock or (lambda: datetime.now().astimezone())
        self.on_ringing = on_ringing

        self._lock = RLock()
        self._state = LifecycleState.IDLE
        self._record: Optional[AlarmRecord] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="alarm-platform")
        self._subscription: Optional[RingingSubscription] = None
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    # Session

    def start(self) -> None:
        if self._subscription is not None:
            raise RuntimeError("Alarm lifecycle already started")
        self._subscription = self.platform.subscribe()
        self._restore_pending()
        self._stop_event.clear()
        self._thread = Thread(target=self._ring_loop, args=(self._subscription,), name="alarm-ringing", daemon=True)
        self._thread.start()
        logger.info("Alarm lifecycle started (id=%s, state=%s)", self.alarm_id, self.state.value)

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._subscription is not None:
            self._subscription.cancel()
        if self._thread:
            self._thread.join(timeout=2)
        self._thread = None
        self._executor.shutdown(wait=False)

    # Read access

    @property
    def state(self) -> LifecycleState:
        with self._lock:
            return self._state

    @property
    def record(self) -> Optional[AlarmRecord]:
        with self._lock:
            return self._record

    @property
    def is_ringing(self) -> bool:
        return self.state is LifecycleState.RINGING

    def snapshot(self) -> LifecycleSnapshot:
        with self._lock:
            record = self._record
            if record is None:
                return LifecycleSnapshot(state=self._state)
            return LifecycleSnapshot(state=self._state, scheduled_at=record.trigger_at, message=record.message)

    def matches(self, typed_text: Optional[str]) -> bool:
        with self._lock:
            payload = self._record.payload if self._record else None
        return gate.matches(payload, typed_text)

    # Transitions

    def arm(self, time_of_day: Optional[time], message: Optional[str]) -> ArmResult:
        text = (message or "").strip()
        if time_of_day is None:
            return ArmResult(error=ArmError.INVALID_INPUT, reason="Pick a time for the alarm.")
        if not text:
            return ArmResult(error=ArmError.INVALID_INPUT, reason="Enter the custom dismissal message.")

        with self._lock:
            if self._state is LifecycleState.RINGING:
                return ArmResult(error=ArmError.BUSY, reason="Dismiss the ringing alarm first.")

            now = self.clock()
            trigger_at = next_occurrence(time_of_day, now)
            payload = AlarmPayload(message=text)
            encoded = payload.encode()
            try:
                accepted = self._call_platform(self.platform.schedule, self.alarm_id, trigger_at, encoded, self.options)
            except FutureTimeout:
                logger.error("Platform schedule timed out after %.1fs", self.call_timeout)
                self._undo_late_schedule()
                accepted = False
            except Exception as exc:
                logger.error("Platform schedule failed: %s", exc)
                accepted = False
            if not accepted:
                logger.warning("Alarm for %s rejected, state stays %s", trigger_at.isoformat(), self._state.value)
                return ArmResult(error=ArmError.SERVICE_REJECTED, reason="Could not schedule the alarm.")

            self._record = AlarmRecord(
                id=self.alarm_id,
                trigger_at=trigger_at,
                payload=payload,
                raw_payload=encoded,
                options=self.options,
            )
            self._set_state(LifecycleState.SCHEDULED)
            logger.info("Alarm armed for %s", trigger_at.isoformat())
            return ArmResult(scheduled=ScheduledInfo(trigger_at=trigger_at, payload=payload))

    def cancel(self) -> None:
        with self._lock:
            if self._state is LifecycleState.IDLE:
                logger.debug("Cancel ignored, no alarm armed")
                return
            alarm_id = self._record.id if self._record else self.alarm_id
            if self._state is LifecycleState.RINGING:
                logger.warning("Cancelling ringing alarm %s without dismissal check", alarm_id)
            self._stop_platform(alarm_id)
            self._clear()
            logger.info("Alarm cancelled")

    def on_ring(self, event: RingEvent) -> Optional[AlarmRecord]:
        with self._lock:
            if self._state is LifecycleState.RINGING:
                logger.debug("Ring event ignored, already ringing")
                return None
            if self._state is LifecycleState.IDLE or self._record is None:
                logger.info("Stale ring event ignored, no alarm armed")
                return None
            if not event.alarms:
                return None

            alarm = next((a for a in event.alarms if a.id == self.alarm_id), None)
            if alarm is not None and not self._is_live(alarm):
                logger.info(
                    "Stale ring event for %s ignored, armed alarm is %s",
                    alarm.trigger_at.isoformat(),
                    self._record.trigger_at.isoformat(),
                )
                return None
            if alarm is None:
                alarm = event.alarms[0]
                logger.warning(
                    "No ringing alarm with id %s in batch of %s, using first (id=%s)",
                    self.alarm_id,
                    len(event.alarms),
                    alarm.id,
                )
            record = AlarmRecord(
                id=alarm.id,
                trigger_at=alarm.trigger_at,
                payload=decode_payload(alarm.payload),
                raw_payload=alarm.payload,
                options=alarm.options or self._record.options,
            )
            if record.payload is None:
                logger.warning("Ringing alarm %s carries no readable message, fallback gate active", alarm.id)
            self._record = record
            self._set_state(LifecycleState.RINGING)

        if self.on_ringing:
            try:
                self.on_ringing(record)
            except Exception:  # pragma: no cover - callback safety
                logger.error("on_ringing callback failed", exc_info=True)
        return record

    def dismiss(self) -> None:
        with self._lock:
            if self._state is not LifecycleState.RINGING or self._record is None:
                raise InvalidTransition(f"Cannot dismiss alarm in state {self._state.value}")
            self._stop_platform(self._record.id)
            self._clear()
            logger.info("Alarm dismissed")

    def try_dismiss(self, typed_text: Optional[str]) -> bool:
        with self._lock:
            if self._state is not LifecycleState.RINGING:
                return False
            if not self.matches(typed_text):
                return False
            self.dismiss()
            return True

    # Internals

    def _set_state(self, state: LifecycleState) -> None:
        if self._state is not state:
            logger.info("Alarm state -> %s", state.value)
        self._state = state

    def _clear(self) -> None:
        self._record = None
        self._set_state(LifecycleState.IDLE)

    def _call_platform(self, fn, *args):
        future = self._executor.submit(fn, *args)
        return future.result(timeout=self.call_timeout)

    def _stop_platform(self, alarm_id: int) -> None:
        try:
            self._call_platform(self.platform.stop, alarm_id)
        except FutureTimeout as exc:
            raise StopFailure(f"Stopping alarm {alarm_id} timed out") from exc
        except Exception as exc:
            raise StopFailure(f"Stopping alarm {alarm_id} failed: {exc}") from exc

    def _is_live(self, alarm: PlatformAlarm) -> bool:
        record = self._record
        return record is not None and alarm.trigger_at == record.trigger_at and alarm.payload == record.raw_payload

    def _undo_late_schedule(self) -> None:
        # Queued behind the timed-out call on the single worker, so it runs after it.
        previous = self._record
        if previous is None:
            future = self._executor.submit(self.platform.stop, self.alarm_id)
        else:
            future = self._executor.submit(
                self.platform.schedule, previous.id, previous.trigger_at, previous.raw_payload, previous.options
            )
        future.add_done_callback(_log_undo_failure)

    def _record_from(self, alarm: PlatformAlarm) -> AlarmRecord:
        return AlarmRecord(
            id=alarm.id,
            trigger_at=alarm.trigger_at,
            payload=decode_payload(alarm.payload),
            raw_payload=alarm.payload,
            options=alarm.options or self.options,
        )

    def _restore_pending(self) -> None:
        # Pending first: an alarm firing between the two queries is still seen as ringing.
        try:
            pending: Optional[PlatformAlarm] = self._call_platform(self.platform.pending, self.alarm_id)
            ringing: Optional[PlatformAlarm] = self._call_platform(self.platform.ringing, self.alarm_id)
        except Exception as exc:
            logger.error("Could not query platform alarm %s: %s", self.alarm_id, exc)
            return
        alarm = ringing or pending
        if alarm is None:
            return
        with self._lock:
            if self._state is not LifecycleState.IDLE:
                return
            record = self._record_from(alarm)
            self._record = record
            self._set_state(LifecycleState.RINGING if ringing else LifecycleState.SCHEDULED)
        if ringing is None:
            logger.info("Restored pending alarm for %s", alarm.trigger_at.isoformat())
            return
        logger.warning("Adopted alarm already ringing since %s", alarm.trigger_at.isoformat())
        if self.on_ringing:
            try:
                self.on_ringing(record)
            except Exception:  # pragma: no cover - callback safety
                logger.error("on_ringing callback failed", exc_info=True)

    def _ring_loop(self, subscription: RingingSubscription) -> None:
        while not self._stop_event.is_set() and not subscription.cancelled:
            event = subscription.get(timeout=self.poll_interval)
            if event is None:
                continue
            try:
                self.on_ring(event)
            except Exception:  # pragma: no cover - keep consuming
                logger.error("Ring event handling failed", exc_info=True)


def _log_undo_failure(future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Could not undo timed-out schedule: %s", exc)
