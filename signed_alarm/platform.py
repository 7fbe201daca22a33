from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from queue import Empty, Queue
from threading import Event
from typing import Callable, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryOptions:
    audio_path: Path
    loop_audio: bool = True
    vibrate: bool = True
    volume: float = 1.0
    volume_enforced: bool = True
    full_screen_intent: bool = True
    warning_notification_on_kill: bool = False
    allow_overlap: bool = False
    notification_title: str = "Alarm ringing"
    notification_body: str = "Tap to open and dismiss."


@dataclass(frozen=True)
class PlatformAlarm:
    id: int
    trigger_at: datetime
    payload: Optional[str] = None
    options: Optional[DeliveryOptions] = None


@dataclass(frozen=True)
class RingEvent:
    alarms: Tuple[PlatformAlarm, ...] = ()


class RingingSubscription:
    """Queue-backed channel carrying ring events from a platform to one consumer."""

    def __init__(self, on_cancel: Optional[Callable[["RingingSubscription"], None]] = None):
        self._queue: "Queue[RingEvent]" = Queue()
        self._on_cancel = on_cancel
        self._cancelled = Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def publish(self, event: RingEvent) -> bool:
        if self._cancelled.is_set():
            return False
        self._queue.put(event)
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[RingEvent]:
        if self._cancelled.is_set():
            return None
        try:
            return self._queue.get(timeout=timeout)
        except Empty:
            return None

    def cancel(self) -> None:
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        if self._on_cancel:
            try:
                self._on_cancel(self)
            except Exception:  # pragma: no cover - callback safety
                logger.error("Ringing subscription cancel callback failed", exc_info=True)


class AlarmPlatform(Protocol):
    def schedule(
        self,
        alarm_id: int,
        trigger_at: datetime,
        payload: str,
        options: DeliveryOptions,
    ) -> bool: ...

    def stop(self, alarm_id: int) -> None: ...

    def pending(self, alarm_id: int) -> Optional[PlatformAlarm]: ...

    def ringing(self, alarm_id: int) -> Optional[PlatformAlarm]: ...

    def subscribe(self) -> RingingSubscription: ...
