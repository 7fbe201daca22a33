from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from threading import Event, Lock, Thread
from typing import Dict, List, Optional

from .platform import DeliveryOptions, PlatformAlarm, RingEvent, RingingSubscription
from .sounds import AlarmSoundPlayer
from .storage import load_alarms, save_alarms

logger = logging.getLogger(__name__)


class LocalAlarmService:
    """In-process alarm service: scheduler thread, JSON persistence, ring sound.

    Alarms are kept by id with replace-on-schedule semantics. Every alarm due
    at the same check is published as one ``RingEvent`` batch to all
    subscribers.
    """

    def __init__(
        self,
        storage_path: Path,
        sound_player: AlarmSoundPlayer,
        check_interval: float = 0.8,
        timezone=None,
    ):
        self.storage_path = storage_path
        self.sound_player = sound_player
        self.check_interval = max(0.2, check_interval)
        self.tzinfo = timezone or datetime.now().astimezone().tzinfo

        self._alarms: Dict[int, PlatformAlarm] = {}
        self._ringing: Dict[int, PlatformAlarm] = {}
        self._subscribers: List[RingingSubscription] = []
        self._lock = Lock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    def start(self) -> None:
        with self._lock:
            self._alarms = {a.id: a for a in load_alarms(self.storage_path)}
        logger.info("Loaded %s alarms from %s", len(self._alarms), self.storage_path)
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="alarm-scheduler", daemon=True)
        self._thread.start()

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
        self.sound_player.stop_loop()
        self._thread = None

    def schedule(self, alarm_id: int, trigger_at: datetime, payload: str, options: DeliveryOptions) -> bool:
        trigger_at = _ensure_tz(trigger_at, self.tzinfo)
        now = datetime.now(self.tzinfo)
        if trigger_at <= now:
            logger.warning("Refusing alarm %s in the past (%s)", alarm_id, trigger_at.isoformat())
            return False
        alarm = PlatformAlarm(id=alarm_id, trigger_at=trigger_at, payload=payload, options=options)
        with self._lock:
            replaced = alarm_id in self._alarms
            alarms = dict(self._alarms)
            alarms[alarm_id] = alarm
            save_alarms(self.storage_path, list(alarms.values()))
            self._alarms = alarms
        logger.info("Alarm %s scheduled for %s (replaced=%s)", alarm_id, trigger_at.isoformat(), replaced)
        return True

    def stop(self, alarm_id: int) -> None:
        with self._lock:
            pending = self._alarms.get(alarm_id)
            if pending is not None:
                alarms = {k: v for k, v in self._alarms.items() if k != alarm_id}
                save_alarms(self.storage_path, list(alarms.values()))
                self._alarms = alarms
            ringing = self._ringing.pop(alarm_id, None)
            still_ringing = bool(self._ringing)
        if ringing is not None and not still_ringing:
            self.sound_player.stop_loop()
        if pending is None and ringing is None:
            logger.debug("Stop for alarm %s ignored, nothing scheduled", alarm_id)
        else:
            logger.info("Alarm %s stopped", alarm_id)

    def pending(self, alarm_id: int) -> Optional[PlatformAlarm]:
        with self._lock:
            return self._alarms.get(alarm_id)

    def ringing(self, alarm_id: int) -> Optional[PlatformAlarm]:
        with self._lock:
            return self._ringing.get(alarm_id)

    def subscribe(self) -> RingingSubscription:
        subscription = RingingSubscription(on_cancel=self._unsubscribe)
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def fire_due(self, now: Optional[datetime] = None) -> List[PlatformAlarm]:
        now = now or datetime.now(self.tzinfo)
        with self._lock:
            due = sorted(
                (a for a in self._alarms.values() if a.trigger_at <= now),
                key=lambda a: a.trigger_at,
            )
            if not due:
                return []
            for alarm in due:
                del self._alarms[alarm.id]
                self._ringing[alarm.id] = alarm
            try:
                save_alarms(self.storage_path, list(self._alarms.values()))
            except (OSError, ValueError) as exc:
                logger.error("Failed to persist fired alarms to %s: %s", self.storage_path, exc)
            subscribers = list(self._subscribers)
        self._ring(due, subscribers)
        return due

    def _unsubscribe(self, subscription: RingingSubscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            if self.fire_due():
                continue
            self._stop_event.wait(self.check_interval)

    def _ring(self, alarms: List[PlatformAlarm], subscribers: List[RingingSubscription]) -> None:
        for alarm in alarms:
            logger.info("Alarm %s triggered at %s", alarm.id, alarm.trigger_at.isoformat())
        options = alarms[0].options
        if options is not None:
            if options.vibrate:
                logger.debug("Vibration requested, not supported by local service")
            self.sound_player.start_loop(options.audio_path, loop=options.loop_audio, volume=options.volume)
        else:
            self.sound_player.start_loop()
        event = RingEvent(alarms=tuple(alarms))
        for subscription in subscribers:
            subscription.publish(event)


def _ensure_tz(dt: datetime, tzinfo) -> datetime:
    if dt.tzinfo:
        return dt.astimezone(tzinfo)
    return dt.replace(tzinfo=tzinfo)
