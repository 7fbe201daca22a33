from datetime import datetime, timezone
from pathlib import Path

import pytest

from signed_alarm.lifecycle import AlarmLifecycle
from signed_alarm.platform import DeliveryOptions, RingingSubscription

NOW = datetime(2026, 3, 10, 7, 0, tzinfo=timezone.utc)


class FakePlatform:
    def __init__(self):
        self.accept = True
        self.schedule_error = None
        self.stop_error = None
        self.pending_alarm = None
        self.ringing_alarm = None
        self.scheduled = []
        self.stopped = []
        self.subscriptions = []

    def schedule(self, alarm_id, trigger_at, payload, options):
        if self.schedule_error:
            raise self.schedule_error
        self.scheduled.append((alarm_id, trigger_at, payload, options))
        return self.accept

    def stop(self, alarm_id):
        if self.stop_error:
            raise self.stop_error
        self.stopped.append(alarm_id)

    def pending(self, alarm_id):
        return self.pending_alarm

    def ringing(self, alarm_id):
        return self.ringing_alarm

    def subscribe(self):
        subscription = RingingSubscription()
        self.subscriptions.append(subscription)
        return subscription


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def options():
    return DeliveryOptions(audio_path=Path("assets/alarm.wav"))


@pytest.fixture
def lifecycle(platform, options, now):
    lc = AlarmLifecycle(platform=platform, options=options, call_timeout=1.0, clock=lambda: now)
    yield lc
    lc.shutdown()
