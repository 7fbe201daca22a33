import time as systime
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from signed_alarm.lifecycle import AlarmLifecycle, LifecycleState
from signed_alarm.platform import DeliveryOptions, PlatformAlarm
from signed_alarm.service import LocalAlarmService
from signed_alarm.storage import alarm_from_dict, alarm_to_dict, load_alarms, save_alarms


class FakeSoundPlayer:
    def __init__(self):
        self.started = []
        self.stops = 0

    def start_loop(self, sound_path=None, loop=True, volume=1.0):
        self.started.append((sound_path, loop, volume))

    def stop_loop(self):
        self.stops += 1


@pytest.fixture
def sound_player():
    return FakeSoundPlayer()


@pytest.fixture
def service(tmp_path, sound_player):
    return LocalAlarmService(tmp_path / "alarms.json", sound_player, timezone=timezone.utc)


def _future(minutes=60) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


def _wait_for(predicate, timeout=2.0):
    deadline = systime.time() + timeout
    while systime.time() < deadline:
        if predicate():
            return True
        systime.sleep(0.01)
    return predicate()


def test_schedule_rejects_past(service, options):
    assert not service.schedule(1001, datetime.now(timezone.utc) - timedelta(seconds=1), "{}", options)
    assert service.pending(1001) is None


def test_schedule_replaces_by_id(service, options):
    first = _future(30)
    second = _future(90)
    assert service.schedule(1001, first, '{"message": "a"}', options)
    assert service.schedule(1001, second, '{"message": "b"}', options)
    pending = service.pending(1001)
    assert pending.trigger_at == second
    assert pending.payload == '{"message": "b"}'
    assert len(load_alarms(service.storage_path)) == 1


def test_failed_save_leaves_schedule_unchanged(service, options, monkeypatch):
    first = _future(30)
    assert service.schedule(1001, first, '{"message": "a"}', options)

    def broken_save(path, alarms):
        raise OSError("disk full")

    monkeypatch.setattr("signed_alarm.service.save_alarms", broken_save)
    with pytest.raises(OSError):
        service.schedule(1001, _future(90), '{"message": "b"}', options)
    with pytest.raises(OSError):
        service.schedule(7, _future(90), '{"message": "c"}', options)

    assert service.pending(1001).trigger_at == first
    assert service.pending(7) is None
    assert [a.payload for a in load_alarms(service.storage_path)] == ['{"message": "a"}']


def test_failed_save_keeps_previous_file(tmp_path, options):
    path = tmp_path / "alarms.json"
    kept = PlatformAlarm(id=1001, trigger_at=_future(), payload='{"message": "a"}', options=options)
    save_alarms(path, [kept])

    unencodable = PlatformAlarm(id=1001, trigger_at=_future(), payload="\ud800", options=options)
    with pytest.raises(UnicodeEncodeError):
        save_alarms(path, [unencodable])

    assert load_alarms(path) == [kept]
    assert list(tmp_path.glob("*.tmp")) == []


def test_stop_unknown_id_is_noop(service, sound_player):
    service.stop(42)
    assert sound_player.stops == 0


def test_stop_removes_pending(service, options):
    service.schedule(1001, _future(), '{"message": "a"}', options)
    service.stop(1001)
    assert service.pending(1001) is None
    assert load_alarms(service.storage_path) == []


def test_fire_due_publishes_batch(service, sound_player, options):
    trigger = _future(5)
    service.schedule(1001, trigger, '{"message": "a"}', options)
    service.schedule(7, _future(10), '{"message": "b"}', options)
    subscription = service.subscribe()

    assert service.fire_due(trigger - timedelta(seconds=1)) == []
    fired = service.fire_due(trigger + timedelta(minutes=10))

    assert [a.id for a in fired] == [1001, 7]
    event = subscription.get(timeout=0.1)
    assert [a.id for a in event.alarms] == [1001, 7]
    assert sound_player.started == [(options.audio_path, True, 1.0)]
    assert service.pending(1001) is None


def test_stop_silences_after_last_ringing(service, sound_player, options):
    trigger = _future(5)
    service.schedule(1001, trigger, "{}", options)
    service.schedule(7, trigger, "{}", options)
    service.fire_due(trigger)
    service.stop(1001)
    assert sound_player.stops == 0
    service.stop(7)
    assert sound_player.stops == 1


def test_cancelled_subscription_gets_nothing(service, options):
    trigger = _future(5)
    service.schedule(1001, trigger, "{}", options)
    subscription = service.subscribe()
    subscription.cancel()
    service.fire_due(trigger)
    assert subscription.get(timeout=0.05) is None


def test_pending_survives_restart(tmp_path, sound_player, options):
    path = tmp_path / "alarms.json"
    trigger = _future()
    LocalAlarmService(path, sound_player, timezone=timezone.utc).schedule(1001, trigger, '{"message": "a"}', options)

    restarted = LocalAlarmService(path, sound_player, timezone=timezone.utc)
    restarted.start()
    try:
        pending = restarted.pending(1001)
    finally:
        restarted.shutdown()
    assert pending.trigger_at == trigger
    assert pending.options == options


def test_alarm_dict_round_trip():
    alarm = PlatformAlarm(
        id=1001,
        trigger_at=datetime(2026, 3, 10, 7, 30, tzinfo=timezone.utc),
        payload='{"message": "a"}',
        options=DeliveryOptions(audio_path=Path("data/alarm.wav"), vibrate=False),
    )
    assert alarm_from_dict(alarm_to_dict(alarm)) == alarm


def test_load_skips_broken_records(tmp_path):
    path = tmp_path / "alarms.json"
    path.write_text('[{"id": 1}, {"id": 2, "trigger_at": "2026-03-10T07:30:00+00:00"}]', encoding="utf-8")
    alarms = load_alarms(path)
    assert [a.id for a in alarms] == [2]


def test_restart_after_trigger_time_adopts_ringing_alarm(tmp_path, sound_player, options):
    path = tmp_path / "alarms.json"
    trigger = datetime.now(timezone.utc) - timedelta(minutes=5)
    save_alarms(path, [PlatformAlarm(id=1001, trigger_at=trigger, payload='{"message": "stop-it"}', options=options)])

    service = LocalAlarmService(path, sound_player, timezone=timezone.utc)
    service.start()
    lc = AlarmLifecycle(platform=service, options=options, call_timeout=1.0)
    try:
        assert _wait_for(lambda: service.ringing(1001) is not None)
        lc.start()
        assert lc.state is LifecycleState.RINGING
        assert lc.record.message == "stop-it"

        assert lc.try_dismiss("stop-it")
        assert lc.state is LifecycleState.IDLE
        assert service.ringing(1001) is None
        assert sound_player.stops >= 1
    finally:
        lc.shutdown()
        service.shutdown()
