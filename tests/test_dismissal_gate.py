from signed_alarm.gate import MatchStatus, describe_status, match_status, matches
from signed_alarm.payload import AlarmPayload, decode_payload


def test_exact_match():
    payload = AlarmPayload(message="abc")
    assert matches(payload, "abc")
    assert not matches(payload, "ab")
    assert not matches(payload, "ABC")


def test_trim_applies_to_typed_input_only():
    assert matches(AlarmPayload(message="abc"), " abc ")
    assert not matches(AlarmPayload(message=" abc "), " abc ")


def test_fallback_when_payload_missing():
    assert matches(None, "anything")
    assert not matches(None, "")
    assert not matches(None, "   ")
    assert not matches(None, None)


def test_fallback_for_undecodable_payload():
    payload = decode_payload("not json")
    assert match_status(payload, "x") is MatchStatus.FALLBACK


def test_status_text():
    assert describe_status(match_status(AlarmPayload(message="abc"), "abc")) == "Message matches."
    assert describe_status(match_status(AlarmPayload(message="abc"), "a")) == "Message does not match."
    assert "any message" in describe_status(MatchStatus.FALLBACK)
