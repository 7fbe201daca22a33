from datetime import time

from signed_alarm.parser import parse_console_command


def test_parse_set_with_message():
    result = parse_console_command("set 07:30 stop-it now")
    assert result
    assert result.action == "set"
    assert result.time_of_day == time(7, 30)
    assert result.message == "stop-it now"


def test_parse_set_with_at_keyword():
    result = parse_console_command("alarm at 6.05 wake")
    assert result.time_of_day == time(6, 5)
    assert result.message == "wake"


def test_parse_set_without_message():
    result = parse_console_command("set 7:30")
    assert result.action == "set"
    assert result.message is None
    assert result.error is None


def test_parse_set_bad_time():
    result = parse_console_command("set 25:00 hi")
    assert result.action == "set"
    assert result.error


def test_parse_other_commands():
    assert parse_console_command("Cancel").action == "cancel"
    assert parse_console_command("status").action == "status"
    assert parse_console_command("quit").action == "quit"
    assert parse_console_command("dance").action == "unknown"
    assert parse_console_command("   ") is None
