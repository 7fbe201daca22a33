import logging
import signal

from config import Config, load_config, setup_logging
from signed_alarm.command_router import CommandRouter
from signed_alarm.gate import expected_message
from signed_alarm.lifecycle import AlarmLifecycle, AlarmRecord
from signed_alarm.platform import DeliveryOptions
from signed_alarm.service import LocalAlarmService
from signed_alarm.sounds import AlarmSoundPlayer
from time_utils import format_tz_offset, now_in_tz, resolve_timezone

logger = logging.getLogger("signed_alarm")


def graceful_exit(signum, frame) -> None:  # pragma: no cover - signal handler
    logger.info("Shutting down (signal %s)", signum)
    raise KeyboardInterrupt()


def build_delivery_options(config: Config) -> DeliveryOptions:
    return DeliveryOptions(
        audio_path=config.alarm_sound_path,
        loop_audio=config.loop_audio,
        vibrate=config.vibrate,
        volume=config.volume,
        volume_enforced=config.volume_enforced,
        full_screen_intent=config.full_screen_intent,
        warning_notification_on_kill=config.warning_notification_on_kill,
        notification_title=config.notification_title,
        notification_body=config.notification_body,
    )


class ConsoleRuntime:
    def __init__(self, config: Config):
        self.config = config
        self.tzinfo = resolve_timezone(config.timezone_name)

        self.sound_player = AlarmSoundPlayer(config.alarm_sound_path)
        self.service = LocalAlarmService(
            storage_path=config.alarms_path,
            sound_player=self.sound_player,
            check_interval=max(0.2, config.alarm_check_interval_ms / 1000.0),
            timezone=self.tzinfo,
        )
        self.lifecycle = AlarmLifecycle(
            platform=self.service,
            options=build_delivery_options(config),
            alarm_id=config.alarm_id,
            call_timeout=config.platform_call_timeout_ms / 1000.0,
            clock=lambda: now_in_tz(self.tzinfo),
            on_ringing=self._on_ringing,
        )
        self.router = CommandRouter(self.lifecycle)

    def start(self) -> None:
        self.service.start()
        self.lifecycle.start()

    def shutdown(self) -> None:
        self.lifecycle.shutdown()
        self.service.shutdown()

    def run(self) -> None:
        print("Set an alarm and lock it with a custom message.")
        print("Commands: set HH:MM <message>, cancel, status, quit.")
        print(self.router.describe())
        while True:
            prompt = "dismissal message> " if self.lifecycle.is_ringing else "> "
            line = input(prompt)
            result = self.router.handle_text(line)
            if result.quit:
                return
            if result.response_text:
                print(result.response_text)

    def _on_ringing(self, record: AlarmRecord) -> None:
        expected = expected_message(record.payload)
        print()
        print(f"*** {record.options.notification_title} ***")
        print("Type the exact message to stop the alarm:")
        print(expected or "No message found.")


def main() -> None:
    config = load_config()
    setup_logging(config.log_level)
    signal.signal(signal.SIGINT, graceful_exit)
    runtime = ConsoleRuntime(config)
    logger.info("Starting signed alarm (utc offset %s)", format_tz_offset(runtime.tzinfo))
    runtime.start()
    try:
        runtime.run()
    except (KeyboardInterrupt, EOFError):
        logger.info("Interrupted by user")
    finally:
        runtime.shutdown()


if __name__ == "__main__":
    main()
