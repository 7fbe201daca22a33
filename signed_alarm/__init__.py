"""Single-slot alarm silenced only by re-typing its secret message."""

from .errors import AlarmError, ArmError, InvalidTransition, PlatformError, StopFailure
from .gate import MatchStatus, match_status, matches
from .lifecycle import AlarmLifecycle, AlarmRecord, ArmResult, LifecycleState
from .occurrence import next_occurrence, parse_time_of_day
from .payload import AlarmPayload, decode_payload, encode_payload, parse_payload
from .platform import AlarmPlatform, DeliveryOptions, PlatformAlarm, RingEvent, RingingSubscription
