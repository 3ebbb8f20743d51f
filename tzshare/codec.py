"""
tzshare/codec.py

Share token encoding and decoding.

A token is the event's JSON payload encoded with the URL-safe base64
alphabet and stripped of "=" padding, so it can travel as a single query
string value. Decoding also accepts the standard alphabet with padding,
which is what older links carry. Older links also carry "date" and "time"
as ISO-8601 timestamps (the form serialized its date pickers directly);
those are read as civil values in the creator's time zone.

Decoding treats the payload as untrusted: every field is checked for
presence and type before an EventDescriptor is built.
"""

import base64
import binascii
import json
import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict

from .errors import DecodeError, InvalidTimezoneError
from .event import DEFAULT_COLOR, EventDescriptor, Frequency
from .timezones import localize

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = ("title", "date", "time", "creatorTimezone")

TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_\-+/]+={0,2}")
DATE_PATTERN = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")
TIME_PATTERN = re.compile(r"([0-9]{2}):([0-9]{2})(?::([0-9]{2}))?")
TIMESTAMP_PATTERN = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2})(?::([0-9]{2})(?:\.([0-9]+))?)?"
    r"(Z|[+-][0-9]{2}:?[0-9]{2})"
)


# =============================================================================
# Encoding
# =============================================================================

def to_payload(descriptor: EventDescriptor) -> Dict[str, Any]:
    """
    Convert an event to its JSON payload.

    Args:
        descriptor: Event to convert.

    Returns:
        Dictionary using the payload key names.
    """
    frequency = descriptor.recurring_frequency
    return {
        "title": descriptor.title,
        "description": descriptor.description,
        "date": descriptor.base_date.isoformat(),
        "time": _format_time(descriptor.base_time),
        "creatorTimezone": descriptor.creator_timezone,
        "isRecurring": descriptor.is_recurring,
        "recurringFrequency": frequency.label if frequency else None,
        "timezones": list(descriptor.timezones),
        "primaryColor": descriptor.primary_color,
    }


def encode(descriptor: EventDescriptor) -> str:
    """
    Encode an event as a URL-safe share token.

    Encoding is deterministic: equal events always give equal tokens.

    Args:
        descriptor: Event to encode.

    Returns:
        Token text using only [A-Za-z0-9_-].
    """
    raw = json.dumps(
        to_payload(descriptor), ensure_ascii=False, separators=(",", ":")
    ).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


# =============================================================================
# Decoding
# =============================================================================

def decode(token: str) -> EventDescriptor:
    """
    Decode a share token into an event.

    Args:
        token: Token text, URL-safe or standard base64, padded or not.

    Returns:
        The decoded EventDescriptor.

    Raises:
        DecodeError: If the token is not valid base64 JSON, or the payload
            is missing required fields or has fields of the wrong type.
    """
    if not isinstance(token, str):
        raise DecodeError(f"Token must be text, got {type(token).__name__}")

    data = _decode_json(token.strip())
    descriptor = from_payload(data)
    logger.debug(f"Decoded event {descriptor.title!r} ({descriptor.creator_timezone})")
    return descriptor


def from_payload(data: Any) -> EventDescriptor:
    """
    Build an event from a decoded JSON payload.

    Args:
        data: Parsed JSON value.

    Returns:
        EventDescriptor.

    Raises:
        DecodeError: If the payload is structurally invalid.
    """
    if not isinstance(data, dict):
        raise DecodeError("Payload must be a JSON object")

    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if missing:
        raise DecodeError(f"Payload missing required fields: {', '.join(missing)}")

    title = _expect_str(data, "title")
    description = _expect_str(data, "description", "")
    creator_timezone = _expect_str(data, "creatorTimezone")
    if not creator_timezone.strip():
        raise DecodeError("Field 'creatorTimezone' must not be empty")
    primary_color = _expect_str(data, "primaryColor", DEFAULT_COLOR)

    is_recurring = data.get("isRecurring", False)
    if is_recurring is None:
        is_recurring = False
    if not isinstance(is_recurring, bool):
        raise DecodeError("Field 'isRecurring' must be a boolean")

    frequency = _parse_frequency(data.get("recurringFrequency"))
    timezones = _parse_timezones(data.get("timezones", []))
    base_date = _parse_date(data["date"], creator_timezone)
    base_time = _parse_time(data["time"], creator_timezone)

    try:
        return EventDescriptor(
            title=title,
            description=description,
            base_date=base_date,
            base_time=base_time,
            creator_timezone=creator_timezone,
            is_recurring=is_recurring,
            recurring_frequency=frequency,
            timezones=timezones,
            primary_color=primary_color,
        )
    except ValueError as e:
        raise DecodeError(f"Invalid event payload: {e}") from e


def _decode_json(token: str) -> Any:
    """Undo the base64 and JSON layers of a token."""
    if not token or not TOKEN_PATTERN.fullmatch(token):
        raise DecodeError("Token is empty or contains invalid characters")

    body = token.rstrip("=").replace("+", "-").replace("/", "_")
    if len(body) % 4 == 1:
        raise DecodeError("Token is truncated")
    body += "=" * (-len(body) % 4)

    try:
        raw = base64.urlsafe_b64decode(body)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Token is not valid base64: {e}") from e

    try:
        return json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise DecodeError("Token payload is not UTF-8 text") from e
    except json.JSONDecodeError as e:
        raise DecodeError(f"Token payload is not valid JSON: {e.msg}") from e


def _expect_str(data: Dict[str, Any], name: str, default: str = None) -> str:
    value = data.get(name, default)
    if value is None and default is not None:
        return default
    if not isinstance(value, str):
        raise DecodeError(f"Field '{name}' must be a string")
    return value


def _parse_frequency(value: Any):
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise DecodeError("Field 'recurringFrequency' must be a string")
    try:
        return Frequency.from_label(value)
    except ValueError as e:
        raise DecodeError(str(e)) from e


def _parse_timezones(value: Any):
    if value is None:
        return ()
    if not isinstance(value, list):
        raise DecodeError("Field 'timezones' must be a list")
    for zone_id in value:
        if not isinstance(zone_id, str) or not zone_id:
            raise DecodeError("Field 'timezones' must contain non-empty strings")
    return tuple(value)


def _parse_date(value: Any, zone_id: str) -> date:
    if not isinstance(value, str):
        raise DecodeError("Field 'date' must be a string")
    if TIMESTAMP_PATTERN.fullmatch(value):
        return _local_timestamp("date", value, zone_id).date()
    match = DATE_PATTERN.fullmatch(value)
    if not match:
        raise DecodeError(f"Field 'date' must be YYYY-MM-DD, got {value!r}")
    year, month, day = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise DecodeError(f"Invalid date {value!r}: {e}") from e


def _parse_time(value: Any, zone_id: str) -> time:
    if not isinstance(value, str):
        raise DecodeError("Field 'time' must be a string")
    if TIMESTAMP_PATTERN.fullmatch(value):
        local = _local_timestamp("time", value, zone_id)
        return local.time().replace(microsecond=0)
    match = TIME_PATTERN.fullmatch(value)
    if not match:
        raise DecodeError(f"Field 'time' must be HH:MM or HH:MM:SS, got {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3)) if match.group(3) else 0
    try:
        return time(hour, minute, second)
    except ValueError as e:
        raise DecodeError(f"Invalid time {value!r}: {e}") from e


def _local_timestamp(name: str, value: str, zone_id: str) -> datetime:
    """
    Read an ISO-8601 timestamp as wall-clock time in the creator's zone.

    Older links carry serialized date picker values such as
    "2022-06-29T18:30:00.000Z", where only the civil date (or time) in the
    creator's zone is meaningful.

    Raises:
        DecodeError: If the timestamp is out of range or the creator's zone
            is unknown.
    """
    match = TIMESTAMP_PATTERN.fullmatch(value)
    year, month, day, hour, minute = (int(g) for g in match.groups()[:5])
    second = int(match.group(6) or 0)
    micro = int((match.group(7) or "0")[:6].ljust(6, "0"))
    try:
        instant = datetime(
            year, month, day, hour, minute, second, micro,
            tzinfo=_parse_offset(match.group(8)),
        )
        return localize(instant, zone_id)
    except InvalidTimezoneError as e:
        raise DecodeError(
            f"Cannot read timestamp in field '{name}': unknown creator time zone {zone_id!r}"
        ) from e
    except (ValueError, OverflowError) as e:
        raise DecodeError(f"Invalid timestamp in field '{name}': {value!r}") from e


def _parse_offset(text: str) -> timezone:
    if text == "Z":
        return timezone.utc
    sign = -1 if text[0] == "-" else 1
    digits = text[1:].replace(":", "")
    return timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:])))


def _format_time(value: time) -> str:
    if value.second:
        return value.strftime("%H:%M:%S")
    return value.strftime("%H:%M")
