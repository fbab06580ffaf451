"""Time range parsing: ISO-8601 timestamps, epoch numbers and ``now-1h`` style expressions."""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from .errors import ValidationError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

TIME_UNITS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
    "M": timedelta(days=30),  # approximate
    "y": timedelta(days=365),  # approximate
}

_RELATIVE_RE = re.compile(r"^now(?:(?P<op>[-+])(?P<value>\d+)(?P<unit>[smhdwMy]))?$")
_ISO_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[T ](?P<time>\d{2}:\d{2}(?::\d{2})?)(?:[.,](?P<frac>\d+))?)?"
    r"(?P<tz>[Zz]|[+-]\d{2}:?\d{2})?$"
)


def _parse_offset(tz: str | None) -> timezone:
    if not tz or tz in ("Z", "z"):
        return timezone.utc
    sign = -1 if tz[0] == "-" else 1
    digits = tz[1:].replace(":", "")
    offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:4]))
    return timezone(sign * offset)


def _iso_to_ns(value: str) -> int | None:
    match = _ISO_RE.match(value.strip())
    if not match:
        return None
    try:
        text = match["date"] + ("T" + match["time"] if match["time"] else "")
        base = datetime.fromisoformat(text).replace(tzinfo=_parse_offset(match["tz"]))
    except ValueError:
        return None
    delta = base - EPOCH
    seconds = delta.days * 86400 + delta.seconds
    fraction = (match["frac"] or "").ljust(9, "0")[:9]
    return seconds * 1_000_000_000 + int(fraction)


def _epoch_to_ns(value: float) -> int:
    magnitude = abs(value)
    if magnitude < 1e11:
        return int(value * 1_000_000_000)
    if magnitude < 1e14:
        return int(value * 1_000_000)
    if magnitude < 1e17:
        return int(value * 1_000)
    return int(value)


def parse_timestamp_ns(value: Any) -> int | None:
    """Convert a timestamp value to epoch nanoseconds.

    Accepts ``datetime`` objects, ISO-8601 strings with any fractional
    precision, and epoch numbers (seconds, milliseconds, microseconds or
    nanoseconds, guessed from magnitude). Returns ``None`` when the value
    can't be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        delta = aware - EPOCH
        return (delta.days * 86400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000
    if isinstance(value, (int, float)):
        return _epoch_to_ns(value)
    if isinstance(value, str):
        text = value.strip()
        if re.fullmatch(r"-?\d+(?:\.\d+)?", text):
            return _epoch_to_ns(float(text) if "." in text else int(text))
        return _iso_to_ns(text)
    return None


def ns_to_datetime(value_ns: int) -> datetime:
    return EPOCH + timedelta(microseconds=value_ns // 1000)


def format_iso(value: datetime) -> str:
    """Format as UTC ISO-8601 with millisecond precision and ``Z`` suffix."""
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class TimeRange:
    """Closed time window used to bound backend queries."""

    start: datetime
    end: datetime

    @property
    def start_iso(self) -> str:
        return format_iso(self.start)

    @property
    def end_iso(self) -> str:
        return format_iso(self.end)

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start_iso, "end": self.end_iso}


def parse_time_expression(value: Any, now: datetime | None = None) -> datetime:
    """Parse a single time value into an aware UTC datetime."""
    if now is None:
        now = datetime.now(timezone.utc)

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, str) and value.strip().startswith("now"):
        match = _RELATIVE_RE.match(value.strip())
        if not match:
            raise ValidationError(
                f"Invalid relative time expression: {value}", {"value": value}
            )
        if not match["op"]:
            return now
        try:
            delta = int(match["value"]) * TIME_UNITS[match["unit"]]
            return now - delta if match["op"] == "-" else now + delta
        except OverflowError:
            raise ValidationError(
                f"Time expression out of range: {value}", {"value": value}
            ) from None

    value_ns = parse_timestamp_ns(value)
    if value_ns is None:
        raise ValidationError(f"Invalid timestamp format: {value}", {"value": value})
    try:
        return ns_to_datetime(value_ns)
    except OverflowError:
        raise ValidationError(f"Timestamp out of range: {value}", {"value": value}) from None


def parse_time_range(start: Any, end: Any, now: datetime | None = None) -> TimeRange:
    """Parse and validate a ``(start, end)`` pair.

    Raises:
        ValidationError: if either bound is missing or invalid, or if
            start is not strictly before end.
    """
    if start in (None, "") or end in (None, ""):
        raise ValidationError("Start time and end time are required")

    if now is None:
        now = datetime.now(timezone.utc)
    start_dt = parse_time_expression(start, now)
    end_dt = parse_time_expression(end, now)
    if start_dt >= end_dt:
        raise ValidationError(
            "Start time must be before end time",
            {"start": format_iso(start_dt), "end": format_iso(end_dt)},
        )
    return TimeRange(start=start_dt, end=end_dt)


def default_time_range(now: datetime | None = None) -> TimeRange:
    """The last hour."""
    return parse_time_range("now-1h", "now", now)
