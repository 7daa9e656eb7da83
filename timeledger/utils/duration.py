"""Duration utilities: canonical elapsed time and duration parsing."""
import math
import re
from datetime import datetime
from typing import Optional

from timeledger.errors import ValidationError
from timeledger.models.time_entry import Completed, Manual, Ongoing

MAX_DURATION_SECONDS = 24 * 3600

_UNIT = {
    "h": 3600, "hr": 3600, "hrs": 3600, "hour": 3600, "hours": 3600,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
}
_NUMBER = r"(\d+(?:\.\d+)?)"
_SINGLE_UNIT = re.compile(rf"^{_NUMBER}\s*([a-z]+)$")
_COMBINED = re.compile(
    rf"^{_NUMBER}\s*(h|hr|hrs|hour|hours)\s+{_NUMBER}\s*(m|min|mins|minute|minutes)"
    rf"(?:\s+{_NUMBER}\s*(s|sec|secs|second|seconds))?$"
)
_CLOCK = re.compile(r"^(\d+):(\d{1,2})(?::(\d{1,2}))?$")
_BARE = re.compile(rf"^{_NUMBER}$")


def _get(entry, field: str):
    if isinstance(entry, dict):
        return entry.get(field)
    return getattr(entry, field, None)


def seconds_between(start: Optional[datetime], end: Optional[datetime]) -> int:
    """
    Whole seconds from ``start`` to ``end``, floored and never negative.

    Examples:
        >>> seconds_between(datetime(2024, 1, 15, 9, 0), datetime(2024, 1, 15, 11, 30))
        9000
        >>> seconds_between(None, datetime(2024, 1, 15, 11, 30))
        0
    """
    if start is None or end is None:
        return 0
    return max(0, math.floor((end - start).total_seconds()))


def to_span(entry):
    """
    Convert a stored entry (document or model) to its duration span.

    A manual duration always wins; timestamps that sit next to it are
    dropped, so a legacy record is never counted twice. Anything without a
    usable start becomes a zero-length manual entry.

    Examples:
        >>> to_span({"start_time": None, "end_time": None, "manual_duration_seconds": 7200})
        Manual(kind='manual', seconds=7200)
    """
    manual = _get(entry, "manual_duration_seconds")
    start = _get(entry, "start_time")
    end = _get(entry, "end_time")

    if manual is not None:
        return Manual(seconds=max(0, int(manual)))
    if start is None:
        return Manual(seconds=0)
    if end is None:
        return Ongoing(start=start)
    return Completed(start=start, end=end)


def span_fields(span) -> dict:
    """Flat storage fields for a span (the inverse of ``to_span``)."""
    if isinstance(span, Manual):
        return {"start_time": None, "end_time": None, "manual_duration_seconds": span.seconds}
    if isinstance(span, Ongoing):
        return {"start_time": span.start, "end_time": None, "manual_duration_seconds": None}
    return {"start_time": span.start, "end_time": span.end, "manual_duration_seconds": None}


def normalized_fields(entry) -> Optional[dict]:
    """
    Fields to ``$set`` to bring a stored entry into canonical shape.

    Returns ``None`` when the entry is already canonical.
    """
    canonical = span_fields(to_span(entry))
    current = {field: _get(entry, field) for field in canonical}
    if current == canonical:
        return None
    return canonical


def elapsed_seconds(entry) -> int:
    """
    Canonical elapsed seconds of a completed or manual entry.

    Ongoing timers are not completed durations and yield 0 here; their live
    elapsed time comes from the timer query, which uses the server clock.

    Examples:
        >>> elapsed_seconds({"manual_duration_seconds": 7200,
        ...                  "start_time": datetime(2024, 1, 1, 9), "end_time": datetime(2024, 1, 1, 10)})
        7200
    """
    span = entry if isinstance(entry, (Ongoing, Manual, Completed)) else to_span(entry)
    if isinstance(span, Manual):
        return span.seconds
    if isinstance(span, Completed):
        return seconds_between(span.start, span.end)
    return 0


def is_ongoing(entry) -> bool:
    """True for a running timer (start set, no end, no manual duration)."""
    return isinstance(to_span(entry), Ongoing)


def parse_duration(text: str) -> int:
    """
    Parse a human duration into seconds.

    Supported: ``2h``, ``3.5hr``, ``90m``, ``45min``, ``5400s``, ``4:15``
    (hours:minutes), ``1:30:45``, ``2h 15m``, ``2h 15m 30s`` and a bare
    number of hours such as ``2.5``. Results must fall within 0-24 hours.

    Examples:
        >>> parse_duration("2h")
        7200
        >>> parse_duration("4:15")
        15300
        >>> parse_duration("2h 15m")
        8100
    """
    if not text or not text.strip():
        raise ValidationError("Duration must be a non-empty string")

    cleaned = text.strip().lower()
    seconds: Optional[float] = None

    match = _SINGLE_UNIT.match(cleaned)
    if match and match.group(2) in _UNIT:
        seconds = float(match.group(1)) * _UNIT[match.group(2)]

    if seconds is None:
        match = _COMBINED.match(cleaned)
        if match:
            seconds = float(match.group(1)) * 3600 + float(match.group(3)) * 60
            if match.group(5):
                seconds += float(match.group(5))

    if seconds is None:
        match = _CLOCK.match(cleaned)
        if match:
            seconds = int(match.group(1)) * 3600 + int(match.group(2)) * 60 + int(match.group(3) or 0)

    if seconds is None:
        match = _BARE.match(cleaned)
        if match:
            seconds = float(match.group(1)) * 3600

    if seconds is None:
        raise ValidationError(
            f"Invalid duration format: {text}. Use formats like 2h, 3.5hr, 4:15, 90m, 5400s, 2h 15m"
        )

    result = round(seconds)
    if result > MAX_DURATION_SECONDS:
        raise ValidationError("Duration must be between 0 and 24 hours")
    return result


def format_duration(seconds: int) -> str:
    """
    Format seconds as ``"Xh Ym"``.

    Examples:
        >>> format_duration(9000)
        '2h 30m'
    """
    hours, remainder = divmod(max(0, int(seconds)), 3600)
    return f"{hours}h {remainder // 60}m"
