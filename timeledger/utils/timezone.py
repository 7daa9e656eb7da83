"""Timezone and local-day helpers.

Offsets follow the browser ``Date.getTimezoneOffset()`` convention: the
number of minutes the local zone is *behind* UTC. ``+480`` is UTC-8,
``-60`` is UTC+1. All instants handled here are naive datetimes in UTC,
which is what Motor hands back by default.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple, Optional

from timeledger.errors import ValidationError

MIN_OFFSET_MINUTES = -840  # UTC+14
MAX_OFFSET_MINUTES = 720  # UTC-12

EPOCH = datetime(1970, 1, 1)


class LocalDay(NamedTuple):
    """A calendar date as the user perceives it."""

    year: int
    month: int
    day: int
    day_of_week: int  # 0=Sunday ... 6=Saturday

    def as_date(self) -> date:
        return date(self.year, self.month, self.day)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to naive UTC.

    Aware datetimes are converted; naive ones are assumed to already be UTC.

    Examples:
        >>> to_naive_utc(datetime(2024, 1, 15, 1, 0, tzinfo=timezone(timedelta(hours=-8))))
        datetime.datetime(2024, 1, 15, 9, 0)
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_epoch_ms(ms: int) -> datetime:
    """
    Convert epoch milliseconds (a JavaScript ``Date.now()``) to naive UTC.

    Examples:
        >>> from_epoch_ms(1705309200000)
        datetime.datetime(2024, 1, 15, 9, 0)
    """
    try:
        return EPOCH + timedelta(milliseconds=int(ms))
    except (OverflowError, ValueError):
        raise ValidationError("Invalid client time") from None


def validate_offset(offset_minutes: Optional[int]) -> int:
    """Return the offset (0 when omitted), rejecting impossible values."""
    if offset_minutes is None:
        return 0
    if not MIN_OFFSET_MINUTES <= offset_minutes <= MAX_OFFSET_MINUTES:
        raise ValidationError(
            f"tz_offset_minutes must be between {MIN_OFFSET_MINUTES} and {MAX_OFFSET_MINUTES}"
        )
    return offset_minutes


def day_of_week(day: date) -> int:
    """Day of week with Sunday as 0."""
    return day.isoweekday() % 7


def local_date(instant_utc: datetime, offset_minutes: int = 0) -> LocalDay:
    """
    Map a UTC instant to the user's local calendar day.

    The offset is subtracted once; the fields of the shifted instant are then
    read as-is. The day of week comes from the date alone, so two entries on
    the same local date always share a bucket.

    Examples:
        >>> local_date(datetime(2024, 3, 4, 0, 0), 480)
        LocalDay(year=2024, month=3, day=3, day_of_week=0)
        >>> local_date(datetime(2024, 3, 4, 0, 0))
        LocalDay(year=2024, month=3, day=4, day_of_week=1)
    """
    local = to_naive_utc(instant_utc) - timedelta(minutes=offset_minutes)
    return LocalDay(local.year, local.month, local.day, day_of_week(local.date()))


def local_to_utc(day: date, hours: int, minutes: int, offset_minutes: int = 0) -> datetime:
    """
    Convert a local wall-clock time on ``day`` to a UTC instant.

    Examples:
        >>> local_to_utc(date(2024, 1, 15), 9, 30, 480)
        datetime.datetime(2024, 1, 15, 17, 30)
    """
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValidationError("Hours must be 0-23 and minutes 0-59")
    return datetime.combine(day, time(hours, minutes)) + timedelta(minutes=offset_minutes)


def local_day_bounds(day: date, offset_minutes: int = 0) -> tuple[datetime, datetime]:
    """UTC instants of local 00:00:00 and 23:59:59 on ``day``."""
    start = datetime.combine(day, time.min) + timedelta(minutes=offset_minutes)
    return start, start + timedelta(days=1, seconds=-1)


def week_window(now_utc: datetime, offset_minutes: int = 0) -> tuple[date, date]:
    """
    Sunday and Saturday of the local week containing ``now_utc``.

    Examples:
        >>> week_window(datetime(2024, 1, 17, 12, 0))
        (datetime.date(2024, 1, 14), datetime.date(2024, 1, 20))
    """
    today = local_date(now_utc, offset_minutes).as_date()
    sunday = today - timedelta(days=day_of_week(today))
    return sunday, sunday + timedelta(days=6)
