"""
Timestamp and retention helpers shared by every aggregate.

Timestamps are stored as ISO-8601 strings in UTC with millisecond precision
and a trailing ``Z``. Retention is expressed as a ``ttl`` attribute holding
epoch seconds.
"""
import calendar
from datetime import datetime, timezone

MIN_RETENTION_MONTHS = 1
MAX_RETENTION_MONTHS = 60


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """
    Format a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Naive datetimes are assumed to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def from_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def add_months(value: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the end of the target month.

    Args:
        value: Starting datetime
        months: Number of months to add (may be negative)

    Returns:
        Shifted datetime with the same time of day
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def is_valid_retention_months(months) -> bool:
    """Check that a retention window is an integer within 1..60 months."""
    return isinstance(months, int) and MIN_RETENTION_MONTHS <= months <= MAX_RETENTION_MONTHS


def calculate_ttl(from_date: datetime, months: int) -> int:
    """
    Compute the epoch-seconds expiry for a terminal record.

    Args:
        from_date: The record's ``updatedAt``
        months: Retention window in months

    Returns:
        Epoch seconds at which the store may purge the record

    Raises:
        ValueError: If ``months`` is outside 1..60
    """
    if not is_valid_retention_months(months):
        raise ValueError(
            f"Retention months must be between {MIN_RETENTION_MONTHS} and "
            f"{MAX_RETENTION_MONTHS}, got {months!r}"
        )
    if from_date.tzinfo is None:
        from_date = from_date.replace(tzinfo=timezone.utc)
    return int(add_months(from_date, months).timestamp())
