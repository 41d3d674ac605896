"""Reference clock and timestamp conversion utilities

Every instant handled by the bot is a naive datetime in UTC.
"""
from datetime import datetime
import pytz


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to naive UTC.

    Args:
        dt: Datetime object, naive values are taken to be UTC already

    Returns:
        Naive datetime object in UTC
    """
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)

    return dt.astimezone(pytz.UTC).replace(tzinfo=None)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp from the launch provider into naive UTC.

    Args:
        value: Timestamp such as '2026-10-18T14:30:00Z'

    Returns:
        Naive datetime object in UTC

    Raises:
        ValueError: If the value is not a valid ISO-8601 timestamp
    """
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(value))


def now_utc() -> datetime:
    """Get current UTC time as naive datetime"""
    return datetime.now(pytz.UTC).replace(tzinfo=None)
