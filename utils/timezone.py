"""UTC-everywhere time handling, including ledger and explorer timestamps."""

from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Current UTC calendar date. Due dates are compared against this."""
    return now_utc().date()


def from_unix(seconds: int | str) -> datetime:
    """
    Convert a ledger/explorer Unix timestamp (seconds) to an aware UTC datetime.

    Raises ValueError if the value is not an integer.
    """
    try:
        value = int(seconds)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid Unix timestamp: {seconds!r}")
    return datetime.fromtimestamp(value, tz=timezone.utc)
