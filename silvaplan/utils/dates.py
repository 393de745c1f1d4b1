"""Date helpers; every datetime in the service is timezone-aware UTC."""

from datetime import UTC, date, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def parse_date(value: str) -> datetime:
    """Parse a YYYY-MM-DD string (or full ISO timestamp) into an aware UTC datetime.

    Raises:
        ValueError: If the value is not a valid ISO date.
    """
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_date(value: datetime | date) -> str:
    """Format as YYYY-MM-DD."""
    return value.strftime("%Y-%m-%d")
