"""Query helpers shared by the store services."""

from datetime import UTC, datetime


def like_pattern(query: str) -> str:
    """Case-insensitive substring pattern with LIKE wildcards escaped (escape char ``\\``)."""
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def as_utc(value: datetime) -> datetime:
    """Normalize an aware timestamp to UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
