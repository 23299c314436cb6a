"""Model helpers"""

from datetime import datetime


def datetime_to_json(value: datetime | None) -> str | None:
    """Serialise a datetime for a JSON snapshot"""
    return value.isoformat() if value is not None else None


def datetime_from_json(value: str | None) -> datetime | None:
    """Parse a datetime stored in a JSON snapshot"""
    return datetime.fromisoformat(value) if value else None
