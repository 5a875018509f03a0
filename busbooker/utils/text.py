"""Text helpers shared by models, services and the formatter."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

UNKNOWN = "N/A"


def display_name(value: Any, default: str = "") -> str:
    """Resolve a city/company reference that is either a bare name or ``{"name": ...}``."""
    if isinstance(value, dict):
        name = value.get("name")
        return str(name) if name else default
    if value is None:
        return default
    return str(value)


def parse_day(value: Any) -> date | None:
    """Calendar date of an API value ("2025-06-01", "2025-06-01T00:00:00.000Z", date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def ticket_filename(booking_id: str) -> str:
    return f"ticket-reservation-{booking_id}.pdf"


def leading_int(value: Any, default: int = 1) -> int:
    """Parse "2", 2 or "2 passagers" → 2; anything else → *default*."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    head = str(value or "").strip().split(" ")[0]
    try:
        return int(head)
    except ValueError:
        return default
