"""Date helpers shared by the tables and the engines.

Dates are stored in SQLite as naive ``YYYY-MM-DD HH:MM:SS`` text holding the
wall-clock time of the bot timezone, so lexical comparison matches
chronological order. The timezone is set once at startup with
:func:`set_timezone`; until then the host timezone is used.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


logger = logging.getLogger(__name__)


DB_FORMAT = "%Y-%m-%d %H:%M:%S"

FRENCH_MONTHS = (
    "janvier",
    "février",
    "mars",
    "avril",
    "mai",
    "juin",
    "juillet",
    "août",
    "septembre",
    "octobre",
    "novembre",
    "décembre",
)


_zone: Optional[tzinfo] = None


def resolve_zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %s, falling back to UTC", name)
        return timezone.utc


def set_timezone(zone: Optional[tzinfo]) -> None:
    global _zone
    _zone = zone


def get_timezone() -> Optional[tzinfo]:
    return _zone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now() -> datetime:
    """Current naive wall-clock time in the bot timezone."""

    return _utcnow().astimezone(_zone).replace(tzinfo=None, microsecond=0)


def to_db(value: Union[datetime, date]) -> str:
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    return value.strftime(DB_FORMAT)


def from_db(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(str(value))


def day_bounds(day: Union[datetime, date]) -> Tuple[str, str]:
    """Return the ``[start, end)`` text bounds of the given day."""

    start = datetime(day.year, day.month, day.day)
    return to_db(start), to_db(start + timedelta(days=1))


def month_bounds(day: Union[datetime, date]) -> Tuple[str, str]:
    """Return the ``[start, end)`` text bounds of the month containing ``day``."""

    start = datetime(day.year, day.month, 1)
    end = datetime(day.year + 1, 1, 1) if day.month == 12 else datetime(day.year, day.month + 1, 1)
    return to_db(start), to_db(end)


def previous_day(day: Optional[datetime] = None) -> datetime:
    return (day or now()) - timedelta(days=1)


def previous_month(day: Optional[datetime] = None) -> datetime:
    current = day or now()
    first = datetime(current.year, current.month, 1)
    return first - timedelta(days=1)


def month_label(day: Union[datetime, date]) -> str:
    """French ``"mois année"`` label, e.g. ``"février 2024"``."""

    return f"{FRENCH_MONTHS[day.month - 1]} {day.year}"


def diff_of_days(later: datetime, earlier: datetime) -> int:
    return (later.date() - earlier.date()).days


def to_unix(value: datetime) -> int:
    if value.tzinfo is None and _zone is not None:
        value = value.replace(tzinfo=_zone)
    return int(value.timestamp())


def parse_api_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an API ISO timestamp into an aware UTC datetime.

    Naive values are considered UTC; ``None`` or empty strings give ``None``.
    """

    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = [
    "DB_FORMAT",
    "FRENCH_MONTHS",
    "day_bounds",
    "diff_of_days",
    "from_db",
    "get_timezone",
    "month_bounds",
    "month_label",
    "now",
    "parse_api_timestamp",
    "previous_day",
    "previous_month",
    "resolve_zone",
    "set_timezone",
    "to_db",
    "to_unix",
]
