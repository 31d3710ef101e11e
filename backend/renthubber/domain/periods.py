from __future__ import annotations

import math
from datetime import date, datetime, timezone

from .types import PriceUnit

_HOUR_S = 3600
_DAY_S = 24 * _HOUR_S


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def billable_units(start: datetime, end: datetime, price_unit: PriceUnit) -> int:
    """
    Number of price units charged for [start, end].

    Always at least 1. Days are ceil(|end - start| / 24h); weeks and months
    are derived from days (7 and 30 days).
    """
    seconds = abs((end - start).total_seconds())

    if price_unit == PriceUnit.hour:
        return max(math.ceil(seconds / _HOUR_S), 1)

    days = max(math.ceil(seconds / _DAY_S), 1)
    if price_unit == PriceUnit.week:
        return max(math.ceil(days / 7), 1)
    if price_unit == PriceUnit.month:
        return max(math.ceil(days / 30), 1)
    return days


def hours_until(start: datetime, now: datetime) -> float:
    return (start - now).total_seconds() / _HOUR_S


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Inclusive date ranges."""
    return a_start <= b_end and b_start <= a_end


def booking_days(start: datetime, end: datetime) -> tuple[date, date]:
    """Calendar days a booking occupies, both ends included (return day is held)."""
    return start.date(), end.date()
