# renthubber/services/earnings.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import ValidationFailed
from ..domain.types import BookingStatus
from ..models import Booking


@dataclass
class MonthEarnings:
    year: int
    month: int
    total_net_cents: int = 0
    gross_cents: int = 0
    platform_fees_cents: int = 0
    completed_bookings: int = 0
    # day of month -> net cents
    days: dict[int, int] = field(default_factory=dict)


@dataclass
class YearEarnings:
    year: int
    total_net_cents: int = 0
    completed_bookings: int = 0
    months: dict[int, int] = field(default_factory=lambda: {m: 0 for m in range(1, 13)})


def _month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    if not 1 <= month <= 12:
        raise ValidationFailed("month must be 1..12")
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


async def _completed(session: AsyncSession, hubber_id: int, start: datetime, end: datetime) -> list[Booking]:
    stmt = (
        select(Booking)
        .where(Booking.hubber_id == hubber_id)
        .where(Booking.status == BookingStatus.completed)
        .where(Booking.start_at >= start)
        .where(Booking.start_at < end)
    )
    return list((await session.execute(stmt)).scalars().all())


async def hubber_earnings_by_month(session: AsyncSession, hubber_id: int, year: int, month: int) -> MonthEarnings:
    start, end = _month_bounds(year, month)
    out = MonthEarnings(year=year, month=month)
    for b in await _completed(session, hubber_id, start, end):
        out.total_net_cents += b.hubber_net_cents
        out.gross_cents += b.amount_total_cents
        out.platform_fees_cents += b.renter_fee_cents + b.hubber_fee_cents
        out.completed_bookings += 1
        out.days[b.start_at.day] = out.days.get(b.start_at.day, 0) + b.hubber_net_cents
    out.days = dict(sorted(out.days.items()))
    return out


async def hubber_earnings_by_year(session: AsyncSession, hubber_id: int, year: int) -> YearEarnings:
    out = YearEarnings(year=year)
    for b in await _completed(session, hubber_id, datetime(year, 1, 1), datetime(year + 1, 1, 1)):
        out.total_net_cents += b.hubber_net_cents
        out.completed_bookings += 1
        out.months[b.start_at.month] += b.hubber_net_cents
    return out
