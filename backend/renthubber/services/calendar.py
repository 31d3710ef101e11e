# renthubber/services/calendar.py
from __future__ import annotations

import hmac
import json
import logging
import secrets
import string
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.clients.ical_fetch import CalendarFetcher, CalendarFetchError
from ..config import settings
from ..domain import ical
from ..domain.errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from ..domain.money import fmt_eur
from ..domain.periods import booking_days, ranges_overlap, utcnow
from ..domain.types import BLOCKING_STATUSES, FEED_STATUSES
from ..models import (
    Booking,
    CalendarBlock,
    CalendarStatus,
    ICalToken,
    ImportedCalendar,
    Listing,
    User,
)

log = logging.getLogger(__name__)

TOKEN_LENGTH = 32
_TOKEN_ALPHABET = string.ascii_letters + string.digits


@dataclass(frozen=True)
class BusyRange:
    start: date
    end: date
    kind: str  # booking | block
    ref_id: int


# -----------------------------
# Availability
# -----------------------------
def _day_start(d: date) -> datetime:
    return datetime(d.year, d.month, d.day)


async def busy_ranges(
    session: AsyncSession,
    listing_id: int,
    start: date | None = None,
    end: date | None = None,
    *,
    exclude_booking_id: int | None = None,
) -> list[BusyRange]:
    """Blocking bookings and calendar blocks, optionally clipped to [start, end]."""
    bstmt = select(Booking).where(Booking.listing_id == listing_id).where(Booking.status.in_(BLOCKING_STATUSES))
    cstmt = select(CalendarBlock).where(CalendarBlock.listing_id == listing_id)
    if start is not None:
        bstmt = bstmt.where(Booking.end_at >= _day_start(start))
        cstmt = cstmt.where(CalendarBlock.end_date >= start)
    if end is not None:
        bstmt = bstmt.where(Booking.start_at < _day_start(end + timedelta(days=1)))
        cstmt = cstmt.where(CalendarBlock.start_date <= end)
    if exclude_booking_id is not None:
        bstmt = bstmt.where(Booking.id != exclude_booking_id)

    out: list[BusyRange] = []
    for b in (await session.execute(bstmt)).scalars().all():
        s, e = booking_days(b.start_at, b.end_at)
        out.append(BusyRange(s, e, "booking", b.id))
    for blk in (await session.execute(cstmt)).scalars().all():
        out.append(BusyRange(blk.start_date, blk.end_date, "block", blk.id))

    out.sort(key=lambda r: (r.start, r.end))
    return out


async def ensure_available(
    session: AsyncSession,
    listing_id: int,
    start_at: datetime,
    end_at: datetime,
    *,
    exclude_booking_id: int | None = None,
) -> None:
    s, e = booking_days(start_at, end_at)
    clashes = [
        r
        for r in await busy_ranges(session, listing_id, s, e, exclude_booking_id=exclude_booking_id)
        if ranges_overlap(s, e, r.start, r.end)
    ]
    if clashes:
        first = clashes[0]
        raise Conflict(f"Dates not available: {first.kind} from {first.start} to {first.end}")


async def unavailable_ranges(session: AsyncSession, listing_id: int, today: date | None = None) -> list[BusyRange]:
    return await busy_ranges(session, listing_id, start=today)


# -----------------------------
# Manual blocks
# -----------------------------
async def _owned_listing(session: AsyncSession, listing_id: int, owner_id: int | None) -> Listing:
    listing = await session.get(Listing, listing_id)
    if not listing:
        raise NotFound(f"Listing {listing_id} not found")
    if owner_id is not None and listing.owner_id != owner_id:
        raise PermissionDenied("Not the owner of this listing")
    return listing


async def create_block(
    session: AsyncSession,
    listing_id: int,
    start_date: date,
    end_date: date,
    reason: str | None = None,
    *,
    owner_id: int | None = None,
) -> CalendarBlock:
    await _owned_listing(session, listing_id, owner_id)
    if end_date < start_date:
        raise ValidationFailed("end_date must not be before start_date")

    blk = CalendarBlock(
        listing_id=listing_id,
        start_date=start_date,
        end_date=end_date,
        reason=reason or "Manual block",
    )
    session.add(blk)
    await session.flush()
    return blk


def _collapse_days(days: Iterable[date]) -> list[tuple[date, date]]:
    ordered = sorted(set(days))
    ranges: list[tuple[date, date]] = []
    for d in ordered:
        if ranges and d == ranges[-1][1] + timedelta(days=1):
            ranges[-1] = (ranges[-1][0], d)
        else:
            ranges.append((d, d))
    return ranges


async def create_day_blocks(
    session: AsyncSession,
    listing_id: int,
    days: Iterable[date],
    reason: str | None = None,
    *,
    owner_id: int | None = None,
) -> list[CalendarBlock]:
    """Block single days picked on the calendar; consecutive days become one block."""
    ranges = _collapse_days(days)
    if not ranges:
        raise ValidationFailed("No days to block")
    return [await create_block(session, listing_id, s, e, reason, owner_id=owner_id) for s, e in ranges]


async def delete_block(session: AsyncSession, block_id: int, *, owner_id: int | None = None) -> None:
    blk = await session.get(CalendarBlock, block_id)
    if not blk:
        raise NotFound(f"Block {block_id} not found")
    await _owned_listing(session, blk.listing_id, owner_id)
    await session.delete(blk)
    await session.flush()


async def list_blocks(session: AsyncSession, listing_id: int, today: date | None = None) -> list[CalendarBlock]:
    today = today or utcnow().date()
    stmt = (
        select(CalendarBlock)
        .where(CalendarBlock.listing_id == listing_id)
        .where(CalendarBlock.end_date >= today)
        .order_by(CalendarBlock.start_date.asc())
    )
    return list((await session.execute(stmt)).scalars().all())


# -----------------------------
# Export (hubber feed)
# -----------------------------
def new_token() -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def export_url(user_id: int, token: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/ical/{user_id}.ics?token={token}"


async def _token_row(session: AsyncSession, user_id: int) -> ICalToken | None:
    return (await session.execute(select(ICalToken).where(ICalToken.user_id == user_id))).scalars().first()


async def get_or_create_export_url(session: AsyncSession, user_id: int) -> str:
    if not await session.get(User, user_id):
        raise NotFound(f"User {user_id} not found")
    row = await _token_row(session, user_id)
    if not row:
        row = ICalToken(user_id=user_id, token=new_token())
        session.add(row)
        await session.flush()
    return export_url(user_id, row.token)


async def regenerate_export_token(session: AsyncSession, user_id: int) -> str:
    """Old links stop working immediately."""
    row = await _token_row(session, user_id)
    if not row:
        return await get_or_create_export_url(session, user_id)
    row.token = new_token()
    row.created_at = utcnow()
    await session.flush()
    log.info("ical token regenerated for user %s", user_id)
    return export_url(user_id, row.token)


def _booking_event(b: Booking, listing: Listing | None, renter: User | None) -> ical.ICalEvent:
    title = listing.title if listing else "Booking"
    renter_name = renter.name if renter else "Renter"
    start_d, end_d = booking_days(b.start_at, b.end_at)

    description = "\n".join(
        [
            f"Booking {b.number}",
            f"Renter: {renter_name}",
            f"Net earnings: {fmt_eur(b.hubber_net_cents)}",
            f"Status: {b.status.value}",
        ]
    )
    categories = ["RentHubber"]
    if listing:
        categories.append(listing.category.value)

    return ical.ICalEvent(
        uid=f"booking-{b.id}@renthubber.com",
        dtstart=ical.format_date(start_d),
        dtend=ical.format_date(end_d, add_days=1),
        summary=f"{title} - {renter_name}",
        description=description,
        location=listing.location if listing else None,
        status=ical.booking_status_to_ical(b.status),
        categories=categories,
        created=ical.format_datetime(b.created_at),
        last_modified=ical.format_datetime(b.updated_at or b.created_at),
    )


async def hubber_feed(session: AsyncSession, user_id: int, token: str | None, *, now: datetime | None = None) -> str:
    row = await _token_row(session, user_id)
    if not row or not token or not hmac.compare_digest(row.token, token):
        raise PermissionDenied("Invalid calendar token")

    user = await session.get(User, user_id)
    if not user:
        raise NotFound(f"User {user_id} not found")

    stmt = (
        select(Booking, Listing, User)
        .join(Listing, Listing.id == Booking.listing_id)
        .join(User, User.id == Booking.renter_id)
        .where(Booking.hubber_id == user_id)
        .where(Booking.status.in_(FEED_STATUSES))
        .order_by(Booking.start_at.asc())
    )
    rows = (await session.execute(stmt)).all()
    events = [_booking_event(b, listing, renter) for b, listing, renter in rows]

    return ical.generate_calendar(
        events,
        name=f"RentHubber - {user.name}",
        description=f"RentHubber bookings for {user.name}",
        now=now or utcnow(),
    )


# -----------------------------
# Import (external calendars)
# -----------------------------
def _parse_feed(content: str) -> list[ical.ICalEvent]:
    if "BEGIN:VCALENDAR" not in (content or ""):
        raise ValidationFailed("Not an iCal document")
    events = ical.parse_calendar(content)
    if not events:
        raise ValidationFailed("Calendar contains no events")
    return events


def _blocks_for(cal: ImportedCalendar, events: list[ical.ICalEvent], listing_ids: list[int], today: date) -> list[CalendarBlock]:
    blocks: list[CalendarBlock] = []
    for ev in events:
        if ev.status == "CANCELLED":
            continue
        start, end = ical.event_block_range(ev)
        if end < today:
            continue
        reason = f"{cal.name}: {ev.summary}" if ev.summary else cal.name
        for lid in listing_ids:
            blocks.append(
                CalendarBlock(
                    listing_id=lid,
                    start_date=start,
                    end_date=end,
                    reason=reason[:255],
                    source_calendar_id=cal.id,
                    external_event_uid=ev.uid,
                )
            )
    return blocks


async def import_calendar(
    session: AsyncSession,
    user_id: int,
    *,
    url: str,
    name: str,
    listing_ids: list[int],
    fetcher: CalendarFetcher,
    today: date | None = None,
) -> ImportedCalendar:
    today = today or utcnow().date()
    if not listing_ids:
        raise ValidationFailed("Select at least one listing")
    for lid in listing_ids:
        await _owned_listing(session, lid, user_id)

    try:
        content = await fetcher(url)
    except CalendarFetchError as e:
        raise ValidationFailed(str(e)) from e
    events = _parse_feed(content)

    cal = ImportedCalendar(
        user_id=user_id,
        name=name.strip() or "External calendar",
        url=url,
        listing_ids_json=json.dumps(sorted(set(listing_ids))),
        status=CalendarStatus.active,
        last_sync=utcnow(),
    )
    session.add(cal)
    await session.flush()

    blocks = _blocks_for(cal, events, json.loads(cal.listing_ids_json), today)
    session.add_all(blocks)
    cal.events_count = len({b.external_event_uid for b in blocks})
    await session.flush()

    log.info("calendar %s imported for user %s: %s events", cal.id, user_id, cal.events_count)
    return cal


async def sync_calendar(
    session: AsyncSession,
    calendar_id: int,
    *,
    fetcher: CalendarFetcher,
    today: date | None = None,
) -> ImportedCalendar:
    """
    Re-read an imported calendar and replace its blocks.

    Fetch and parse failures put the calendar in `error` (kept blocks stay)
    instead of raising.
    """
    today = today or utcnow().date()
    cal = await session.get(ImportedCalendar, calendar_id)
    if not cal:
        raise NotFound(f"Calendar {calendar_id} not found")

    cal.status = CalendarStatus.syncing
    await session.flush()

    try:
        content = await fetcher(cal.url)
        events = _parse_feed(content)
    except (CalendarFetchError, ValidationFailed) as e:
        cal.status = CalendarStatus.error
        cal.error_message = str(e)
        await session.flush()
        log.warning("calendar %s sync failed: %s", cal.id, e)
        return cal

    await session.execute(delete(CalendarBlock).where(CalendarBlock.source_calendar_id == cal.id))
    blocks = _blocks_for(cal, events, json.loads(cal.listing_ids_json or "[]"), today)
    session.add_all(blocks)

    cal.events_count = len({b.external_event_uid for b in blocks})
    cal.status = CalendarStatus.active
    cal.error_message = None
    cal.last_sync = utcnow()
    await session.flush()
    return cal


async def sync_all_calendars(
    session: AsyncSession, *, fetcher: CalendarFetcher, today: date | None = None
) -> dict[str, int]:
    ids = (await session.execute(select(ImportedCalendar.id).order_by(ImportedCalendar.id))).scalars().all()
    ok = errors = 0
    for cid in ids:
        cal = await sync_calendar(session, cid, fetcher=fetcher, today=today)
        if cal.status == CalendarStatus.error:
            errors += 1
        else:
            ok += 1
    return {"calendars": len(ids), "synced": ok, "errors": errors}


async def list_calendars(session: AsyncSession, user_id: int) -> list[ImportedCalendar]:
    stmt = select(ImportedCalendar).where(ImportedCalendar.user_id == user_id).order_by(ImportedCalendar.id)
    return list((await session.execute(stmt)).scalars().all())


async def remove_calendar(session: AsyncSession, calendar_id: int, *, user_id: int | None = None) -> None:
    cal = await session.get(ImportedCalendar, calendar_id)
    if not cal:
        raise NotFound(f"Calendar {calendar_id} not found")
    if user_id is not None and cal.user_id != user_id:
        raise PermissionDenied("Not your calendar")
    await session.execute(delete(CalendarBlock).where(CalendarBlock.source_calendar_id == cal.id))
    await session.delete(cal)
    await session.flush()
