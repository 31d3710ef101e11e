# tests/test_calendar.py
from datetime import date

import pytest

from helpers import NOW, day
from renthubber.adapters.clients.ical_fetch import CalendarFetchError, normalize_calendar_url
from renthubber.domain.errors import Conflict, PermissionDenied, ValidationFailed
from renthubber.models import CalendarStatus
from renthubber.services import bookings as booking_service
from renthubber.services import calendar as calendar_service

TODAY = NOW.date()

FEED_V1 = """BEGIN:VCALENDAR
VERSION:2.0
BEGIN:VEVENT
UID:stay-1@airbnb.com
DTSTART;VALUE=DATE:20260310
DTEND;VALUE=DATE:20260313
SUMMARY:Reserved
END:VEVENT
BEGIN:VEVENT
UID:stay-2@airbnb.com
DTSTART;VALUE=DATE:20260320
DTEND;VALUE=DATE:20260321
SUMMARY:Owner stay
STATUS:CANCELLED
END:VEVENT
BEGIN:VEVENT
UID:old@airbnb.com
DTSTART;VALUE=DATE:20260101
DTEND;VALUE=DATE:20260105
SUMMARY:Past
END:VEVENT
END:VCALENDAR
"""

FEED_V2 = """BEGIN:VCALENDAR
VERSION:2.0
BEGIN:VEVENT
UID:stay-3@airbnb.com
DTSTART;VALUE=DATE:20260401
DTEND;VALUE=DATE:20260403
SUMMARY:Reserved
END:VEVENT
END:VCALENDAR
"""


def _fetcher(content):
    async def fetch(url: str) -> str:
        return content

    return fetch


async def _failing_fetch(url: str) -> str:
    raise CalendarFetchError("calendar fetch failed: timeout")


@pytest.mark.asyncio
async def test_day_blocks_collapse_and_hold_dates(session, listing, hubber, renter, gateway):
    blocks = await calendar_service.create_day_blocks(
        session,
        listing.id,
        [date(2026, 3, 11), date(2026, 3, 10), date(2026, 3, 13)],
        "Maintenance",
        owner_id=hubber.id,
    )
    assert [(b.start_date, b.end_date) for b in blocks] == [
        (date(2026, 3, 10), date(2026, 3, 11)),
        (date(2026, 3, 13), date(2026, 3, 13)),
    ]

    # March 11 is blocked
    with pytest.raises(Conflict):
        await booking_service.create_booking(
            session, listing_id=listing.id, renter_id=renter.id, start_at=day(9), end_at=day(10), gateway=gateway, now=NOW
        )

    ranges = await calendar_service.unavailable_ranges(session, listing.id, TODAY)
    assert [r.kind for r in ranges] == ["block", "block"]


@pytest.mark.asyncio
async def test_block_ownership_and_validation(session, listing, hubber, renter):
    with pytest.raises(PermissionDenied):
        await calendar_service.create_block(session, listing.id, date(2026, 3, 10), date(2026, 3, 11), owner_id=renter.id)
    with pytest.raises(ValidationFailed):
        await calendar_service.create_block(session, listing.id, date(2026, 3, 11), date(2026, 3, 10), owner_id=hubber.id)

    blk = await calendar_service.create_block(session, listing.id, date(2026, 3, 10), date(2026, 3, 11), owner_id=hubber.id)
    with pytest.raises(PermissionDenied):
        await calendar_service.delete_block(session, blk.id, owner_id=renter.id)
    await calendar_service.delete_block(session, blk.id, owner_id=hubber.id)
    assert await calendar_service.list_blocks(session, listing.id, TODAY) == []


@pytest.mark.asyncio
async def test_export_feed_requires_current_token(session, listing, hubber, renter, gateway):
    kept = await booking_service.create_booking(
        session, listing_id=listing.id, renter_id=renter.id, start_at=day(5), end_at=day(8), gateway=gateway, now=NOW
    )
    dropped = await booking_service.create_booking(
        session, listing_id=listing.id, renter_id=renter.id, start_at=day(10), end_at=day(11), gateway=gateway, now=NOW
    )
    await booking_service.cancel_by_hubber(session, dropped.id, hubber.id, now=NOW)

    url = await calendar_service.get_or_create_export_url(session, hubber.id)
    assert url.startswith(f"https://renthubber.com/ical/{hubber.id}.ics?token=")
    token = url.rsplit("=", 1)[1]
    assert len(token) == calendar_service.TOKEN_LENGTH
    assert await calendar_service.get_or_create_export_url(session, hubber.id) == url

    body = await calendar_service.hubber_feed(session, hubber.id, token, now=NOW)
    assert f"UID:booking-{kept.id}@renthubber.com" in body
    assert f"booking-{dropped.id}@" not in body
    # checkout day included: DTEND is the day after
    assert "DTSTART;VALUE=DATE:20260307" in body
    assert "DTEND;VALUE=DATE:20260311" in body

    with pytest.raises(PermissionDenied):
        await calendar_service.hubber_feed(session, hubber.id, "wrong", now=NOW)

    new_url = await calendar_service.regenerate_export_token(session, hubber.id)
    assert new_url != url
    with pytest.raises(PermissionDenied):
        await calendar_service.hubber_feed(session, hubber.id, token, now=NOW)


@pytest.mark.asyncio
async def test_import_creates_blocks_for_future_events(session, listing, hubber):
    cal = await calendar_service.import_calendar(
        session,
        hubber.id,
        url="webcal://airbnb.example/cal.ics",
        name="Airbnb",
        listing_ids=[listing.id],
        fetcher=_fetcher(FEED_V1),
        today=TODAY,
    )

    assert cal.status == CalendarStatus.active
    assert cal.events_count == 1
    blocks = await calendar_service.list_blocks(session, listing.id, TODAY)
    assert [(b.start_date, b.end_date, b.reason) for b in blocks] == [
        (date(2026, 3, 10), date(2026, 3, 12), "Airbnb: Reserved")
    ]


@pytest.mark.asyncio
async def test_import_rejects_other_peoples_listings_and_bad_feeds(session, listing, renter, hubber):
    with pytest.raises(PermissionDenied):
        await calendar_service.import_calendar(
            session, renter.id, url="https://x/cal.ics", name="x", listing_ids=[listing.id], fetcher=_fetcher(FEED_V1)
        )
    with pytest.raises(ValidationFailed):
        await calendar_service.import_calendar(
            session, hubber.id, url="https://x/cal.ics", name="x", listing_ids=[listing.id], fetcher=_fetcher("<html>")
        )
    with pytest.raises(ValidationFailed):
        await calendar_service.import_calendar(
            session, hubber.id, url="https://x/cal.ics", name="x", listing_ids=[listing.id], fetcher=_failing_fetch
        )


@pytest.mark.asyncio
async def test_sync_replaces_blocks_and_survives_errors(session, listing, hubber):
    cal = await calendar_service.import_calendar(
        session,
        hubber.id,
        url="https://airbnb.example/cal.ics",
        name="Airbnb",
        listing_ids=[listing.id],
        fetcher=_fetcher(FEED_V1),
        today=TODAY,
    )

    broken = await calendar_service.sync_calendar(session, cal.id, fetcher=_failing_fetch, today=TODAY)
    assert broken.status == CalendarStatus.error
    assert "timeout" in broken.error_message
    assert len(await calendar_service.list_blocks(session, listing.id, TODAY)) == 1

    synced = await calendar_service.sync_calendar(session, cal.id, fetcher=_fetcher(FEED_V2), today=TODAY)
    assert synced.status == CalendarStatus.active
    assert synced.error_message is None
    blocks = await calendar_service.list_blocks(session, listing.id, TODAY)
    assert [(b.start_date, b.end_date) for b in blocks] == [(date(2026, 4, 1), date(2026, 4, 2))]

    summary = await calendar_service.sync_all_calendars(session, fetcher=_fetcher(FEED_V2), today=TODAY)
    assert summary == {"calendars": 1, "synced": 1, "errors": 0}

    await calendar_service.remove_calendar(session, cal.id, user_id=hubber.id)
    assert await calendar_service.list_blocks(session, listing.id, TODAY) == []
    assert await calendar_service.list_calendars(session, hubber.id) == []


def test_webcal_urls_become_https():
    assert normalize_calendar_url(" webcal://airbnb.com/cal.ics ") == "https://airbnb.com/cal.ics"
    assert normalize_calendar_url("https://x/cal.ics") == "https://x/cal.ics"
