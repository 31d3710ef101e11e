# tests/test_domain_ical.py
from datetime import date, datetime

from renthubber.domain.ical import (
    ICalEvent,
    booking_status_to_ical,
    escape_text,
    event_block_range,
    fold_line,
    generate_calendar,
    parse_calendar,
    unescape_text,
)
from renthubber.domain.types import BookingStatus

AIRBNB_FEED = (
    "BEGIN:VCALENDAR\r\n"
    "VERSION:2.0\r\n"
    "PRODID:-//Airbnb Inc//Hosting Calendar//EN\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:abc-123@airbnb.com\r\n"
    "DTSTART;VALUE=DATE:20260105\r\n"
    "DTEND;VALUE=DATE:20260108\r\n"
    "SUMMARY:Reserved for a very long stay with a summary that needs to be folde\r\n"
    " d across lines\r\n"
    "END:VEVENT\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:def-456@airbnb.com\r\n"
    "DTSTART;TZID=Europe/Rome:20260110T140000\r\n"
    "DTEND;TZID=Europe/Rome:20260110T180000\r\n"
    "SUMMARY:Airbnb (Not available)\r\n"
    "STATUS:CANCELLED\r\n"
    "END:VEVENT\r\n"
    "BEGIN:VEVENT\r\n"
    "DTSTART;VALUE=DATE:20260201\r\n"
    "SUMMARY:no uid\r\n"
    "END:VEVENT\r\n"
    "END:VCALENDAR\r\n"
)


def test_parse_calendar_unfolds_and_drops_incomplete_events():
    events = parse_calendar(AIRBNB_FEED)

    assert [e.uid for e in events] == ["abc-123@airbnb.com", "def-456@airbnb.com"]
    assert events[0].summary.endswith("folded across lines")
    assert events[0].dtstart == "20260105"
    assert events[1].dtstart == "20260110"
    assert events[1].status == "CANCELLED"


def test_all_day_dtend_is_exclusive():
    ev = ICalEvent(uid="x", dtstart="20260105", dtend="20260108")
    assert event_block_range(ev) == (date(2026, 1, 5), date(2026, 1, 7))

    same_day = ICalEvent(uid="y", dtstart="20260110", dtend="20260110")
    assert event_block_range(same_day) == (date(2026, 1, 10), date(2026, 1, 10))

    no_end = ICalEvent(uid="z", dtstart="20260110")
    assert event_block_range(no_end) == (date(2026, 1, 10), date(2026, 1, 10))


def test_fold_line_limits_octets_per_line():
    line = "DESCRIPTION:" + "x" * 200
    parts = fold_line(line)

    assert len(parts[0]) == 75
    assert all(p.startswith(" ") and len(p) <= 75 for p in parts[1:])
    assert parts[0] + "".join(p[1:] for p in parts[1:]) == line


def test_escape_roundtrip():
    raw = "Casa, mare; terrazzo\\vista\nsecondo piano"
    assert escape_text(raw) == "Casa\\, mare\\; terrazzo\\\\vista\\nsecondo piano"
    assert unescape_text(escape_text(raw)) == raw


def test_booking_status_mapping():
    assert booking_status_to_ical(BookingStatus.pending) == "TENTATIVE"
    assert booking_status_to_ical(BookingStatus.rejected) == "CANCELLED"
    assert booking_status_to_ical(BookingStatus.completed) == "CONFIRMED"


def test_generate_calendar_is_crlf_and_parseable():
    ev = ICalEvent(
        uid="booking-1@renthubber.com",
        dtstart="20260301",
        dtend="20260304",
        summary="Trapano - Marco",
        description="Booking RH000001\nRenter: Marco",
        status="CONFIRMED",
        categories=["RentHubber", "object"],
    )
    body = generate_calendar([ev], name="RentHubber - Giulia", now=datetime(2026, 2, 1, 8, 30))

    assert body.startswith("BEGIN:VCALENDAR\r\n")
    assert body.endswith("END:VCALENDAR\r\n")
    assert "DTSTAMP:20260201T083000Z" in body
    assert "DTSTART;VALUE=DATE:20260301" in body
    assert "BEGIN:VTIMEZONE" in body

    (parsed,) = parse_calendar(body)
    assert parsed.uid == ev.uid
    assert parsed.description == ev.description
    assert parsed.categories == ["RentHubber", "object"]
