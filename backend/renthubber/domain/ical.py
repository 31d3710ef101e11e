from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from .types import BookingStatus

PRODID = "-//RentHubber//Calendar//IT"
ICAL_STATUSES = ("CONFIRMED", "TENTATIVE", "CANCELLED")

_MAX_LINE = 75

_VTIMEZONE_ROME = [
    "BEGIN:VTIMEZONE",
    "TZID:Europe/Rome",
    "BEGIN:DAYLIGHT",
    "TZOFFSETFROM:+0100",
    "TZOFFSETTO:+0200",
    "TZNAME:CEST",
    "DTSTART:19700329T020000",
    "RRULE:FREQ=YEARLY;BYMONTH=3;BYDAY=-1SU",
    "END:DAYLIGHT",
    "BEGIN:STANDARD",
    "TZOFFSETFROM:+0200",
    "TZOFFSETTO:+0100",
    "TZNAME:CET",
    "DTSTART:19701025T030000",
    "RRULE:FREQ=YEARLY;BYMONTH=10;BYDAY=-1SU",
    "END:STANDARD",
    "END:VTIMEZONE",
]


@dataclass
class ICalEvent:
    uid: str
    dtstart: str  # YYYYMMDD
    dtend: str | None = None
    summary: str = ""
    description: str | None = None
    location: str | None = None
    status: str | None = None
    categories: list[str] = field(default_factory=list)
    created: str | None = None
    last_modified: str | None = None


def format_date(d: date, *, add_days: int = 0) -> str:
    return (d + timedelta(days=add_days)).strftime("%Y%m%d")


def format_datetime(dt: datetime) -> str:
    # naive datetimes are UTC throughout the app
    return dt.strftime("%Y%m%dT%H%M%SZ")


def parse_date(value: str) -> str:
    """Reduce DATE / DATE-TIME values (with or without params) to YYYYMMDD."""
    s = value.split(":")[-1].strip()
    if len(s) >= 8:
        return s[:8]
    return s


def to_date(yyyymmdd: str) -> date:
    return date(int(yyyymmdd[0:4]), int(yyyymmdd[4:6]), int(yyyymmdd[6:8]))


def escape_text(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r", "")
        .replace("\n", "\\n")
    )


def unescape_text(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            out.append("\n" if nxt in "nN" else nxt)
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def fold_line(line: str) -> list[str]:
    """RFC 5545: 75 chars on the first line, then a space plus 74 chars."""
    if len(line) <= _MAX_LINE:
        return [line]
    parts = [line[:_MAX_LINE]]
    rest = line[_MAX_LINE:]
    while rest:
        parts.append(" " + rest[: _MAX_LINE - 1])
        rest = rest[_MAX_LINE - 1:]
    return parts


def booking_status_to_ical(status: BookingStatus) -> str:
    if status == BookingStatus.pending:
        return "TENTATIVE"
    if status in (BookingStatus.cancelled, BookingStatus.rejected):
        return "CANCELLED"
    return "CONFIRMED"


def generate_calendar(
    events: list[ICalEvent],
    *,
    name: str = "RentHubber Calendar",
    description: str = "RentHubber bookings",
    now: datetime,
) -> str:
    stamp = format_datetime(now)
    lines: list[str] = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{escape_text(name)}",
        f"X-WR-CALDESC:{escape_text(description)}",
        "X-WR-TIMEZONE:Europe/Rome",
        *_VTIMEZONE_ROME,
    ]

    for ev in events:
        lines += [
            "BEGIN:VEVENT",
            f"UID:{ev.uid}",
            f"DTSTAMP:{stamp}",
            f"DTSTART;VALUE=DATE:{ev.dtstart}",
            f"DTEND;VALUE=DATE:{ev.dtend or ev.dtstart}",
            f"SUMMARY:{escape_text(ev.summary)}",
        ]
        if ev.description:
            lines.append(f"DESCRIPTION:{escape_text(ev.description)}")
        if ev.location:
            lines.append(f"LOCATION:{escape_text(ev.location)}")
        if ev.status:
            lines.append(f"STATUS:{ev.status}")
        if ev.categories:
            lines.append("CATEGORIES:" + ",".join(escape_text(c) for c in ev.categories))
        if ev.created:
            lines.append(f"CREATED:{ev.created}")
        if ev.last_modified:
            lines.append(f"LAST-MODIFIED:{ev.last_modified}")
        lines += [
            "BEGIN:VALARM",
            "ACTION:DISPLAY",
            "DESCRIPTION:RentHubber booking reminder",
            "TRIGGER:-P1D",
            "END:VALARM",
            "END:VEVENT",
        ]

    lines.append("END:VCALENDAR")

    folded: list[str] = []
    for line in lines:
        folded.extend(fold_line(line))
    return "\r\n".join(folded) + "\r\n"


_UNFOLD = re.compile(r"\r?\n[ \t]")


def parse_calendar(content: str) -> list[ICalEvent]:
    """
    Parse VEVENTs out of an iCal document.

    Events without UID or DTSTART are dropped. Property parameters
    (e.g. `;VALUE=DATE`, `;TZID=...`) are ignored.
    """
    events: list[ICalEvent] = []
    current: dict[str, object] | None = None
    nested = 0  # VALARM and friends inside a VEVENT

    for raw in _UNFOLD.sub("", content).splitlines():
        line = raw.strip()
        if line == "BEGIN:VEVENT":
            current, nested = {}, 0
            continue
        if line == "END:VEVENT":
            if current is not None and current.get("uid") and current.get("dtstart"):
                events.append(ICalEvent(**current))  # type: ignore[arg-type]
            current = None
            continue
        if current is None or ":" not in line:
            continue
        if line.startswith("BEGIN:"):
            nested += 1
            continue
        if line.startswith("END:"):
            nested = max(nested - 1, 0)
            continue
        if nested:
            continue

        prop, value = line.split(":", 1)
        name = prop.split(";")[0].upper()

        if name == "UID":
            current["uid"] = value.strip()
        elif name == "DTSTART":
            current["dtstart"] = parse_date(value)
        elif name == "DTEND":
            current["dtend"] = parse_date(value)
        elif name == "SUMMARY":
            current["summary"] = unescape_text(value)
        elif name == "DESCRIPTION":
            current["description"] = unescape_text(value)
        elif name == "LOCATION":
            current["location"] = unescape_text(value)
        elif name == "STATUS":
            st = value.strip().upper()
            if st in ICAL_STATUSES:
                current["status"] = st
        elif name == "CATEGORIES":
            current["categories"] = [c.strip() for c in unescape_text(value).split(",") if c.strip()]

    return events


def event_block_range(ev: ICalEvent) -> tuple[date, date]:
    """
    Inclusive date range blocked by an imported event.

    DTEND of all-day events is exclusive, so the block ends the day before
    (never before DTSTART).
    """
    start = to_date(ev.dtstart)
    if not ev.dtend:
        return start, start
    end = to_date(ev.dtend)
    if end > start:
        end = end - timedelta(days=1)
    return start, max(start, end)
