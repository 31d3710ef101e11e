# renthubber/adapters/clients/ical_fetch.py
from __future__ import annotations

from typing import Awaitable, Callable

import httpx

from ...config import settings
from .http_resilience import resilient_request

CalendarFetcher = Callable[[str], Awaitable[str]]


class CalendarFetchError(RuntimeError):
    pass


def normalize_calendar_url(url: str) -> str:
    # Airbnb/Booking hand out webcal:// links
    u = url.strip()
    if u.lower().startswith("webcal://"):
        return "https://" + u[len("webcal://"):]
    return u


async def fetch_calendar(url: str) -> str:
    target = normalize_calendar_url(url)
    if not target.lower().startswith(("http://", "https://")):
        raise CalendarFetchError(f"unsupported calendar url: {url}")
    try:
        resp = await resilient_request(
            "GET",
            target,
            headers={"Accept": "text/calendar, text/plain;q=0.9, */*;q=0.1"},
            timeout_s=settings.ICAL_FETCH_TIMEOUT_S,
            max_retries=1,
        )
    except httpx.HTTPError as e:
        raise CalendarFetchError(f"calendar fetch failed: {e}") from e
    return resp.text
