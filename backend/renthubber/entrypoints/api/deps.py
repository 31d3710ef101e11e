# renthubber/entrypoints/api/deps.py
from __future__ import annotations

from fastapi import Header, HTTPException

from ...adapters.clients.ical_fetch import CalendarFetcher, fetch_calendar
from ...adapters.clients.payments import PaymentGateway, build_payment_gateway
from ...config import settings
from ...db import get_session  # noqa: F401  (re-exported for routers)


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    if settings.API_KEY:
        if not x_api_key or x_api_key != settings.API_KEY:
            raise HTTPException(status_code=401, detail="Invalid API key")


def get_payment_gateway() -> PaymentGateway:
    # overridden in tests
    return build_payment_gateway()


def get_calendar_fetcher() -> CalendarFetcher:
    return fetch_calendar
