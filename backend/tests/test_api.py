# tests/test_api.py
from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from helpers import FakeGateway
from renthubber.config import settings
from renthubber.domain.periods import utcnow
from renthubber.entrypoints.api.deps import get_payment_gateway, get_session
from renthubber.entrypoints.fastapi_app import create_app


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
async def client(async_session_maker, fake_gateway, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", None)
    app = create_app(create_tables=False)

    async def _session():
        async with async_session_maker() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _user(client: httpx.AsyncClient, name: str) -> dict:
    r = await client.post("/users", json={"name": name, "email": f"{name.lower()}@example.com"})
    assert r.status_code == 201, r.text
    return r.json()


def _window(days_ahead: int = 10, nights: int = 3) -> tuple[str, str]:
    start = (utcnow() + timedelta(days=days_ahead)).replace(hour=10, minute=0, second=0, microsecond=0)
    return start.isoformat(), (start + timedelta(days=nights)).isoformat()


@pytest.fixture
async def marketplace(client):
    hubber = await _user(client, "Giulia")
    renter = await _user(client, "Marco")
    r = await client.post(
        "/listings",
        json={
            "owner_id": hubber["id"],
            "title": "Trapano Bosch",
            "price_cents": 5000,
            "price_unit": "day",
            "city": "Milano",
            "publish": True,
        },
    )
    assert r.status_code == 201, r.text
    return {"hubber": hubber, "renter": renter, "listing": r.json()}


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_quote_book_and_cancel(client, marketplace, fake_gateway):
    start, end = _window()
    req = {"listing_id": marketplace["listing"]["id"], "renter_id": marketplace["renter"]["id"], "start_at": start, "end_at": end}

    r = await client.post("/bookings/quote", json=req)
    assert r.status_code == 200, r.text
    q = r.json()
    assert (q["units"], q["subtotal_cents"], q["renter_fee_cents"], q["total_cents"]) == (3, 15000, 1700, 16700)
    assert q["card_cents"] == 16700

    r = await client.post("/bookings", json=req)
    assert r.status_code == 201, r.text
    booking = r.json()
    assert booking["status"] == "confirmed"
    assert booking["payment_intent_id"] == fake_gateway.intents[0]["id"]

    # same dates again
    r = await client.post("/bookings", json=req)
    assert r.status_code == 409
    assert r.json()["error_type"] == "Conflict"

    r = await client.post(f"/bookings/{booking['id']}/cancel", json={"renter_id": marketplace["renter"]["id"]})
    assert r.status_code == 200, r.text
    res = r.json()
    assert res["refund_percentage"] == 100
    assert res["wallet_refunded_cents"] == 16700

    r = await client.post(f"/bookings/{booking['id']}/cancel", json={"renter_id": marketplace["renter"]["id"]})
    assert r.status_code == 409
    assert r.json()["error_type"] == "InvalidState"


@pytest.mark.asyncio
async def test_domain_errors_map_to_status_codes(client, marketplace):
    r = await client.get("/bookings/999")
    assert r.status_code == 404
    assert r.json() == {"detail": "Booking 999 not found", "error_type": "NotFound"}

    start, end = _window()
    r = await client.post(
        "/bookings",
        json={"listing_id": marketplace["listing"]["id"], "renter_id": marketplace["hubber"]["id"], "start_at": start, "end_at": end},
    )
    assert r.status_code == 403
    assert r.json()["error_type"] == "PermissionDenied"


@pytest.mark.asyncio
async def test_card_failure_is_502(client, marketplace, fake_gateway):
    fake_gateway.fail = True
    start, end = _window()
    r = await client.post(
        "/bookings",
        json={"listing_id": marketplace["listing"]["id"], "renter_id": marketplace["renter"]["id"], "start_at": start, "end_at": end},
    )
    assert r.status_code == 502
    assert r.json()["error_type"] == "PaymentFailed"

    r = await client.get("/bookings", params={"renter_id": marketplace["renter"]["id"]})
    assert r.json() == []


@pytest.mark.asyncio
async def test_modify_then_confirm_supplement(client, marketplace, fake_gateway):
    renter_id = marketplace["renter"]["id"]
    start, end = _window()
    r = await client.post(
        "/bookings", json={"listing_id": marketplace["listing"]["id"], "renter_id": renter_id, "start_at": start, "end_at": end}
    )
    booking = r.json()
    _, longer_end = _window(nights=4)

    r = await client.post(
        f"/bookings/{booking['id']}/modify",
        json={"renter_id": renter_id, "new_start": start, "new_end": longer_end, "payment_method": "wallet"},
    )
    assert r.status_code == 402
    assert r.json()["error_type"] == "InsufficientFunds"

    r = await client.post(
        f"/bookings/{booking['id']}/modify", json={"renter_id": renter_id, "new_start": start, "new_end": longer_end}
    )
    assert r.status_code == 200, r.text
    res = r.json()
    assert res["applied"] is False
    assert res["charge_extra_cents"] == 5500
    assert res["extra_payment_intent_id"] == fake_gateway.intents[-1]["id"]
    assert (await client.get(f"/bookings/{booking['id']}")).json()["amount_total_cents"] == 16700

    r = await client.post(
        f"/bookings/{booking['id']}/modify/confirm",
        json={"renter_id": renter_id, "payment_intent_id": res["extra_payment_intent_id"]},
    )
    assert r.status_code == 200, r.text
    assert r.json()["amount_total_cents"] == 22200

    r = await client.post(
        f"/bookings/{booking['id']}/modify/confirm",
        json={"renter_id": renter_id, "payment_intent_id": res["extra_payment_intent_id"]},
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_ical_feed_requires_token(client, marketplace):
    hubber_id = marketplace["hubber"]["id"]
    start, end = _window()
    r = await client.post(
        "/bookings",
        json={"listing_id": marketplace["listing"]["id"], "renter_id": marketplace["renter"]["id"], "start_at": start, "end_at": end},
    )
    assert r.status_code == 201, r.text

    r = await client.get(f"/users/{hubber_id}/calendar/export")
    url = r.json()["url"]
    token = parse_qs(urlsplit(url).query)["token"][0]

    r = await client.get(f"/ical/{hubber_id}.ics", params={"token": token})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/calendar")
    assert "Trapano Bosch" in r.text
    assert "STATUS:CONFIRMED" in r.text

    r = await client.get(f"/ical/{hubber_id}.ics", params={"token": "nope"})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_admin_routes_need_api_key(client, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "letmein")

    r = await client.get("/admin/fees")
    assert r.status_code == 401

    r = await client.put("/admin/fees", json={"renter_pct": 12}, headers={"X-API-Key": "letmein"})
    assert r.status_code == 200, r.text
    assert r.json()["renter_pct"] == 12


@pytest.mark.asyncio
async def test_integration_lifecycle(client):
    r = await client.post("/integrations", json={"name": "zapier", "url": "https://hooks.example/a"})
    assert r.status_code == 201, r.text
    integ = r.json()
    assert integ["enabled"] is True

    r = await client.post("/integrations", json={"name": "zapier", "url": "https://hooks.example/b"})
    assert r.status_code == 409

    r = await client.post(f"/integrations/{integ['id']}/disable")
    assert r.status_code == 204
    r = await client.get("/integrations")
    assert [i["enabled"] for i in r.json()] == [False]

    r = await client.post("/integrations/999/disable")
    assert r.status_code == 404
