# tests/test_http_clients.py
from urllib.parse import parse_qs

import httpx
import pytest

from renthubber.adapters.clients import http_resilience
from renthubber.adapters.clients.http_resilience import CircuitOpenError, resilient_request
from renthubber.adapters.clients.payments import HttpPaymentGateway, NullPaymentGateway, PaymentGatewayError
from renthubber.config import settings


@pytest.fixture(autouse=True)
def _fast_http(monkeypatch):
    monkeypatch.setattr(settings, "HTTP_RATE_LIMIT_RPS", 0.0)
    monkeypatch.setattr(settings, "HTTP_BACKOFF_BASE_S", 0.0)


@pytest.mark.asyncio
async def test_retries_transient_errors():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})

    resp = await resilient_request("GET", "https://api.example/x", max_retries=2, transport=httpx.MockTransport(handler))
    assert resp.json() == {"ok": True}
    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(404)

    with pytest.raises(httpx.HTTPStatusError):
        await resilient_request("GET", "https://api.example/x", max_retries=3, transport=httpx.MockTransport(handler))
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_circuit_opens_per_host(monkeypatch):
    monkeypatch.setattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 2)
    down = httpx.MockTransport(lambda r: httpx.Response(500))
    up = httpx.MockTransport(lambda r: httpx.Response(200))

    for _ in range(2):
        with pytest.raises(httpx.HTTPStatusError):
            await resilient_request("GET", "https://down.example/", max_retries=0, transport=down)

    with pytest.raises(CircuitOpenError):
        await resilient_request("GET", "https://down.example/", max_retries=0, transport=up)
    assert "down.example" in http_resilience._CIRCUITS

    resp = await resilient_request("GET", "https://up.example/", max_retries=0, transport=up)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_payment_gateway_form_requests():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/payment_intents"):
            return httpx.Response(200, json={"id": "pi_123", "amount": 11200, "status": "requires_payment_method"})
        return httpx.Response(200, json={"id": "re_456", "amount": 5500, "status": "succeeded"})

    gw = HttpPaymentGateway("sk_test", base_url="https://pay.example/v1", transport=httpx.MockTransport(handler))

    pi = await gw.create_payment_intent(11200, metadata={"booking_id": 3})
    assert (pi.id, pi.amount_cents) == ("pi_123", 11200)
    form = parse_qs(seen[0].content.decode())
    assert form["amount"] == ["11200"]
    assert form["currency"] == ["eur"]
    assert form["metadata[booking_id]"] == ["3"]
    assert seen[0].headers["Authorization"].startswith("Basic ")

    refund = await gw.refund("pi_123", 5500)
    assert refund.id == "re_456"
    assert parse_qs(seen[1].content.decode())["payment_intent"] == ["pi_123"]


@pytest.mark.asyncio
async def test_payment_gateway_declines_raise():
    transport = httpx.MockTransport(lambda r: httpx.Response(402, json={"error": {"message": "card_declined"}}))
    gw = HttpPaymentGateway("sk_test", base_url="https://pay.example/v1", transport=transport)

    with pytest.raises(PaymentGatewayError, match="HTTP 402"):
        await gw.create_payment_intent(1000)


@pytest.mark.asyncio
async def test_null_gateway_refuses():
    with pytest.raises(PaymentGatewayError):
        await NullPaymentGateway().create_payment_intent(1000)
    with pytest.raises(PaymentGatewayError):
        await NullPaymentGateway().refund("pi_1", 1000)
