# tests/test_outbox_webhook.py
import json

import httpx
import pytest
from sqlalchemy import select

from renthubber.config import settings
from renthubber.integrations.services.outbox import compute_backoff_seconds, dispatch_pending_events, enqueue_event
from renthubber.integrations.services.sinks import create_webhook_integration, disable_integration, update_integration
from renthubber.integrations.webhook import SIGNATURE_HEADER, TIMESTAMP_HEADER, WebhookSink, sign_body
from renthubber.domain.errors import Conflict
from renthubber.models import OutboxEvent, OutboxStatus


@pytest.fixture(autouse=True)
def _no_rate_limit(monkeypatch):
    monkeypatch.setattr(settings, "HTTP_RATE_LIMIT_RPS", 0.0)


def _recording_transport(status: int = 200):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, text="ok" if status < 400 else "boom")

    return httpx.MockTransport(handler), seen


@pytest.mark.asyncio
async def test_no_sinks_means_no_work(session):
    await enqueue_event(session, "booking.created", {"booking_id": 1})

    res = await dispatch_pending_events(session, rps=0)
    assert res["skipped_no_sinks"] == 1

    ev = (await session.execute(select(OutboxEvent))).scalars().one()
    assert ev.status == OutboxStatus.pending
    assert ev.attempts == 0


@pytest.mark.asyncio
async def test_webhook_delivery_is_signed(session):
    transport, seen = _recording_transport()
    sink = WebhookSink("https://hooks.example/renthubber", secret="s3cret", transport=transport)
    ev = await enqueue_event(session, "booking.cancelled", {"booking_id": 9, "refund_percentage": 50})

    res = await dispatch_pending_events(session, rps=0, sinks=[sink])

    assert res["delivered"] == 1
    assert ev.status == OutboxStatus.delivered
    assert ev.delivered_at is not None

    req = seen[0]
    body = json.loads(req.content)
    assert body == {"type": "booking.cancelled", "data": {"event_id": ev.id, "booking_id": 9, "refund_percentage": 50}}
    ts = req.headers[TIMESTAMP_HEADER]
    assert req.headers[SIGNATURE_HEADER] == sign_body("s3cret", ts, req.content)


@pytest.mark.asyncio
async def test_failed_delivery_backs_off_then_gives_up(session):
    transport, seen = _recording_transport(status=500)
    sink = WebhookSink("https://hooks.example/down", transport=transport)
    ev = await enqueue_event(session, "booking.created", {"booking_id": 1})

    res = await dispatch_pending_events(session, rps=0, sinks=[sink], max_attempts=2)
    assert res["retrying"] == 1
    assert ev.attempts == 1
    assert ev.status == OutboxStatus.pending
    assert ev.next_attempt_at is not None
    assert ev.last_error.startswith("HTTP 500")
    # one attempt per dispatch, the outbox owns retries
    assert len(seen) == 1

    # not due yet
    res = await dispatch_pending_events(session, rps=0, sinks=[sink], max_attempts=2)
    assert res["events"] == 0

    ev.next_attempt_at = None
    res = await dispatch_pending_events(session, rps=0, sinks=[sink], max_attempts=2)
    assert res["failed"] == 1
    assert ev.status == OutboxStatus.failed


def test_backoff_grows_and_caps(monkeypatch):
    monkeypatch.setattr(settings, "OUTBOX_BACKOFF_BASE_SECONDS", 5.0)
    monkeypatch.setattr(settings, "OUTBOX_BACKOFF_CAP_SECONDS", 60.0)

    assert 5.0 <= compute_backoff_seconds(1) <= 10.0
    assert 20.0 <= compute_backoff_seconds(3) <= 25.0
    assert 60.0 <= compute_backoff_seconds(10) <= 65.0


@pytest.mark.asyncio
async def test_integration_admin(session):
    integ = await create_webhook_integration(session, name="zapier", url="https://hooks.example/a", secret="x")
    assert integ.enabled is False

    with pytest.raises(Conflict):
        await create_webhook_integration(session, name="zapier", url="https://hooks.example/b")

    await update_integration(session, integ.id, enabled=True, url="https://hooks.example/c")
    assert integ.enabled is True
    assert json.loads(integ.config_json) == {"url": "https://hooks.example/c", "secret": "x"}

    assert await disable_integration(session, name="zapier") is True
    assert integ.enabled is False
    assert await disable_integration(session, name="missing") is False
