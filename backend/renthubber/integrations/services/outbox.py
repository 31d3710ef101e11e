# renthubber/integrations/services/outbox.py
from __future__ import annotations

import asyncio
import json
import logging
import random
from datetime import timedelta
from typing import Any, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...domain.periods import utcnow
from ...models import Integration, IntegrationType, OutboxEvent, OutboxStatus
from ..base import EventSink
from ..webhook import WebhookSink

log = logging.getLogger(__name__)


async def enqueue_event(session: AsyncSession, event_type: str, payload: dict[str, Any]) -> OutboxEvent:
    """Written in the caller's transaction; delivered later by the dispatcher."""
    ev = OutboxEvent(
        event_type=event_type,
        payload_json=json.dumps(payload, default=str),
        status=OutboxStatus.pending,
        attempts=0,
        last_error=None,
        next_attempt_at=None,
    )
    session.add(ev)
    await session.flush()
    return ev


async def build_sinks(session: AsyncSession) -> list[EventSink]:
    sinks: list[EventSink] = []
    rows = (await session.execute(select(Integration).where(Integration.enabled == True))).scalars().all()  # noqa: E712
    for integ in rows:
        if integ.type != IntegrationType.webhook:
            continue
        cfg = json.loads(integ.config_json or "{}")
        url = cfg.get("url")
        if not url:
            continue
        sinks.append(WebhookSink(url=url, secret=cfg.get("secret")))
    return sinks


def compute_backoff_seconds(attempts_after_increment: int) -> float:
    """
    Exponential backoff with jitter.
    attempts_after_increment: 1,2,3,... (after we increment attempts)
    """
    base = float(settings.OUTBOX_BACKOFF_BASE_SECONDS)
    exp = base * (2 ** max(0, attempts_after_increment - 1))
    capped = min(exp, float(settings.OUTBOX_BACKOFF_CAP_SECONDS))
    jitter = random.uniform(0.0, min(base, capped))
    return capped + jitter


async def dispatch_pending_events(
    session: AsyncSession,
    batch_size: int | None = None,
    max_attempts: int | None = None,
    rps: float | None = None,
    sinks: Sequence[EventSink] | None = None,
) -> dict[str, Any]:
    """
    Dispatch outbox events to enabled sinks.

    Quiet by default: with no enabled sinks it returns without any HTTP call.
    Failures get exponential backoff + jitter in next_attempt_at and the
    event is marked failed once max attempts is reached.
    """
    batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
    max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS
    rps = settings.OUTBOX_WEBHOOK_RPS if rps is None else rps

    if sinks is None:
        sinks = await build_sinks(session)
    if not sinks:
        return {"delivered": 0, "failed": 0, "retrying": 0, "sinks": 0, "events": 0, "skipped_no_sinks": 1}

    now = utcnow()
    stmt = (
        select(OutboxEvent)
        .where(OutboxEvent.status == OutboxStatus.pending)
        .where(OutboxEvent.attempts < max_attempts)
        .where(or_(OutboxEvent.next_attempt_at.is_(None), OutboxEvent.next_attempt_at <= now))
        .order_by(OutboxEvent.id.asc())
        .limit(batch_size)
    )
    events = (await session.execute(stmt)).scalars().all()

    delivered = failed = retrying = 0
    delay = 0.0 if rps <= 0 else (1.0 / rps)

    for ev in events:
        payload = json.loads(ev.payload_json)

        ok_all = True
        last_err = None
        for sink in sinks:
            res = await sink.deliver(ev.event_type, {"event_id": ev.id, **payload})
            if delay > 0:
                await asyncio.sleep(delay)
            if not res.ok:
                ok_all = False
                last_err = res.error

        ev.attempts += 1
        ev.last_error = last_err

        if ok_all:
            ev.status = OutboxStatus.delivered
            ev.delivered_at = utcnow()
            ev.next_attempt_at = None
            delivered += 1
        elif ev.attempts >= max_attempts:
            ev.status = OutboxStatus.failed
            ev.next_attempt_at = None
            failed += 1
            log.warning("outbox event %s (%s) failed permanently: %s", ev.id, ev.event_type, last_err)
        else:
            ev.next_attempt_at = utcnow() + timedelta(seconds=compute_backoff_seconds(ev.attempts))
            retrying += 1

        await session.flush()

    return {
        "delivered": delivered,
        "failed": failed,
        "retrying": retrying,
        "sinks": len(sinks),
        "events": len(events),
        "skipped_no_sinks": 0,
    }
