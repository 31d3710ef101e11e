# renthubber/services/booking_payments.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.clients.payments import PaymentGateway, PaymentGatewayError
from ..domain.periods import utcnow
from ..models import BookingPayment, PaymentKind, PaymentStatus

log = logging.getLogger(__name__)


@dataclass
class CardRefundOutcome:
    requested_cents: int
    refunded_cents: int = 0
    gateway_refund_ids: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def outstanding_cents(self) -> int:
        return self.requested_cents - self.refunded_cents


async def record_payment(
    session: AsyncSession,
    booking_id: int,
    payment_intent_id: str,
    amount_cents: int,
    *,
    kind: PaymentKind = PaymentKind.booking,
    status: PaymentStatus = PaymentStatus.paid,
    new_start_at: datetime | None = None,
    new_end_at: datetime | None = None,
    now: datetime | None = None,
) -> BookingPayment:
    now = now or utcnow()
    p = BookingPayment(
        booking_id=booking_id,
        kind=kind,
        payment_intent_id=payment_intent_id,
        amount_cents=amount_cents,
        refunded_cents=0,
        status=status,
        new_start_at=new_start_at,
        new_end_at=new_end_at,
        created_at=now,
        paid_at=now if status == PaymentStatus.paid else None,
    )
    session.add(p)
    await session.flush()
    return p


async def list_payments(
    session: AsyncSession, booking_id: int, status: PaymentStatus | None = None
) -> list[BookingPayment]:
    stmt = select(BookingPayment).where(BookingPayment.booking_id == booking_id).order_by(BookingPayment.id.asc())
    if status is not None:
        stmt = stmt.where(BookingPayment.status == status)
    return list((await session.execute(stmt)).scalars().all())


async def pending_supplement(session: AsyncSession, booking_id: int, payment_intent_id: str) -> BookingPayment | None:
    stmt = (
        select(BookingPayment)
        .where(BookingPayment.booking_id == booking_id)
        .where(BookingPayment.payment_intent_id == payment_intent_id)
        .where(BookingPayment.kind == PaymentKind.date_change)
        .where(BookingPayment.status == PaymentStatus.pending)
    )
    return (await session.execute(stmt)).scalars().first()


async def void_pending(session: AsyncSession, booking_id: int) -> int:
    """Drop supplements nobody paid; their dates are no longer on offer."""
    rows = await list_payments(session, booking_id, PaymentStatus.pending)
    for p in rows:
        p.status = PaymentStatus.voided
    await session.flush()
    return len(rows)


async def card_refundable_cents(session: AsyncSession, booking_id: int) -> int:
    return sum(p.refundable_cents for p in await list_payments(session, booking_id, PaymentStatus.paid))


async def refund_card_payments(
    session: AsyncSession,
    booking_id: int,
    amount_cents: int,
    *,
    gateway: PaymentGateway,
    metadata: dict[str, Any] | None = None,
) -> CardRefundOutcome:
    """
    Refund up to `amount_cents` across the booking's paid intents, oldest first.

    Each intent is refunded at most what it captured. Stops at the first
    gateway error; whatever is left is reported as outstanding.
    """
    out = CardRefundOutcome(requested_cents=max(int(amount_cents), 0))
    left = out.requested_cents

    for p in await list_payments(session, booking_id, PaymentStatus.paid):
        if left <= 0:
            break
        chunk = min(p.refundable_cents, left)
        if chunk <= 0:
            continue
        try:
            gw = await gateway.refund(p.payment_intent_id, chunk, metadata={"booking_id": booking_id, **(metadata or {})})
        except PaymentGatewayError as e:
            log.warning("card refund of %s on %s failed: %s", chunk, p.payment_intent_id, e)
            out.error = str(e)
            break
        p.refunded_cents = (p.refunded_cents or 0) + chunk
        out.refunded_cents += chunk
        out.gateway_refund_ids.append(gw.id)
        left -= chunk

    if left > 0 and out.error is None:
        out.error = "no card payment left to refund"
    await session.flush()
    return out
