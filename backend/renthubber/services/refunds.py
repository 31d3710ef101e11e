# renthubber/services/refunds.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.clients.payments import PaymentGateway
from ..domain.errors import InvalidState, NotFound, PaymentFailed, ValidationFailed
from ..domain.periods import utcnow
from ..domain.types import CancelledBy, RefundMethod
from ..models import Booking, Refund, RefundStatus
from . import booking_payments as payment_service
from . import wallet as wallet_service

log = logging.getLogger(__name__)


async def get_refund(session: AsyncSession, refund_id: int) -> Refund:
    r = await session.get(Refund, refund_id)
    if not r:
        raise NotFound(f"Refund {refund_id} not found")
    return r


async def list_refunds(session: AsyncSession, status: RefundStatus | None = None, limit: int = 200) -> list[Refund]:
    stmt = select(Refund).order_by(Refund.requested_at.desc(), Refund.id.desc()).limit(limit)
    if status is not None:
        stmt = stmt.where(Refund.status == status)
    return list((await session.execute(stmt)).scalars().all())


async def refund_stats(session: AsyncSession) -> dict[str, Any]:
    rows = (
        await session.execute(
            select(Refund.status, func.count(Refund.id), func.coalesce(func.sum(Refund.refund_amount_cents), 0)).group_by(
                Refund.status
            )
        )
    ).all()
    out: dict[str, Any] = {s.value: {"count": 0, "amount_cents": 0} for s in RefundStatus}
    for status, cnt, amount in rows:
        out[status.value] = {"count": int(cnt), "amount_cents": int(amount)}
    return out


async def create_refund(
    session: AsyncSession,
    booking_id: int,
    amount_cents: int,
    *,
    reason: str | None = None,
    admin_id: int | None = None,
    now: datetime | None = None,
) -> Refund:
    """Refund opened by support outside the cancellation flow."""
    b = await session.get(Booking, booking_id)
    if not b:
        raise NotFound(f"Booking {booking_id} not found")
    if amount_cents <= 0 or amount_cents > b.amount_total_cents:
        raise ValidationFailed("refund amount must be between 0 and the booking total")

    r = Refund(
        booking_id=b.id,
        renter_id=b.renter_id,
        hubber_id=b.hubber_id,
        original_amount_cents=b.amount_total_cents,
        refund_amount_cents=amount_cents,
        card_amount_cents=0,
        cancellation_reason=reason,
        cancelled_by=CancelledBy.admin,
        status=RefundStatus.pending,
        admin_notes=f"opened by admin {admin_id}" if admin_id is not None else None,
        requested_at=now or utcnow(),
    )
    session.add(r)
    await session.flush()
    return r


async def approve_refund(
    session: AsyncSession, refund_id: int, *, admin_id: int | None = None, notes: str | None = None
) -> Refund:
    r = await get_refund(session, refund_id)
    if r.status != RefundStatus.pending:
        raise InvalidState(f"Refund is {r.status.value}")
    r.status = RefundStatus.approved
    r.approved_at = utcnow()
    r.approved_by = admin_id
    if notes:
        r.admin_notes = notes
    await session.flush()
    return r


async def reject_refund(
    session: AsyncSession, refund_id: int, *, reason: str, admin_id: int | None = None
) -> Refund:
    if not (reason or "").strip():
        raise ValidationFailed("A rejection reason is required")
    r = await get_refund(session, refund_id)
    if r.status not in (RefundStatus.pending, RefundStatus.approved):
        raise InvalidState(f"Refund is {r.status.value}")
    r.status = RefundStatus.rejected
    r.rejection_reason = reason.strip()
    r.processed_by = admin_id
    await session.flush()
    return r


async def process_refund(
    session: AsyncSession,
    refund_id: int,
    *,
    method: RefundMethod,
    gateway: PaymentGateway,
    admin_id: int | None = None,
    now: datetime | None = None,
) -> Refund:
    """
    Pay out a pending/approved refund.

    wallet: credit the renter's wallet. card: refund through the gateway across
    the booking's paid intents; a partial refund leaves the rest pending.
    manual: money moved outside the platform.
    """
    now = now or utcnow()
    r = await get_refund(session, refund_id)
    if r.status not in (RefundStatus.pending, RefundStatus.approved):
        raise InvalidState(f"Refund is {r.status.value}")

    if method == RefundMethod.wallet:
        await wallet_service.refund_to_renter(
            session,
            r.renter_id,
            r.refund_amount_cents,
            booking_id=r.booking_id,
            description=f"Refund #{r.id} processed by support",
        )
    elif method == RefundMethod.card:
        b = await session.get(Booking, r.booking_id)
        if not b or await payment_service.card_refundable_cents(session, b.id) <= 0:
            raise InvalidState("Booking has no card payment to refund")
        outcome = await payment_service.refund_card_payments(
            session, b.id, r.refund_amount_cents, gateway=gateway, metadata={"refund_id": r.id}
        )
        if outcome.refunded_cents == 0:
            raise PaymentFailed(f"Card refund failed: {outcome.error}")
        r.gateway_refund_id = ",".join(outcome.gateway_refund_ids)[:120]
        if outcome.outstanding_cents > 0:
            # the part that went through is booked on its own row; this one keeps the rest
            session.add(
                Refund(
                    booking_id=r.booking_id,
                    renter_id=r.renter_id,
                    hubber_id=r.hubber_id,
                    original_amount_cents=r.original_amount_cents,
                    refund_amount_cents=outcome.refunded_cents,
                    card_amount_cents=outcome.refunded_cents,
                    cancellation_reason=r.cancellation_reason,
                    cancelled_by=r.cancelled_by,
                    refund_method=RefundMethod.card,
                    status=RefundStatus.processed,
                    gateway_refund_id=r.gateway_refund_id,
                    requested_at=r.requested_at,
                    processed_at=now,
                    processed_by=admin_id,
                )
            )
            r.gateway_refund_id = None
            r.refund_amount_cents = outcome.outstanding_cents
            r.card_amount_cents = outcome.outstanding_cents
            r.last_error = outcome.error
            await session.flush()
            log.warning("refund %s partly processed, %s cents left: %s", r.id, r.refund_amount_cents, outcome.error)
            return r

    r.refund_method = method
    r.status = RefundStatus.processed
    r.processed_at = now
    r.processed_by = admin_id
    r.last_error = None
    await session.flush()

    log.info("refund %s processed via %s (%s cents)", r.id, method.value, r.refund_amount_cents)
    return r
