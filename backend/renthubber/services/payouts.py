# renthubber/services/payouts.py
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..domain.errors import InvalidState, NotFound, ValidationFailed
from ..domain.money import fmt_eur
from ..domain.periods import utcnow
from ..models import PayoutRequest, PayoutStatus, TxSource, WalletType
from . import wallet as wallet_service

log = logging.getLogger(__name__)


async def request_payout(session: AsyncSession, hubber_id: int, amount_cents: int) -> PayoutRequest:
    """The amount leaves the hubber wallet at request time; a rejection gives it back."""
    if amount_cents < settings.MIN_PAYOUT_CENTS:
        raise ValidationFailed(f"Minimum payout is {fmt_eur(settings.MIN_PAYOUT_CENTS)}")

    pending = (
        await session.execute(
            select(PayoutRequest.id)
            .where(PayoutRequest.hubber_id == hubber_id)
            .where(PayoutRequest.status.in_([PayoutStatus.pending, PayoutStatus.approved]))
        )
    ).first()
    if pending:
        raise InvalidState("A payout request is already in progress")

    p = PayoutRequest(hubber_id=hubber_id, amount_cents=amount_cents, status=PayoutStatus.pending)
    session.add(p)
    await session.flush()

    await wallet_service.debit(
        session,
        hubber_id,
        amount_cents,
        wallet_type=WalletType.hubber,
        source=TxSource.payout_request,
        description=f"Payout request #{p.id}",
    )
    log.info("payout %s requested by hubber %s: %s cents", p.id, hubber_id, amount_cents)
    return p


async def _get(session: AsyncSession, payout_id: int) -> PayoutRequest:
    p = await session.get(PayoutRequest, payout_id)
    if not p:
        raise NotFound(f"Payout {payout_id} not found")
    return p


async def approve_payout(session: AsyncSession, payout_id: int, *, notes: str | None = None) -> PayoutRequest:
    p = await _get(session, payout_id)
    if p.status != PayoutStatus.pending:
        raise InvalidState(f"Payout is {p.status.value}")
    p.status = PayoutStatus.approved
    p.approved_at = utcnow()
    if notes:
        p.admin_notes = notes
    await session.flush()
    return p


async def mark_paid(session: AsyncSession, payout_id: int, *, transfer_reference: str) -> PayoutRequest:
    if not (transfer_reference or "").strip():
        raise ValidationFailed("transfer_reference is required")
    p = await _get(session, payout_id)
    if p.status not in (PayoutStatus.pending, PayoutStatus.approved):
        raise InvalidState(f"Payout is {p.status.value}")
    now = utcnow()
    p.status = PayoutStatus.paid
    p.approved_at = p.approved_at or now
    p.paid_at = now
    p.transfer_reference = transfer_reference.strip()
    await session.flush()
    return p


async def reject_payout(session: AsyncSession, payout_id: int, *, notes: str | None = None) -> PayoutRequest:
    p = await _get(session, payout_id)
    if p.status not in (PayoutStatus.pending, PayoutStatus.approved):
        raise InvalidState(f"Payout is {p.status.value}")
    p.status = PayoutStatus.rejected
    p.admin_notes = notes
    await session.flush()

    await wallet_service.credit(
        session,
        p.hubber_id,
        p.amount_cents,
        wallet_type=WalletType.hubber,
        source=TxSource.payout_reversal,
        description=f"Payout request #{p.id} rejected",
    )
    return p


async def list_payouts(
    session: AsyncSession, *, hubber_id: int | None = None, status: PayoutStatus | None = None
) -> list[PayoutRequest]:
    stmt = select(PayoutRequest).order_by(PayoutRequest.id.desc())
    if hubber_id is not None:
        stmt = stmt.where(PayoutRequest.hubber_id == hubber_id)
    if status is not None:
        stmt = stmt.where(PayoutRequest.status == status)
    return list((await session.execute(stmt)).scalars().all())
