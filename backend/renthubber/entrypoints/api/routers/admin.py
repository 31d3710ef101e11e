# renthubber/entrypoints/api/routers/admin.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....adapters.clients.payments import PaymentGateway
from ....domain.errors import ValidationFailed
from ....domain.types import BookingStatus, ListingStatus, RefundMethod
from ....models import OverrideStatus, PayoutStatus, RefundStatus, ReviewStatus, WalletType
from ....schemas import (
    BookingOut,
    BookingStatusSet,
    FeeScheduleIn,
    FeeScheduleOut,
    HubberTermsIn,
    ListingOut,
    OverrideCreate,
    OverrideOut,
    PayoutDecision,
    PayoutOut,
    RefundCreate,
    RefundDecisionIn,
    RefundOut,
    RefundProcessIn,
    ReviewModeration,
    ReviewOut,
    UserOut,
    WalletAdjustment,
    WalletTxOut,
)
from ....services import bookings as booking_service
from ....services import fees as fee_service
from ....services import listings as listing_service
from ....services import payouts as payout_service
from ....services import refunds as refund_service
from ....services import reviews as review_service
from ....services import users as user_service
from ....services import wallet as wallet_service
from ..deps import get_payment_gateway, get_session, require_api_key

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_api_key)])


# -----------------------------
# Fees
# -----------------------------
@router.get("/fees", response_model=FeeScheduleOut)
async def get_fees(session: AsyncSession = Depends(get_session)) -> FeeScheduleOut:
    s = await fee_service.get_schedule(session)
    return FeeScheduleOut(
        renter_pct=s.renter_pct, hubber_pct=s.hubber_pct, super_hubber_pct=s.super_hubber_pct, fixed_fee_cents=s.fixed_fee_cents
    )


@router.put("/fees", response_model=FeeScheduleOut)
async def update_fees(body: FeeScheduleIn, session: AsyncSession = Depends(get_session)) -> FeeScheduleOut:
    s = await fee_service.update_schedule(session, **body.model_dump())
    await session.commit()
    return FeeScheduleOut(
        renter_pct=s.renter_pct, hubber_pct=s.hubber_pct, super_hubber_pct=s.super_hubber_pct, fixed_fee_cents=s.fixed_fee_cents
    )


@router.post("/users/{user_id}/hubber-terms", response_model=UserOut)
async def set_hubber_terms(user_id: int, body: HubberTermsIn, session: AsyncSession = Depends(get_session)) -> UserOut:
    user = await user_service.set_hubber_terms(session, user_id, **body.model_dump())
    await session.commit()
    return UserOut.model_validate(user)


@router.get("/overrides", response_model=list[OverrideOut])
async def list_overrides(
    user_id: int | None = Query(None),
    status: OverrideStatus | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[OverrideOut]:
    rows = await fee_service.list_overrides(session, user_id=user_id, status=status)
    return [OverrideOut.model_validate(o) for o in rows]


@router.post("/overrides", response_model=OverrideOut, status_code=201)
async def create_override(body: OverrideCreate, session: AsyncSession = Depends(get_session)) -> OverrideOut:
    ov = await fee_service.create_override(
        session,
        body.user_id,
        duration_days=body.duration_days,
        fees_disabled=body.fees_disabled,
        custom_renter_fee=body.custom_renter_fee,
        custom_hubber_fee=body.custom_hubber_fee,
        max_transaction_cents=body.max_transaction_cents,
        reason=body.reason,
        notes=body.notes,
        created_by=body.admin_id,
    )
    await session.commit()
    return OverrideOut.model_validate(ov)


@router.post("/overrides/{override_id}/revoke", response_model=OverrideOut)
async def revoke_override(
    override_id: int, admin_id: int | None = Query(None), session: AsyncSession = Depends(get_session)
) -> OverrideOut:
    ov = await fee_service.revoke_override(session, override_id, revoked_by=admin_id)
    await session.commit()
    return OverrideOut.model_validate(ov)


# -----------------------------
# Refunds
# -----------------------------
@router.get("/refunds", response_model=list[RefundOut])
async def list_refunds(
    status: RefundStatus | None = Query(None), session: AsyncSession = Depends(get_session)
) -> list[RefundOut]:
    return [RefundOut.model_validate(r) for r in await refund_service.list_refunds(session, status)]


@router.get("/refunds/stats")
async def refund_stats(session: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return await refund_service.refund_stats(session)


@router.post("/refunds", response_model=RefundOut, status_code=201)
async def create_refund(body: RefundCreate, session: AsyncSession = Depends(get_session)) -> RefundOut:
    r = await refund_service.create_refund(
        session, body.booking_id, body.amount_cents, reason=body.reason, admin_id=body.admin_id
    )
    await session.commit()
    return RefundOut.model_validate(r)


@router.post("/refunds/{refund_id}/approve", response_model=RefundOut)
async def approve_refund(
    refund_id: int, body: RefundDecisionIn, session: AsyncSession = Depends(get_session)
) -> RefundOut:
    r = await refund_service.approve_refund(session, refund_id, admin_id=body.admin_id, notes=body.notes)
    await session.commit()
    return RefundOut.model_validate(r)


@router.post("/refunds/{refund_id}/reject", response_model=RefundOut)
async def reject_refund(
    refund_id: int, body: RefundDecisionIn, session: AsyncSession = Depends(get_session)
) -> RefundOut:
    r = await refund_service.reject_refund(session, refund_id, reason=body.notes or "", admin_id=body.admin_id)
    await session.commit()
    return RefundOut.model_validate(r)


@router.post("/refunds/{refund_id}/process", response_model=RefundOut)
async def process_refund(
    refund_id: int,
    body: RefundProcessIn,
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> RefundOut:
    r = await refund_service.process_refund(
        session, refund_id, method=RefundMethod(body.method), gateway=gateway, admin_id=body.admin_id
    )
    await session.commit()
    return RefundOut.model_validate(r)


# -----------------------------
# Payouts
# -----------------------------
@router.get("/payouts", response_model=list[PayoutOut])
async def list_payouts(
    status: PayoutStatus | None = Query(None), session: AsyncSession = Depends(get_session)
) -> list[PayoutOut]:
    return [PayoutOut.model_validate(p) for p in await payout_service.list_payouts(session, status=status)]


@router.post("/payouts/{payout_id}/approve", response_model=PayoutOut)
async def approve_payout(payout_id: int, body: PayoutDecision, session: AsyncSession = Depends(get_session)) -> PayoutOut:
    p = await payout_service.approve_payout(session, payout_id, notes=body.notes)
    await session.commit()
    return PayoutOut.model_validate(p)


@router.post("/payouts/{payout_id}/paid", response_model=PayoutOut)
async def mark_paid(payout_id: int, body: PayoutDecision, session: AsyncSession = Depends(get_session)) -> PayoutOut:
    p = await payout_service.mark_paid(session, payout_id, transfer_reference=body.transfer_reference or "")
    await session.commit()
    return PayoutOut.model_validate(p)


@router.post("/payouts/{payout_id}/reject", response_model=PayoutOut)
async def reject_payout(payout_id: int, body: PayoutDecision, session: AsyncSession = Depends(get_session)) -> PayoutOut:
    p = await payout_service.reject_payout(session, payout_id, notes=body.notes)
    await session.commit()
    return PayoutOut.model_validate(p)


# -----------------------------
# Wallets / bookings / moderation
# -----------------------------
@router.post("/users/{user_id}/wallet/adjust", response_model=WalletTxOut)
async def adjust_wallet(
    user_id: int, body: WalletAdjustment, session: AsyncSession = Depends(get_session)
) -> WalletTxOut:
    move = wallet_service.admin_credit if body.direction == "credit" else wallet_service.admin_debit
    tx = await move(
        session,
        user_id,
        body.amount_cents,
        reason=body.reason,
        wallet_type=WalletType(body.wallet_type),
        admin_id=body.admin_id,
    )
    await session.commit()
    return WalletTxOut.model_validate(tx)


@router.post("/bookings/{booking_id}/status", response_model=BookingOut)
async def set_booking_status(
    booking_id: int, body: BookingStatusSet, session: AsyncSession = Depends(get_session)
) -> BookingOut:
    b = await booking_service.admin_set_status(session, booking_id, BookingStatus(body.status), reason=body.reason)
    await session.commit()
    return BookingOut.model_validate(b)


@router.post("/reviews/{review_id}/status", response_model=ReviewOut)
async def moderate_review(
    review_id: int, body: ReviewModeration, session: AsyncSession = Depends(get_session)
) -> ReviewOut:
    r = await review_service.set_status(session, review_id, ReviewStatus(body.status))
    await session.commit()
    return ReviewOut.model_validate(r)


@router.post("/listings/{listing_id}/status", response_model=ListingOut)
async def set_listing_status(
    listing_id: int, status: ListingStatus = Query(...), session: AsyncSession = Depends(get_session)
) -> ListingOut:
    if status == ListingStatus.draft:
        raise ValidationFailed("Admins publish, hide or suspend listings")
    listing = await listing_service.set_status(session, listing_id, status)
    await session.commit()
    return ListingOut.model_validate(listing)
