# renthubber/entrypoints/api/routers/bookings.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....adapters.clients.payments import PaymentGateway
from ....domain.types import BookingStatus, PaymentMethod, RefundMethod
from ....schemas import (
    BookingCreate,
    BookingOut,
    CancellationOut,
    ConfirmDateChange,
    HubberActionRequest,
    MessageOut,
    ModificationOut,
    ModifyRequest,
    QuoteOut,
    QuoteRequest,
    RenterCancelRequest,
)
from ....services import bookings as booking_service
from ....services.bookings import CancellationResult
from ....services.messages import list_messages
from ..deps import get_payment_gateway, get_session

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _cancellation_out(res: CancellationResult) -> CancellationOut:
    return CancellationOut(
        booking_id=res.booking_id,
        refund_percentage=res.refund_percentage,
        message=res.message,
        wallet_refunded_cents=res.wallet_refunded_cents,
        card_refunded_cents=res.card_refunded_cents,
        card_refund_pending_cents=res.card_refund_pending_cents,
        total_refunded_cents=res.total_refunded_cents,
    )


@router.post("/quote", response_model=QuoteOut)
async def quote(body: QuoteRequest, session: AsyncSession = Depends(get_session)) -> QuoteOut:
    q = await booking_service.quote_booking(
        session,
        listing_id=body.listing_id,
        renter_id=body.renter_id,
        start_at=body.start_at,
        end_at=body.end_at,
        use_wallet=body.use_wallet,
    )
    p = q.price
    return QuoteOut(
        units=p.units,
        unit_price_cents=p.unit_price_cents,
        base_cents=p.base_cents,
        cleaning_fee_cents=p.cleaning_fee_cents,
        subtotal_cents=p.subtotal_cents,
        renter_fee_pct=p.renter_pct,
        renter_fee_cents=p.renter_fee_cents,
        hubber_fee_pct=p.hubber_pct,
        hubber_fee_cents=p.hubber_fee_cents,
        total_cents=p.total_cents,
        hubber_net_cents=p.hubber_net_cents,
        referral_credit_cents=q.credit.referral_cents,
        wallet_credit_cents=q.credit.general_cents,
        card_cents=q.card_cents,
    )


@router.post("", response_model=BookingOut, status_code=201)
async def create_booking(
    body: BookingCreate,
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> BookingOut:
    b = await booking_service.create_booking(
        session,
        listing_id=body.listing_id,
        renter_id=body.renter_id,
        start_at=body.start_at,
        end_at=body.end_at,
        use_wallet=body.use_wallet,
        payment_intent_id=body.payment_intent_id,
        requires_approval=body.requires_approval,
        gateway=gateway,
    )
    await session.commit()
    return BookingOut.model_validate(b)


@router.get("", response_model=list[BookingOut])
async def list_bookings(
    renter_id: int | None = Query(None),
    hubber_id: int | None = Query(None),
    status: BookingStatus | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[BookingOut]:
    if renter_id is not None:
        rows = await booking_service.list_for_renter(session, renter_id, status)
    elif hubber_id is not None:
        rows = await booking_service.list_for_hubber(session, hubber_id, status)
    else:
        rows = []
    return [BookingOut.model_validate(b) for b in rows]


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(booking_id: int, session: AsyncSession = Depends(get_session)) -> BookingOut:
    return BookingOut.model_validate(await booking_service.get_booking(session, booking_id))


@router.get("/{booking_id}/messages", response_model=list[MessageOut])
async def booking_messages(booking_id: int, session: AsyncSession = Depends(get_session)) -> list[MessageOut]:
    await booking_service.get_booking(session, booking_id)
    return [MessageOut.model_validate(m) for m in await list_messages(session, booking_id)]


@router.post("/{booking_id}/cancel", response_model=CancellationOut)
async def cancel_by_renter(
    booking_id: int,
    body: RenterCancelRequest,
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> CancellationOut:
    res = await booking_service.cancel_by_renter(
        session,
        booking_id,
        body.renter_id,
        refund_method=RefundMethod(body.refund_method),
        reason=body.reason,
        gateway=gateway,
    )
    await session.commit()
    return _cancellation_out(res)


@router.post("/{booking_id}/hubber-cancel", response_model=CancellationOut)
async def cancel_by_hubber(
    booking_id: int, body: HubberActionRequest, session: AsyncSession = Depends(get_session)
) -> CancellationOut:
    res = await booking_service.cancel_by_hubber(session, booking_id, body.hubber_id, reason=body.reason)
    await session.commit()
    return _cancellation_out(res)


@router.post("/{booking_id}/accept", response_model=BookingOut)
async def accept(booking_id: int, body: HubberActionRequest, session: AsyncSession = Depends(get_session)) -> BookingOut:
    b = await booking_service.accept_booking(session, booking_id, body.hubber_id)
    await session.commit()
    return BookingOut.model_validate(b)


@router.post("/{booking_id}/reject", response_model=CancellationOut)
async def reject(
    booking_id: int, body: HubberActionRequest, session: AsyncSession = Depends(get_session)
) -> CancellationOut:
    res = await booking_service.reject_booking(session, booking_id, body.hubber_id, reason=body.reason)
    await session.commit()
    return _cancellation_out(res)


@router.post("/{booking_id}/modify", response_model=ModificationOut)
async def modify(
    booking_id: int,
    body: ModifyRequest,
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> ModificationOut:
    res = await booking_service.modify_booking(
        session,
        booking_id,
        body.renter_id,
        new_start=body.new_start,
        new_end=body.new_end,
        gateway=gateway,
        payment_method=PaymentMethod(body.payment_method),
    )
    await session.commit()
    r = res.repricing
    return ModificationOut(
        booking_id=res.booking_id,
        applied=res.applied,
        new_total_cents=r.new_total_cents,
        difference_cents=r.difference_cents,
        card_refunded_cents=res.card_refunded_cents,
        card_refund_pending_cents=res.card_refund_pending_cents,
        wallet_refunded_cents=res.wallet_refunded_cents,
        charge_extra_cents=r.charge_extra_cents,
        wallet_charged_cents=res.wallet_charged_cents,
        extra_payment_intent_id=res.extra_payment_intent_id,
    )


@router.post("/{booking_id}/modify/confirm", response_model=BookingOut)
async def confirm_modification(
    booking_id: int,
    body: ConfirmDateChange,
    session: AsyncSession = Depends(get_session),
) -> BookingOut:
    b = await booking_service.confirm_date_change(session, booking_id, body.renter_id, body.payment_intent_id)
    await session.commit()
    return BookingOut.model_validate(b)
