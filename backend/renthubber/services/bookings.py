# renthubber/services/bookings.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.clients.payments import PaymentGateway, PaymentGatewayError
from ..domain import fees as fee_rules
from ..domain.cancellation import RefundSplit, refund_for_renter_cancellation, split_refund
from ..domain.errors import InvalidState, NotFound, PaymentFailed, PermissionDenied, ValidationFailed
from ..domain.modification import Repricing, StoredPricing, reprice
from ..domain.money import fmt_eur, pct_of
from ..domain.periods import as_naive_utc, billable_units, hours_until, utcnow
from ..domain.types import (
    HUBBER_CANCELLABLE,
    MODIFIABLE,
    RENTER_CANCELLABLE,
    BookingStatus,
    CancelledBy,
    ListingStatus,
    PaymentMethod,
    RefundMethod,
)
from ..integrations.services.outbox import enqueue_event
from ..models import Booking, Listing, PaymentKind, PaymentStatus, Refund, RefundStatus, TxSource, User, UserFeeOverride
from . import booking_payments as payment_service
from . import fees as fee_service
from . import invoices as invoice_service
from . import wallet as wallet_service
from .calendar import ensure_available
from .messages import post_system_message

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingQuote:
    listing_id: int
    start_at: datetime
    end_at: datetime
    price: fee_rules.PriceQuote
    credit: wallet_service.UsableCredit
    renter_override_id: int | None = None
    hubber_override_id: int | None = None

    @property
    def card_cents(self) -> int:
        return self.price.total_cents - self.credit.total_cents


@dataclass(frozen=True)
class CancellationResult:
    booking_id: int
    refund_percentage: int
    message: str
    wallet_refunded_cents: int = 0
    card_refunded_cents: int = 0
    card_refund_pending_cents: int = 0

    @property
    def total_refunded_cents(self) -> int:
        return self.wallet_refunded_cents + self.card_refunded_cents + self.card_refund_pending_cents


@dataclass(frozen=True)
class ModificationResult:
    booking_id: int
    repricing: Repricing
    # False while a card supplement waits for confirmation
    applied: bool = True
    card_refunded_cents: int = 0
    card_refund_pending_cents: int = 0
    wallet_refunded_cents: int = 0
    extra_payment_intent_id: str | None = None
    wallet_charged_cents: int = 0


def _event_payload(b: Booking, **extra: Any) -> dict[str, Any]:
    return {
        "booking_id": b.id,
        "number": b.number,
        "listing_id": b.listing_id,
        "renter_id": b.renter_id,
        "hubber_id": b.hubber_id,
        "status": b.status.value,
        "start_at": b.start_at.isoformat(),
        "end_at": b.end_at.isoformat(),
        "amount_total_cents": b.amount_total_cents,
        **extra,
    }


def _period_label(b: Booking) -> str:
    return f"{b.start_at:%d/%m/%Y} - {b.end_at:%d/%m/%Y}"


async def get_booking(session: AsyncSession, booking_id: int) -> Booking:
    b = await session.get(Booking, booking_id)
    if not b:
        raise NotFound(f"Booking {booking_id} not found")
    return b


async def list_for_renter(session: AsyncSession, renter_id: int, status: BookingStatus | None = None) -> list[Booking]:
    stmt = select(Booking).where(Booking.renter_id == renter_id).order_by(Booking.start_at.desc())
    if status is not None:
        stmt = stmt.where(Booking.status == status)
    return list((await session.execute(stmt)).scalars().all())


async def list_for_hubber(session: AsyncSession, hubber_id: int, status: BookingStatus | None = None) -> list[Booking]:
    stmt = select(Booking).where(Booking.hubber_id == hubber_id).order_by(Booking.start_at.desc())
    if status is not None:
        stmt = stmt.where(Booking.status == status)
    return list((await session.execute(stmt)).scalars().all())


# -----------------------------
# Quote & create
# -----------------------------
def _affects_renter(ov: UserFeeOverride | None) -> bool:
    return ov is not None and (ov.fees_disabled or ov.custom_renter_fee is not None)


def _affects_hubber(ov: UserFeeOverride | None) -> bool:
    return ov is not None and (ov.fees_disabled or ov.custom_hubber_fee is not None)


def _validate_period(start_at: datetime, end_at: datetime, now: datetime) -> tuple[datetime, datetime]:
    start_at, end_at = as_naive_utc(start_at), as_naive_utc(end_at)
    if end_at <= start_at:
        raise ValidationFailed("end must be after start")
    if start_at.date() < now.date():
        raise ValidationFailed("start date is in the past")
    return start_at, end_at


async def quote_booking(
    session: AsyncSession,
    *,
    listing_id: int,
    renter_id: int,
    start_at: datetime,
    end_at: datetime,
    use_wallet: bool = True,
    now: datetime | None = None,
) -> BookingQuote:
    now = now or utcnow()
    start_at, end_at = _validate_period(start_at, end_at, now)

    listing = await session.get(Listing, listing_id)
    if not listing:
        raise NotFound(f"Listing {listing_id} not found")
    hubber = await session.get(User, listing.owner_id)
    if not hubber:
        raise NotFound(f"User {listing.owner_id} not found")
    if not await session.get(User, renter_id):
        raise NotFound(f"User {renter_id} not found")

    schedule = await fee_service.get_schedule(session)
    renter_ov = await fee_service.active_override(session, renter_id, now)
    hubber_ov = await fee_service.active_override(session, hubber.id, now)

    rates = fee_rules.resolve_rates(
        schedule,
        is_super_hubber=hubber.is_super_hubber,
        hubber_custom_pct=hubber.custom_fee_percentage,
        renter_override=fee_service.override_terms(renter_ov) if _affects_renter(renter_ov) else None,
        hubber_override=fee_service.override_terms(hubber_ov) if _affects_hubber(hubber_ov) else None,
    )
    price = fee_rules.quote(
        unit_price_cents=listing.price_cents,
        units=billable_units(start_at, end_at, listing.price_unit),
        cleaning_fee_cents=listing.cleaning_fee_cents or 0,
        rates=rates,
        schedule=schedule,
    )

    credit = wallet_service.UsableCredit(0, 0)
    if use_wallet:
        w = await wallet_service.get_wallet(session, renter_id)
        credit = wallet_service.usable_credit(w, price.renter_fee_cents, price.total_cents)

    return BookingQuote(
        listing_id=listing_id,
        start_at=start_at,
        end_at=end_at,
        price=price,
        credit=credit,
        renter_override_id=renter_ov.id if _affects_renter(renter_ov) else None,
        hubber_override_id=hubber_ov.id if _affects_hubber(hubber_ov) else None,
    )


async def create_booking(
    session: AsyncSession,
    *,
    listing_id: int,
    renter_id: int,
    start_at: datetime,
    end_at: datetime,
    gateway: PaymentGateway,
    use_wallet: bool = True,
    payment_intent_id: str | None = None,
    requires_approval: bool = False,
    now: datetime | None = None,
) -> Booking:
    """
    Book a listing and take payment.

    Wallet credit is spent first (referral, then general); the card covers
    the rest through a payment intent, created here when the client did not
    confirm one already. The booking is `confirmed` straight away unless the
    hubber has to approve it (`pending`).
    """
    now = now or utcnow()

    listing = await session.get(Listing, listing_id)
    if not listing:
        raise NotFound(f"Listing {listing_id} not found")
    if listing.status != ListingStatus.published:
        raise InvalidState("Listing is not available for booking")
    if listing.owner_id == renter_id:
        raise PermissionDenied("You cannot book your own listing")

    q = await quote_booking(
        session,
        listing_id=listing_id,
        renter_id=renter_id,
        start_at=start_at,
        end_at=end_at,
        use_wallet=use_wallet,
        now=now,
    )
    await ensure_available(session, listing_id, q.start_at, q.end_at)

    if q.card_cents > 0 and not payment_intent_id:
        try:
            intent = await gateway.create_payment_intent(
                q.card_cents, metadata={"listing_id": listing_id, "renter_id": renter_id}
            )
        except PaymentGatewayError as e:
            raise PaymentFailed(f"Card payment could not be started: {e}") from e
        payment_intent_id = intent.id

    p = q.price
    b = Booking(
        listing_id=listing_id,
        renter_id=renter_id,
        hubber_id=listing.owner_id,
        start_at=q.start_at,
        end_at=q.end_at,
        status=BookingStatus.pending if requires_approval else BookingStatus.confirmed,
        base_amount_cents=p.base_cents,
        cleaning_fee_cents=p.cleaning_fee_cents,
        renter_fee_pct=p.renter_pct,
        renter_fixed_fee_cents=p.renter_fixed_cents,
        renter_fee_cents=p.renter_fee_cents,
        hubber_fee_pct=p.hubber_pct,
        hubber_fixed_fee_cents=p.hubber_fixed_cents,
        hubber_fee_cents=p.hubber_fee_cents,
        amount_total_cents=p.total_cents,
        hubber_net_cents=p.hubber_net_cents,
        wallet_used_cents=q.credit.total_cents,
        referral_used_cents=q.credit.referral_cents,
        payment_intent_id=payment_intent_id if q.card_cents > 0 else None,
        renter_override_id=q.renter_override_id,
        hubber_override_id=q.hubber_override_id,
        override_volume_cents=p.subtotal_cents if (q.renter_override_id or q.hubber_override_id) else 0,
        created_at=now,
        updated_at=now,
    )
    session.add(b)
    await session.flush()

    await wallet_service.charge_for_booking(session, renter_id, b.id, q.credit, b.number)
    if q.card_cents > 0 and payment_intent_id:
        await payment_service.record_payment(session, b.id, payment_intent_id, q.card_cents, now=now)

    for ov_id in (q.renter_override_id, q.hubber_override_id):
        if ov_id is not None:
            ov = await session.get(UserFeeOverride, ov_id)
            if ov is not None:
                await fee_service.consume_override(session, ov, p.subtotal_cents)

    await post_system_message(
        session,
        b.id,
        f"Booking {b.number} {b.status.value} for {_period_label(b)}. Total paid {fmt_eur(b.amount_total_cents)}.",
    )
    await enqueue_event(session, "booking.created", _event_payload(b))

    log.info("booking %s created on listing %s (%s)", b.id, listing_id, b.status.value)
    return b


# -----------------------------
# Card refunds
# -----------------------------
async def _refund_card(
    session: AsyncSession,
    b: Booking,
    amount_cents: int,
    *,
    gateway: PaymentGateway,
    cancelled_by: CancelledBy,
    reason: str | None,
    policy: str | None,
    now: datetime,
) -> tuple[int, int]:
    """
    Refund `amount_cents` to the renter's card.

    The amount is spread over the booking's paid intents, none refunded
    beyond what it captured. Returns (refunded, pending): whatever the
    gateway could not take is left as a pending `refunds` row for admins.
    """
    if amount_cents <= 0:
        return 0, 0

    outcome = await payment_service.refund_card_payments(
        session, b.id, amount_cents, gateway=gateway, metadata={"cancelled_by": cancelled_by.value}
    )

    def _row(amount: int, status: RefundStatus) -> Refund:
        row = Refund(
            booking_id=b.id,
            renter_id=b.renter_id,
            hubber_id=b.hubber_id,
            original_amount_cents=b.amount_total_cents,
            refund_amount_cents=amount,
            card_amount_cents=amount,
            cancellation_policy=policy,
            cancellation_reason=reason,
            cancelled_by=cancelled_by,
            refund_method=RefundMethod.card,
            status=status,
            requested_at=now,
        )
        session.add(row)
        return row

    if outcome.refunded_cents > 0:
        done = _row(outcome.refunded_cents, RefundStatus.processed)
        done.gateway_refund_id = ",".join(outcome.gateway_refund_ids)[:120]
        done.processed_at = now
    if outcome.outstanding_cents > 0:
        log.warning("card refund for booking %s deferred: %s", b.id, outcome.error)
        _row(outcome.outstanding_cents, RefundStatus.pending).last_error = outcome.error

    await session.flush()
    return outcome.refunded_cents, outcome.outstanding_cents


# -----------------------------
# Cancellation
# -----------------------------
async def _mark_cancelled(
    session: AsyncSession,
    b: Booking,
    *,
    by: CancelledBy,
    reason: str | None,
    method: RefundMethod,
    refunded_cents: int,
    now: datetime,
    status: BookingStatus = BookingStatus.cancelled,
) -> None:
    b.status = status
    b.cancelled_at = now
    b.cancelled_by = by
    b.cancellation_reason = reason
    b.refund_method = method
    b.refund_amount_cents = refunded_cents
    b.updated_at = now
    await session.flush()

    await payment_service.void_pending(session, b.id)
    await _release_overrides(session, b, now)


async def _release_overrides(session: AsyncSession, b: Booking, now: datetime) -> None:
    if b.override_volume_cents <= 0:
        return
    for ov_id in (b.renter_override_id, b.hubber_override_id):
        if ov_id is None:
            continue
        ov = await session.get(UserFeeOverride, ov_id)
        if ov is not None:
            await fee_service.release_override(session, ov, b.override_volume_cents, now=now)
    b.override_volume_cents = 0
    await session.flush()


async def cancel_by_renter(
    session: AsyncSession,
    booking_id: int,
    renter_id: int,
    *,
    gateway: PaymentGateway,
    refund_method: RefundMethod = RefundMethod.wallet,
    reason: str | None = None,
    now: datetime | None = None,
) -> CancellationResult:
    now = now or utcnow()
    b = await get_booking(session, booking_id)
    if b.renter_id != renter_id:
        raise PermissionDenied("Only the renter can cancel this booking")
    if b.status not in RENTER_CANCELLABLE:
        raise InvalidState(f"Booking cannot be cancelled in status {b.status.value}")
    if refund_method not in (RefundMethod.wallet, RefundMethod.card):
        raise ValidationFailed("refund_method must be wallet or card")

    listing = await session.get(Listing, b.listing_id)
    decision = refund_for_renter_cancellation(
        listing.cancellation_policy if listing else None,
        hours_until(b.start_at, now),
    )
    percentage, message = decision.percentage, decision.message

    refund_cents = pct_of(b.amount_total_cents, percentage)
    split: RefundSplit = split_refund(
        total_paid_cents=b.amount_total_cents,
        wallet_used_cents=b.wallet_used_cents,
        refund_cents=refund_cents,
        method=refund_method,
    )

    await wallet_service.refund_to_renter(
        session,
        b.renter_id,
        split.wallet_cents,
        booking_id=b.id,
        description=f"Refund for cancelled booking {b.number} ({percentage}%)",
    )
    card_done, card_pending = await _refund_card(
        session,
        b,
        split.card_cents,
        gateway=gateway,
        cancelled_by=CancelledBy.renter,
        reason=reason,
        policy=decision.policy.value,
        now=now,
    )

    await _mark_cancelled(
        session, b, by=CancelledBy.renter, reason=reason, method=refund_method, refunded_cents=split.total_cents, now=now
    )
    await post_system_message(session, b.id, f"Booking {b.number} cancelled by the renter. {message}.")
    await enqueue_event(
        session,
        "booking.cancelled",
        _event_payload(b, cancelled_by="renter", refund_percentage=percentage, refund_cents=split.total_cents),
    )

    log.info("booking %s cancelled by renter: %s%% refund", b.id, percentage)
    return CancellationResult(
        booking_id=b.id,
        refund_percentage=percentage,
        message=message,
        wallet_refunded_cents=split.wallet_cents,
        card_refunded_cents=card_done,
        card_refund_pending_cents=card_pending,
    )


async def _full_wallet_refund(
    session: AsyncSession,
    b: Booking,
    *,
    by: CancelledBy,
    reason: str | None,
    now: datetime,
    status: BookingStatus = BookingStatus.cancelled,
) -> CancellationResult:
    await wallet_service.refund_to_renter(
        session,
        b.renter_id,
        b.amount_total_cents,
        booking_id=b.id,
        description=f"Full refund for booking {b.number} ({by.value})",
    )
    await _mark_cancelled(
        session,
        b,
        by=by,
        reason=reason,
        method=RefundMethod.wallet,
        refunded_cents=b.amount_total_cents,
        now=now,
        status=status,
    )
    return CancellationResult(
        booking_id=b.id,
        refund_percentage=100,
        message="Full refund to wallet",
        wallet_refunded_cents=b.amount_total_cents,
    )


async def cancel_by_hubber(
    session: AsyncSession,
    booking_id: int,
    hubber_id: int,
    *,
    reason: str | None = None,
    now: datetime | None = None,
) -> CancellationResult:
    """The renter gets everything back as wallet credit, whatever the policy."""
    now = now or utcnow()
    b = await get_booking(session, booking_id)
    if b.hubber_id != hubber_id:
        raise PermissionDenied("Only the hubber can cancel this booking")
    if b.status not in HUBBER_CANCELLABLE:
        raise InvalidState(f"Booking cannot be cancelled in status {b.status.value}")

    res = await _full_wallet_refund(session, b, by=CancelledBy.hubber, reason=reason, now=now)
    await post_system_message(
        session, b.id, f"Booking {b.number} cancelled by the hubber. {fmt_eur(b.amount_total_cents)} refunded to the wallet."
    )
    await enqueue_event(session, "booking.cancelled", _event_payload(b, cancelled_by="hubber", refund_percentage=100))
    log.info("booking %s cancelled by hubber", b.id)
    return res


async def accept_booking(session: AsyncSession, booking_id: int, hubber_id: int, *, now: datetime | None = None) -> Booking:
    b = await get_booking(session, booking_id)
    if b.hubber_id != hubber_id:
        raise PermissionDenied("Only the hubber can accept this booking")
    if b.status != BookingStatus.pending:
        raise InvalidState(f"Booking is {b.status.value}, not pending")
    b.status = BookingStatus.accepted
    b.updated_at = now or utcnow()
    await session.flush()
    await post_system_message(session, b.id, f"Booking {b.number} accepted by the hubber.")
    await enqueue_event(session, "booking.accepted", _event_payload(b))
    return b


async def reject_booking(
    session: AsyncSession,
    booking_id: int,
    hubber_id: int,
    *,
    reason: str | None = None,
    now: datetime | None = None,
) -> CancellationResult:
    now = now or utcnow()
    b = await get_booking(session, booking_id)
    if b.hubber_id != hubber_id:
        raise PermissionDenied("Only the hubber can reject this booking")
    if b.status != BookingStatus.pending:
        raise InvalidState(f"Booking is {b.status.value}, not pending")

    res = await _full_wallet_refund(
        session, b, by=CancelledBy.hubber, reason=reason, now=now, status=BookingStatus.rejected
    )
    await post_system_message(session, b.id, f"Booking {b.number} rejected by the hubber. Full refund to the wallet.")
    await enqueue_event(session, "booking.rejected", _event_payload(b))
    return res


# -----------------------------
# Date changes
# -----------------------------
async def _reprice_for(session: AsyncSession, b: Booking, new_start: datetime, new_end: datetime) -> Repricing:
    listing = await session.get(Listing, b.listing_id)
    if not listing:
        raise NotFound(f"Listing {b.listing_id} not found")
    return reprice(
        StoredPricing(
            base_cents=b.base_amount_cents,
            cleaning_fee_cents=b.cleaning_fee_cents,
            renter_pct=b.renter_fee_pct,
            renter_fixed_cents=b.renter_fixed_fee_cents,
            hubber_pct=b.hubber_fee_pct,
            hubber_fixed_cents=b.hubber_fixed_fee_cents,
            amount_total_cents=b.amount_total_cents,
            wallet_used_cents=b.wallet_used_cents,
        ),
        new_units=billable_units(new_start, new_end, listing.price_unit),
        unit_price_cents=listing.price_cents,
    )


async def _apply_new_dates(
    session: AsyncSession,
    b: Booking,
    r: Repricing,
    new_start: datetime,
    new_end: datetime,
    *,
    wallet_delta_cents: int,
    now: datetime,
) -> None:
    old_label = _period_label(b)
    b.start_at, b.end_at = new_start, new_end
    b.base_amount_cents = r.new_base_cents
    b.renter_fee_cents = r.new_renter_fee_cents
    b.hubber_fee_cents = r.new_hubber_fee_cents
    b.amount_total_cents = r.new_total_cents
    b.hubber_net_cents = r.new_hubber_net_cents
    b.wallet_used_cents = max(b.wallet_used_cents + wallet_delta_cents, 0)
    b.updated_at = now
    await session.flush()
    await payment_service.void_pending(session, b.id)

    await post_system_message(
        session,
        b.id,
        f"Booking {b.number} moved from {old_label} to {_period_label(b)}. New total {fmt_eur(b.amount_total_cents)}.",
    )
    await enqueue_event(session, "booking.modified", _event_payload(b, difference_cents=r.difference_cents))


async def modify_booking(
    session: AsyncSession,
    booking_id: int,
    renter_id: int,
    *,
    new_start: datetime,
    new_end: datetime,
    gateway: PaymentGateway,
    payment_method: PaymentMethod = PaymentMethod.card,
    now: datetime | None = None,
) -> ModificationResult:
    """
    Move a booking to new dates.

    Shorter: the difference goes back the way it was paid, right away.
    Longer, paid from the wallet: debited and applied right away.
    Longer, paid by card: a supplement intent is opened and the booking keeps
    its dates and price until `confirm_date_change` is called for it.
    """
    now = now or utcnow()
    b = await get_booking(session, booking_id)
    if b.renter_id != renter_id:
        raise PermissionDenied("Only the renter can change this booking")
    if b.status not in MODIFIABLE:
        raise InvalidState(f"Booking cannot be changed in status {b.status.value}")

    new_start, new_end = _validate_period(new_start, new_end, now)
    await ensure_available(session, b.listing_id, new_start, new_end, exclude_booking_id=b.id)
    r = await _reprice_for(session, b, new_start, new_end)

    if r.charge_extra_cents > 0 and payment_method == PaymentMethod.card:
        try:
            intent = await gateway.create_payment_intent(
                r.charge_extra_cents, metadata={"booking_id": b.id, "kind": "date_change"}
            )
        except PaymentGatewayError as e:
            raise PaymentFailed(f"Extra payment could not be started: {e}") from e

        await payment_service.void_pending(session, b.id)
        await payment_service.record_payment(
            session,
            b.id,
            intent.id,
            r.charge_extra_cents,
            kind=PaymentKind.date_change,
            status=PaymentStatus.pending,
            new_start_at=new_start,
            new_end_at=new_end,
            now=now,
        )
        log.info("booking %s date change waits for supplement %s", b.id, intent.id)
        return ModificationResult(booking_id=b.id, repricing=r, applied=False, extra_payment_intent_id=intent.id)

    wallet_charged = 0
    if r.charge_extra_cents > 0:
        await wallet_service.debit(
            session,
            b.renter_id,
            r.charge_extra_cents,
            source=TxSource.booking_modification_charge,
            description=f"Date change supplement for booking {b.number}",
            booking_id=b.id,
        )
        wallet_charged = r.charge_extra_cents

    card_done, card_pending = await _refund_card(
        session,
        b,
        r.refund_card_cents,
        gateway=gateway,
        cancelled_by=CancelledBy.renter,
        reason="Date change",
        policy=None,
        now=now,
    )
    if r.refund_wallet_cents > 0:
        await wallet_service.credit(
            session,
            b.renter_id,
            r.refund_wallet_cents,
            source=TxSource.booking_modification_refund,
            description=f"Refund for date change on booking {b.number}",
            booking_id=b.id,
        )

    await _apply_new_dates(
        session, b, r, new_start, new_end, wallet_delta_cents=wallet_charged - r.refund_wallet_cents, now=now
    )
    return ModificationResult(
        booking_id=b.id,
        repricing=r,
        card_refunded_cents=card_done,
        card_refund_pending_cents=card_pending,
        wallet_refunded_cents=r.refund_wallet_cents,
        wallet_charged_cents=wallet_charged,
    )


async def confirm_date_change(
    session: AsyncSession,
    booking_id: int,
    renter_id: int,
    payment_intent_id: str,
    *,
    now: datetime | None = None,
) -> Booking:
    """Apply a card-paid date change once its supplement intent is confirmed."""
    now = now or utcnow()
    b = await get_booking(session, booking_id)
    if b.renter_id != renter_id:
        raise PermissionDenied("Only the renter can change this booking")
    if b.status not in MODIFIABLE:
        raise InvalidState(f"Booking cannot be changed in status {b.status.value}")

    p = await payment_service.pending_supplement(session, b.id, payment_intent_id)
    if p is None or p.new_start_at is None or p.new_end_at is None:
        raise NotFound(f"No pending date change for payment {payment_intent_id}")

    r = await _reprice_for(session, b, p.new_start_at, p.new_end_at)
    if r.charge_extra_cents != p.amount_cents:
        raise InvalidState("Booking changed since the supplement was requested")
    await ensure_available(session, b.listing_id, p.new_start_at, p.new_end_at, exclude_booking_id=b.id)

    p.status = PaymentStatus.paid
    p.paid_at = now
    await _apply_new_dates(session, b, r, p.new_start_at, p.new_end_at, wallet_delta_cents=0, now=now)

    log.info("booking %s date change confirmed with %s", b.id, payment_intent_id)
    return b


# -----------------------------
# Lifecycle
# -----------------------------
async def complete_booking(session: AsyncSession, booking_id: int, *, now: datetime | None = None) -> Booking:
    """Close a booking and pay the hubber. Crediting happens at most once."""
    now = now or utcnow()
    b = await get_booking(session, booking_id)
    if b.status == BookingStatus.completed and b.hubber_credited:
        return b
    if b.status not in (BookingStatus.confirmed, BookingStatus.accepted, BookingStatus.active, BookingStatus.completed):
        raise InvalidState(f"Booking cannot be completed from status {b.status.value}")

    b.status = BookingStatus.completed
    b.updated_at = now

    if not b.hubber_credited:
        await wallet_service.credit_hubber_for_booking(
            session, b.hubber_id, b.hubber_net_cents, booking_id=b.id, booking_number=b.number
        )
        b.hubber_credited = True
    await session.flush()

    await invoice_service.issue_commission_invoices(session, b, now=now)
    await post_system_message(session, b.id, f"Booking {b.number} completed. You can now leave a review.")
    await enqueue_event(session, "booking.completed", _event_payload(b, hubber_net_cents=b.hubber_net_cents))

    log.info("booking %s completed, hubber %s credited %s", b.id, b.hubber_id, b.hubber_net_cents)
    return b


async def start_due_bookings(session: AsyncSession, now: datetime | None = None) -> int:
    now = now or utcnow()
    stmt = (
        select(Booking)
        .where(Booking.status.in_([BookingStatus.confirmed, BookingStatus.accepted]))
        .where(Booking.start_at <= now)
        .where(Booking.end_at > now)
    )
    rows = (await session.execute(stmt)).scalars().all()
    for b in rows:
        b.status = BookingStatus.active
        b.updated_at = now
    await session.flush()
    return len(rows)


async def complete_due_bookings(session: AsyncSession, now: datetime | None = None) -> int:
    now = now or utcnow()
    stmt = (
        select(Booking.id)
        .where(Booking.status.in_([BookingStatus.confirmed, BookingStatus.accepted, BookingStatus.active]))
        .where(Booking.end_at <= now)
        .order_by(Booking.id.asc())
    )
    ids = (await session.execute(stmt)).scalars().all()
    for bid in ids:
        await complete_booking(session, bid, now=now)
    return len(ids)


async def admin_set_status(
    session: AsyncSession,
    booking_id: int,
    status: BookingStatus,
    *,
    reason: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """
    Admin override of a booking's status.

    Completion pays the hubber and cancellation refunds the renter in full to
    the wallet, exactly like the regular paths.
    """
    now = now or utcnow()
    b = await get_booking(session, booking_id)
    if status == b.status:
        return b
    if b.status in (BookingStatus.cancelled, BookingStatus.rejected, BookingStatus.completed):
        raise InvalidState(f"Booking is already {b.status.value}")

    if status == BookingStatus.completed:
        return await complete_booking(session, b.id, now=now)
    if status in (BookingStatus.cancelled, BookingStatus.rejected):
        await _full_wallet_refund(session, b, by=CancelledBy.admin, reason=reason, now=now, status=status)
        await post_system_message(session, b.id, f"Booking {b.number} {status.value} by support.")
        await enqueue_event(session, f"booking.{status.value}", _event_payload(b, cancelled_by="admin"))
        return b

    b.status = status
    b.updated_at = now
    await session.flush()
    return b
