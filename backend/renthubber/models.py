# renthubber/models.py
from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .domain.periods import utcnow
from .domain.types import (
    BookingStatus,
    CancellationPolicy,
    CancelledBy,
    ListingCategory,
    ListingStatus,
    PriceUnit,
    RefundMethod,
)


class Base(DeclarativeBase):
    pass


# -----------------------------
# Core enums
# -----------------------------
class WalletType(str, enum.Enum):
    renter = "renter"
    referral = "referral"
    hubber = "hubber"


class TxType(str, enum.Enum):
    credit = "credit"
    debit = "debit"


class TxSource(str, enum.Enum):
    topup = "topup"
    booking_payment = "booking_payment"
    booking_refund = "booking_refund"
    booking_earning = "booking_earning"
    adjustment = "adjustment"
    referral_bonus = "referral_bonus"
    payout_request = "payout_request"
    payout_reversal = "payout_reversal"
    booking_modification_charge = "booking_modification_charge"
    booking_modification_refund = "booking_modification_refund"


class ReviewType(str, enum.Enum):
    renter_to_hubber = "renter_to_hubber"
    hubber_to_renter = "hubber_to_renter"


class ReviewStatus(str, enum.Enum):
    approved = "approved"
    suspended = "suspended"
    rejected = "rejected"


class OverrideStatus(str, enum.Enum):
    active = "active"
    expired = "expired"
    limit_reached = "limit_reached"
    revoked = "revoked"


class RefundStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    processed = "processed"


class PaymentKind(str, enum.Enum):
    booking = "booking"
    date_change = "date_change"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    voided = "voided"


class PayoutStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    paid = "paid"
    rejected = "rejected"


class CalendarStatus(str, enum.Enum):
    active = "active"
    syncing = "syncing"
    error = "error"


class InvoiceType(str, enum.Enum):
    renter = "renter"
    hubber = "hubber"


class InvoiceStatus(str, enum.Enum):
    draft = "draft"
    issued = "issued"
    paid = "paid"
    cancelled = "cancelled"


class OutboxStatus(str, enum.Enum):
    pending = "pending"
    delivered = "delivered"
    failed = "failed"


class IntegrationType(str, enum.Enum):
    webhook = "webhook"


class JobRunStatus(str, enum.Enum):
    running = "running"
    success = "success"
    failed = "failed"


# -----------------------------
# Users & wallets
# -----------------------------
class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_user_email"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    email: Mapped[str] = mapped_column(String(255))

    is_super_hubber: Mapped[bool] = mapped_column(Boolean, default=False)
    custom_fee_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)

    # as hubber (reviews from renters)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    review_count: Mapped[int] = mapped_column(Integer, default=0)
    # as renter (reviews from hubbers)
    renter_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    renter_review_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (UniqueConstraint("user_id", name="uq_wallet_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    # renter credit: top-ups and booking refunds, usable on the whole total
    balance_cents: Mapped[int] = mapped_column(Integer, default=0)
    # referral credit: usable on commissions only
    referral_balance_cents: Mapped[int] = mapped_column(Integer, default=0)
    # hubber earnings, withdrawable through payouts
    hubber_balance_cents: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    wallet_type: Mapped[WalletType] = mapped_column(Enum(WalletType), index=True)
    type: Mapped[TxType] = mapped_column(Enum(TxType))
    source: Mapped[TxSource] = mapped_column(Enum(TxSource), index=True)

    # signed: credits > 0, debits < 0
    amount_cents: Mapped[int] = mapped_column(Integer)
    balance_after_cents: Mapped[int] = mapped_column(Integer)

    description: Mapped[str] = mapped_column(String(255), default="")
    related_booking_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


# -----------------------------
# Listings & bookings
# -----------------------------
class Listing(Base):
    __tablename__ = "listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    title: Mapped[str] = mapped_column(String(200))
    category: Mapped[ListingCategory] = mapped_column(Enum(ListingCategory), default=ListingCategory.object)
    status: Mapped[ListingStatus] = mapped_column(Enum(ListingStatus), default=ListingStatus.draft, index=True)

    price_cents: Mapped[int] = mapped_column(Integer)
    price_unit: Mapped[PriceUnit] = mapped_column(Enum(PriceUnit), default=PriceUnit.day)
    cleaning_fee_cents: Mapped[int] = mapped_column(Integer, default=0)
    cancellation_policy: Mapped[CancellationPolicy] = mapped_column(
        Enum(CancellationPolicy), default=CancellationPolicy.flexible
    )

    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True)

    rating: Mapped[float] = mapped_column(Float, default=0.0)
    review_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    listing_id: Mapped[int] = mapped_column(ForeignKey("listings.id"), index=True)
    renter_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    hubber_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    start_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime)

    status: Mapped[BookingStatus] = mapped_column(Enum(BookingStatus), default=BookingStatus.pending, index=True)

    # pricing snapshot (cents / percent)
    base_amount_cents: Mapped[int] = mapped_column(Integer, default=0)
    cleaning_fee_cents: Mapped[int] = mapped_column(Integer, default=0)
    renter_fee_pct: Mapped[float] = mapped_column(Float, default=0.0)
    renter_fixed_fee_cents: Mapped[int] = mapped_column(Integer, default=0)
    renter_fee_cents: Mapped[int] = mapped_column(Integer, default=0)
    hubber_fee_pct: Mapped[float] = mapped_column(Float, default=0.0)
    hubber_fixed_fee_cents: Mapped[int] = mapped_column(Integer, default=0)
    hubber_fee_cents: Mapped[int] = mapped_column(Integer, default=0)
    amount_total_cents: Mapped[int] = mapped_column(Integer, default=0)
    hubber_net_cents: Mapped[int] = mapped_column(Integer, default=0)

    # how it was paid
    wallet_used_cents: Mapped[int] = mapped_column(Integer, default=0)
    referral_used_cents: Mapped[int] = mapped_column(Integer, default=0)
    payment_intent_id: Mapped[str | None] = mapped_column(String(120), nullable=True)

    # fee overrides the booking counted against, and the volume it counted
    renter_override_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    hubber_override_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    override_volume_cents: Mapped[int] = mapped_column(Integer, default=0)

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_by: Mapped[CancelledBy | None] = mapped_column(Enum(CancelledBy), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    refund_method: Mapped[RefundMethod | None] = mapped_column(Enum(RefundMethod), nullable=True)
    refund_amount_cents: Mapped[int] = mapped_column(Integer, default=0)

    hubber_credited: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    @property
    def number(self) -> str:
        return f"RH{self.id:06d}"

    @property
    def card_paid_cents(self) -> int:
        return max(self.amount_total_cents - self.wallet_used_cents, 0)


class BookingPayment(Base):
    """
    Card money taken for a booking, one row per payment intent.

    Refunds are allocated across paid rows, each capped at its own amount.
    A date-change supplement stays `pending` (with the requested dates) until
    the renter confirms the intent.
    """
    __tablename__ = "booking_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), index=True)
    kind: Mapped[PaymentKind] = mapped_column(Enum(PaymentKind))
    payment_intent_id: Mapped[str] = mapped_column(String(120), index=True)

    amount_cents: Mapped[int] = mapped_column(Integer)
    refunded_cents: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus), default=PaymentStatus.pending, index=True)

    new_start_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    new_end_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def refundable_cents(self) -> int:
        if self.status != PaymentStatus.paid:
            return 0
        return max(self.amount_cents - (self.refunded_cents or 0), 0)


class BookingMessage(Base):
    """System messages posted in the booking conversation."""
    __tablename__ = "booking_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), index=True)
    body: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


# -----------------------------
# Calendar
# -----------------------------
class CalendarBlock(Base):
    __tablename__ = "calendar_blocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    listing_id: Mapped[int] = mapped_column(ForeignKey("listings.id"), index=True)

    start_date: Mapped[date] = mapped_column(Date, index=True)
    end_date: Mapped[date] = mapped_column(Date, index=True)
    reason: Mapped[str] = mapped_column(String(255), default="Manual block")

    # null = manual block
    source_calendar_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    external_event_uid: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class ImportedCalendar(Base):
    __tablename__ = "imported_calendars"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    url: Mapped[str] = mapped_column(Text)
    listing_ids_json: Mapped[str] = mapped_column(Text, default="[]")

    status: Mapped[CalendarStatus] = mapped_column(Enum(CalendarStatus), default=CalendarStatus.active)
    events_count: Mapped[int] = mapped_column(Integer, default=0)
    last_sync: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class ICalToken(Base):
    __tablename__ = "ical_tokens"
    __table_args__ = (UniqueConstraint("user_id", name="uq_ical_token_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    token: Mapped[str] = mapped_column(String(64), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


# -----------------------------
# Reviews
# -----------------------------
class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("booking_id", "reviewer_id", name="uq_review_booking_reviewer"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), index=True)
    listing_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    reviewer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    reviewee_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    review_type: Mapped[ReviewType] = mapped_column(Enum(ReviewType), index=True)
    rating: Mapped[int] = mapped_column(Integer)
    category_ratings_json: Mapped[str] = mapped_column(Text, default="{}")
    comment: Mapped[str] = mapped_column(Text, default="")

    status: Mapped[ReviewStatus] = mapped_column(Enum(ReviewStatus), default=ReviewStatus.approved, index=True)
    moderated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


# -----------------------------
# Fees
# -----------------------------
class PlatformFees(Base):
    __tablename__ = "platform_fees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    renter_percentage: Mapped[float] = mapped_column(Float, default=10.0)
    hubber_percentage: Mapped[float] = mapped_column(Float, default=10.0)
    super_hubber_percentage: Mapped[float] = mapped_column(Float, default=5.0)
    fixed_fee_cents: Mapped[int] = mapped_column(Integer, default=200)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class UserFeeOverride(Base):
    __tablename__ = "user_fee_overrides"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    fees_disabled: Mapped[bool] = mapped_column(Boolean, default=False)
    custom_renter_fee: Mapped[float | None] = mapped_column(Float, nullable=True)
    custom_hubber_fee: Mapped[float | None] = mapped_column(Float, nullable=True)

    valid_from: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    valid_until: Mapped[datetime] = mapped_column(DateTime)
    duration_days: Mapped[int] = mapped_column(Integer)

    # cap on booking volume (subtotal) covered by the override
    max_transaction_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_transaction_cents: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[OverrideStatus] = mapped_column(Enum(OverrideStatus), default=OverrideStatus.active, index=True)
    reason: Mapped[str] = mapped_column(String(255), default="")
    notes: Mapped[str] = mapped_column(Text, default="")

    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    revoked_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


# -----------------------------
# Money movements handled by admins
# -----------------------------
class Refund(Base):
    __tablename__ = "refunds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), index=True)
    renter_id: Mapped[int] = mapped_column(Integer, index=True)
    hubber_id: Mapped[int] = mapped_column(Integer, index=True)

    original_amount_cents: Mapped[int] = mapped_column(Integer)
    refund_amount_cents: Mapped[int] = mapped_column(Integer)
    # part of the refund owed back to the card; the rest goes to the wallet
    card_amount_cents: Mapped[int] = mapped_column(Integer, default=0)

    cancellation_policy: Mapped[str | None] = mapped_column(String(20), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[CancelledBy] = mapped_column(Enum(CancelledBy))

    status: Mapped[RefundStatus] = mapped_column(Enum(RefundStatus), default=RefundStatus.pending, index=True)
    refund_method: Mapped[RefundMethod | None] = mapped_column(Enum(RefundMethod), nullable=True)
    gateway_refund_id: Mapped[str | None] = mapped_column(String(120), nullable=True)

    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    requested_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    processed_by: Mapped[int | None] = mapped_column(Integer, nullable=True)


class PayoutRequest(Base):
    __tablename__ = "payout_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    hubber_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    amount_cents: Mapped[int] = mapped_column(Integer)

    status: Mapped[PayoutStatus] = mapped_column(Enum(PayoutStatus), default=PayoutStatus.pending, index=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    transfer_reference: Mapped[str | None] = mapped_column(String(120), nullable=True)

    requested_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (UniqueConstraint("number", name="uq_invoice_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    number: Mapped[str] = mapped_column(String(40))
    invoice_type: Mapped[InvoiceType] = mapped_column(Enum(InvoiceType), index=True)
    recipient_id: Mapped[int] = mapped_column(Integer, index=True)
    booking_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    subtotal_cents: Mapped[int] = mapped_column(Integer)
    vat_rate: Mapped[float] = mapped_column(Float)
    vat_cents: Mapped[int] = mapped_column(Integer)
    total_cents: Mapped[int] = mapped_column(Integer)

    description: Mapped[str] = mapped_column(Text, default="")
    line_items_json: Mapped[str] = mapped_column(Text, default="[]")
    status: Mapped[InvoiceStatus] = mapped_column(Enum(InvoiceStatus), default=InvoiceStatus.issued)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


# -----------------------------
# Integrations / outbox / jobs
# -----------------------------
class Integration(Base):
    __tablename__ = "integrations"
    __table_args__ = (UniqueConstraint("name", name="uq_integration_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(80))
    type: Mapped[IntegrationType] = mapped_column(Enum(IntegrationType))

    # quiet by default
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    # {"url": "...", "secret": "..."}
    config_json: Mapped[str] = mapped_column(Text, default="{}")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_type: Mapped[str] = mapped_column(String(120), index=True)
    payload_json: Mapped[str] = mapped_column(Text)

    status: Mapped[OutboxStatus] = mapped_column(Enum(OutboxStatus), default=OutboxStatus.pending, index=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)

    next_attempt_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class JobRun(Base):
    """
    Tracks job executions (lifecycle, calendar sync, dispatch, ...).
    """
    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(80), index=True)

    status: Mapped[JobRunStatus] = mapped_column(Enum(JobRunStatus), default=JobRunStatus.running, index=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary_json: Mapped[str | None] = mapped_column(Text, nullable=True)
