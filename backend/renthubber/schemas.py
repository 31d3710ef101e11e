from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .domain.types import (
    BookingStatus,
    CancellationPolicy,
    CancelledBy,
    ListingCategory,
    ListingStatus,
    PriceUnit,
    RefundMethod,
)
from .models import (
    CalendarStatus,
    InvoiceStatus,
    InvoiceType,
    OverrideStatus,
    PayoutStatus,
    RefundStatus,
    ReviewStatus,
    ReviewType,
    TxSource,
    TxType,
    WalletType,
)

PriceUnitLit = Literal["hour", "day", "week", "month"]
PolicyLit = Literal["flexible", "moderate", "strict"]
WalletTypeLit = Literal["renter", "referral", "hubber"]


class _ORM(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# -----------------------------
# Users / listings
# -----------------------------
class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=255)


class UserOut(_ORM):
    id: int
    name: str
    email: str
    is_super_hubber: bool
    custom_fee_percentage: float | None = None
    rating: float | None = None
    review_count: int
    renter_rating: float | None = None
    renter_review_count: int
    created_at: datetime


class ListingCreate(BaseModel):
    owner_id: int
    title: str = Field(..., min_length=1, max_length=200)
    category: Literal["object", "space"] = "object"
    price_cents: int = Field(..., gt=0)
    price_unit: PriceUnitLit = "day"
    cleaning_fee_cents: int = Field(0, ge=0)
    cancellation_policy: PolicyLit = "flexible"
    location: str | None = None
    city: str | None = None
    publish: bool = False


class ListingUpdate(BaseModel):
    owner_id: int
    title: str | None = None
    category: Literal["object", "space"] | None = None
    price_cents: int | None = Field(None, gt=0)
    price_unit: PriceUnitLit | None = None
    cleaning_fee_cents: int | None = Field(None, ge=0)
    cancellation_policy: PolicyLit | None = None
    location: str | None = None
    city: str | None = None


class ListingStatusUpdate(BaseModel):
    owner_id: int
    status: Literal["draft", "published", "hidden"]


class ListingOut(_ORM):
    id: int
    owner_id: int
    title: str
    category: ListingCategory
    status: ListingStatus
    price_cents: int
    price_unit: PriceUnit
    cleaning_fee_cents: int
    cancellation_policy: CancellationPolicy
    location: str | None = None
    city: str | None = None
    rating: float
    review_count: int
    created_at: datetime


# -----------------------------
# Bookings
# -----------------------------
class QuoteRequest(BaseModel):
    listing_id: int
    renter_id: int
    start_at: datetime
    end_at: datetime
    use_wallet: bool = True


class QuoteOut(BaseModel):
    units: int
    unit_price_cents: int
    base_cents: int
    cleaning_fee_cents: int
    subtotal_cents: int
    renter_fee_pct: float
    renter_fee_cents: int
    hubber_fee_pct: float
    hubber_fee_cents: int
    total_cents: int
    hubber_net_cents: int
    referral_credit_cents: int
    wallet_credit_cents: int
    card_cents: int


class BookingCreate(QuoteRequest):
    payment_intent_id: str | None = None
    requires_approval: bool = False


class BookingOut(_ORM):
    id: int
    number: str
    listing_id: int
    renter_id: int
    hubber_id: int
    start_at: datetime
    end_at: datetime
    status: BookingStatus
    base_amount_cents: int
    cleaning_fee_cents: int
    renter_fee_pct: float
    renter_fee_cents: int
    hubber_fee_pct: float
    hubber_fee_cents: int
    amount_total_cents: int
    hubber_net_cents: int
    wallet_used_cents: int
    referral_used_cents: int
    payment_intent_id: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: CancelledBy | None = None
    cancellation_reason: str | None = None
    refund_method: RefundMethod | None = None
    refund_amount_cents: int
    created_at: datetime


class RenterCancelRequest(BaseModel):
    renter_id: int
    refund_method: Literal["wallet", "card"] = "wallet"
    reason: str | None = None


class HubberActionRequest(BaseModel):
    hubber_id: int
    reason: str | None = None


class CancellationOut(BaseModel):
    booking_id: int
    refund_percentage: int
    message: str
    wallet_refunded_cents: int
    card_refunded_cents: int
    card_refund_pending_cents: int
    total_refunded_cents: int


class ModifyRequest(BaseModel):
    renter_id: int
    new_start: datetime
    new_end: datetime
    payment_method: Literal["wallet", "card"] = "card"


class ConfirmDateChange(BaseModel):
    renter_id: int
    payment_intent_id: str


class ModificationOut(BaseModel):
    booking_id: int
    applied: bool
    new_total_cents: int
    difference_cents: int
    card_refunded_cents: int
    card_refund_pending_cents: int
    wallet_refunded_cents: int
    charge_extra_cents: int
    wallet_charged_cents: int
    extra_payment_intent_id: str | None = None


class MessageOut(_ORM):
    id: int
    booking_id: int
    body: str
    created_at: datetime


# -----------------------------
# Wallet / earnings / payouts
# -----------------------------
class WalletOut(BaseModel):
    user_id: int
    balance_cents: int
    referral_balance_cents: int
    hubber_balance_cents: int


class TopupRequest(BaseModel):
    amount_cents: int = Field(..., gt=0)


class WalletTxOut(_ORM):
    id: int
    wallet_type: WalletType
    type: TxType
    source: TxSource
    amount_cents: int
    balance_after_cents: int
    description: str
    related_booking_id: int | None = None
    created_at: datetime


class MonthEarningsOut(BaseModel):
    year: int
    month: int
    total_net_cents: int
    gross_cents: int
    platform_fees_cents: int
    completed_bookings: int
    days: dict[int, int]


class YearEarningsOut(BaseModel):
    year: int
    total_net_cents: int
    completed_bookings: int
    months: dict[int, int]


class PayoutCreate(BaseModel):
    hubber_id: int
    amount_cents: int = Field(..., gt=0)


class PayoutOut(_ORM):
    id: int
    hubber_id: int
    amount_cents: int
    status: PayoutStatus
    admin_notes: str | None = None
    transfer_reference: str | None = None
    requested_at: datetime
    approved_at: datetime | None = None
    paid_at: datetime | None = None


class InvoiceOut(_ORM):
    id: int
    number: str
    invoice_type: InvoiceType
    recipient_id: int
    booking_id: int | None = None
    subtotal_cents: int
    vat_rate: float
    vat_cents: int
    total_cents: int
    description: str
    status: InvoiceStatus
    created_at: datetime


# -----------------------------
# Reviews
# -----------------------------
class ReviewCreate(BaseModel):
    booking_id: int
    reviewer_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    category_ratings: dict[str, int] | None = None


class ReviewUpdate(BaseModel):
    reviewer_id: int
    rating: int | None = Field(None, ge=1, le=5)
    comment: str | None = None


class ReviewOut(_ORM):
    id: int
    booking_id: int
    listing_id: int | None = None
    reviewer_id: int
    reviewee_id: int
    review_type: ReviewType
    rating: int
    comment: str
    status: ReviewStatus
    created_at: datetime


# -----------------------------
# Calendar
# -----------------------------
class BlockCreate(BaseModel):
    owner_id: int
    start_date: date | None = None
    end_date: date | None = None
    days: list[date] | None = None
    reason: str | None = None


class BlockOut(_ORM):
    id: int
    listing_id: int
    start_date: date
    end_date: date
    reason: str
    source_calendar_id: int | None = None


class BusyRangeOut(BaseModel):
    start: date
    end: date
    kind: str
    ref_id: int


class ExportUrlOut(BaseModel):
    url: str


class CalendarImport(BaseModel):
    user_id: int
    url: str = Field(..., min_length=8)
    name: str = Field("External calendar", max_length=120)
    listing_ids: list[int] = Field(..., min_length=1)


class ImportedCalendarOut(_ORM):
    id: int
    user_id: int
    name: str
    url: str
    status: CalendarStatus
    events_count: int
    last_sync: datetime | None = None
    error_message: str | None = None


# -----------------------------
# Admin
# -----------------------------
class FeeScheduleIn(BaseModel):
    renter_pct: float | None = Field(None, ge=0, le=100)
    hubber_pct: float | None = Field(None, ge=0, le=100)
    super_hubber_pct: float | None = Field(None, ge=0, le=100)
    fixed_fee_cents: int | None = Field(None, ge=0)


class FeeScheduleOut(BaseModel):
    renter_pct: float
    hubber_pct: float
    super_hubber_pct: float
    fixed_fee_cents: int


class HubberTermsIn(BaseModel):
    is_super_hubber: bool | None = None
    custom_fee_percentage: float | None = Field(None, ge=0, le=100)
    clear_custom_fee: bool = False


class OverrideCreate(BaseModel):
    user_id: int
    duration_days: int = Field(..., gt=0)
    fees_disabled: bool = False
    custom_renter_fee: float | None = Field(None, ge=0, le=100)
    custom_hubber_fee: float | None = Field(None, ge=0, le=100)
    max_transaction_cents: int | None = Field(None, gt=0)
    reason: str = ""
    notes: str = ""
    admin_id: int | None = None


class PromoApply(BaseModel):
    code: str


class OverrideOut(_ORM):
    id: int
    user_id: int
    fees_disabled: bool
    custom_renter_fee: float | None = None
    custom_hubber_fee: float | None = None
    valid_from: datetime
    valid_until: datetime
    max_transaction_cents: int | None = None
    current_transaction_cents: int
    status: OverrideStatus
    reason: str


class RefundCreate(BaseModel):
    booking_id: int
    amount_cents: int = Field(..., gt=0)
    reason: str | None = None
    admin_id: int | None = None


class RefundDecisionIn(BaseModel):
    admin_id: int | None = None
    notes: str | None = None


class RefundProcessIn(BaseModel):
    method: Literal["wallet", "card", "manual"]
    admin_id: int | None = None


class RefundOut(_ORM):
    id: int
    booking_id: int
    renter_id: int
    hubber_id: int
    original_amount_cents: int
    refund_amount_cents: int
    card_amount_cents: int
    cancelled_by: CancelledBy
    status: RefundStatus
    refund_method: RefundMethod | None = None
    gateway_refund_id: str | None = None
    rejection_reason: str | None = None
    last_error: str | None = None
    requested_at: datetime
    processed_at: datetime | None = None


class WalletAdjustment(BaseModel):
    amount_cents: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1)
    wallet_type: WalletTypeLit = "renter"
    direction: Literal["credit", "debit"] = "credit"
    admin_id: int | None = None


class PayoutDecision(BaseModel):
    notes: str | None = None
    transfer_reference: str | None = None


class BookingStatusSet(BaseModel):
    status: Literal["pending", "accepted", "confirmed", "active", "completed", "cancelled", "rejected"]
    reason: str | None = None


class ReviewModeration(BaseModel):
    status: Literal["approved", "suspended", "rejected"]


# -----------------------------
# Integrations / jobs
# -----------------------------
class IntegrationCreate(BaseModel):
    name: str
    type: Literal["webhook"] = "webhook"
    enabled: bool = True
    url: str
    secret: str | None = None


class IntegrationOut(BaseModel):
    id: int
    name: str
    type: str
    enabled: bool
    created_at: datetime


class DispatchResult(BaseModel):
    delivered: int
    failed: int
    retrying: int | None = None
    sinks: int | None = None
    events: int | None = None
    skipped_no_sinks: int | None = None


class LifecycleResult(BaseModel):
    started: int
    completed: int
    overrides_expired: int
