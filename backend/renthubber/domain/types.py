from __future__ import annotations

from enum import Enum


class PriceUnit(str, Enum):
    hour = "hour"
    day = "day"
    week = "week"
    month = "month"


class ListingCategory(str, Enum):
    object = "object"
    space = "space"


class ListingStatus(str, Enum):
    draft = "draft"
    published = "published"
    hidden = "hidden"
    suspended = "suspended"


class CancellationPolicy(str, Enum):
    flexible = "flexible"
    moderate = "moderate"
    strict = "strict"


class BookingStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    confirmed = "confirmed"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"
    rejected = "rejected"


class RefundMethod(str, Enum):
    wallet = "wallet"
    card = "card"
    manual = "manual"


class PaymentMethod(str, Enum):
    """How a date-change supplement is paid."""
    wallet = "wallet"
    card = "card"


class CancelledBy(str, Enum):
    renter = "renter"
    hubber = "hubber"
    admin = "admin"
    system = "system"


# Statuses that hold the listing's dates
BLOCKING_STATUSES: frozenset[BookingStatus] = frozenset(
    {
        BookingStatus.pending,
        BookingStatus.accepted,
        BookingStatus.confirmed,
        BookingStatus.active,
    }
)

RENTER_CANCELLABLE: frozenset[BookingStatus] = frozenset(
    {BookingStatus.pending, BookingStatus.confirmed, BookingStatus.accepted}
)

HUBBER_CANCELLABLE: frozenset[BookingStatus] = frozenset(
    {BookingStatus.pending, BookingStatus.confirmed, BookingStatus.accepted, BookingStatus.active}
)

MODIFIABLE: frozenset[BookingStatus] = frozenset(
    {BookingStatus.pending, BookingStatus.confirmed, BookingStatus.accepted}
)

# Bookings published in the hubber's iCal export
FEED_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.confirmed, BookingStatus.accepted, BookingStatus.active, BookingStatus.completed}
)
