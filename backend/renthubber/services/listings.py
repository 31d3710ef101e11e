# renthubber/services/listings.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import NotFound, PermissionDenied, ValidationFailed
from ..domain.periods import booking_days, utcnow
from ..domain.types import CancellationPolicy, ListingCategory, ListingStatus, PriceUnit
from ..models import Listing, User
from .calendar import busy_ranges

_EDITABLE = {
    "title",
    "category",
    "price_cents",
    "price_unit",
    "cleaning_fee_cents",
    "cancellation_policy",
    "location",
    "city",
}


def _validate_prices(price_cents: int | None, cleaning_fee_cents: int | None) -> None:
    if price_cents is not None and price_cents <= 0:
        raise ValidationFailed("price must be positive")
    if cleaning_fee_cents is not None and cleaning_fee_cents < 0:
        raise ValidationFailed("cleaning fee cannot be negative")


async def create_listing(
    session: AsyncSession,
    *,
    owner_id: int,
    title: str,
    price_cents: int,
    price_unit: PriceUnit = PriceUnit.day,
    category: ListingCategory = ListingCategory.object,
    cleaning_fee_cents: int = 0,
    cancellation_policy: CancellationPolicy = CancellationPolicy.flexible,
    location: str | None = None,
    city: str | None = None,
    status: ListingStatus = ListingStatus.draft,
) -> Listing:
    if not await session.get(User, owner_id):
        raise NotFound(f"User {owner_id} not found")
    if not title.strip():
        raise ValidationFailed("title is required")
    _validate_prices(price_cents, cleaning_fee_cents)

    listing = Listing(
        owner_id=owner_id,
        title=title.strip(),
        category=category,
        status=status,
        price_cents=price_cents,
        price_unit=price_unit,
        cleaning_fee_cents=cleaning_fee_cents,
        cancellation_policy=cancellation_policy,
        location=location,
        city=city,
    )
    session.add(listing)
    await session.flush()
    return listing


async def get_listing(session: AsyncSession, listing_id: int) -> Listing:
    listing = await session.get(Listing, listing_id)
    if not listing:
        raise NotFound(f"Listing {listing_id} not found")
    return listing


async def list_listings(
    session: AsyncSession,
    *,
    owner_id: int | None = None,
    city: str | None = None,
    status: ListingStatus | None = None,
    limit: int = 100,
) -> list[Listing]:
    stmt = select(Listing).order_by(Listing.id.asc()).limit(limit)
    if owner_id is not None:
        stmt = stmt.where(Listing.owner_id == owner_id)
    if city:
        stmt = stmt.where(Listing.city == city)
    if status is not None:
        stmt = stmt.where(Listing.status == status)
    return list((await session.execute(stmt)).scalars().all())


async def update_listing(session: AsyncSession, listing_id: int, owner_id: int, changes: dict[str, Any]) -> Listing:
    listing = await get_listing(session, listing_id)
    if listing.owner_id != owner_id:
        raise PermissionDenied("Not the owner of this listing")

    unknown = set(changes) - _EDITABLE
    if unknown:
        raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}")
    _validate_prices(changes.get("price_cents"), changes.get("cleaning_fee_cents"))

    for k, v in changes.items():
        if v is not None:
            setattr(listing, k, v)
    listing.updated_at = utcnow()
    await session.flush()
    return listing


async def set_status(
    session: AsyncSession, listing_id: int, status: ListingStatus, *, owner_id: int | None = None
) -> Listing:
    """Owners toggle draft/published/hidden; `owner_id=None` is the admin path (suspension)."""
    listing = await get_listing(session, listing_id)
    if owner_id is not None:
        if listing.owner_id != owner_id:
            raise PermissionDenied("Not the owner of this listing")
        if status == ListingStatus.suspended or listing.status == ListingStatus.suspended:
            raise PermissionDenied("Suspension is managed by admins")
    listing.status = status
    listing.updated_at = utcnow()
    await session.flush()
    return listing


async def list_available(
    session: AsyncSession,
    start_at: datetime,
    end_at: datetime,
    *,
    city: str | None = None,
    limit: int = 100,
) -> list[Listing]:
    if end_at <= start_at:
        raise ValidationFailed("end must be after start")
    s, e = booking_days(start_at, end_at)

    candidates = await list_listings(session, city=city, status=ListingStatus.published, limit=limit)
    out: list[Listing] = []
    for listing in candidates:
        if not await busy_ranges(session, listing.id, s, e):
            out.append(listing)
    return out
