# renthubber/services/reviews.py
from __future__ import annotations

import json
import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import Conflict, InvalidState, NotFound, PermissionDenied, ValidationFailed
from ..domain.periods import utcnow
from ..domain.types import BookingStatus
from ..models import Booking, Listing, Review, ReviewStatus, ReviewType, User

log = logging.getLogger(__name__)

CATEGORY_KEYS = ("communication", "accuracy", "cleanliness", "punctuality", "value")


def _round1(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _check_rating(value: int, label: str = "rating") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationFailed(f"{label} must be an integer between 1 and 5")
    return value


def _check_categories(category_ratings: dict[str, int] | None) -> dict[str, int]:
    out: dict[str, int] = {}
    for k, v in (category_ratings or {}).items():
        if k not in CATEGORY_KEYS:
            raise ValidationFailed(f"unknown rating category: {k}")
        out[k] = _check_rating(v, k)
    return out


async def _avg_and_count(session: AsyncSession, *conds) -> tuple[float | None, int]:
    avg, cnt = (
        await session.execute(
            select(func.avg(Review.rating), func.count(Review.id)).where(Review.status == ReviewStatus.approved, *conds)
        )
    ).one()
    return (_round1(float(avg)) if avg is not None else None), int(cnt or 0)


async def recompute_aggregates(
    session: AsyncSession, review_type: ReviewType, reviewee_id: int, listing_id: int | None
) -> None:
    """Ratings are the 1-decimal average of approved reviews only."""
    user = await session.get(User, reviewee_id)
    avg, cnt = await _avg_and_count(session, Review.reviewee_id == reviewee_id, Review.review_type == review_type)

    if review_type == ReviewType.renter_to_hubber:
        if user:
            user.rating, user.review_count = avg, cnt
        if listing_id is not None:
            listing = await session.get(Listing, listing_id)
            if listing:
                l_avg, l_cnt = await _avg_and_count(
                    session, Review.listing_id == listing_id, Review.review_type == ReviewType.renter_to_hubber
                )
                listing.rating, listing.review_count = l_avg or 0.0, l_cnt
    elif user:
        user.renter_rating, user.renter_review_count = avg, cnt

    await session.flush()


async def create_review(
    session: AsyncSession,
    *,
    booking_id: int,
    reviewer_id: int,
    rating: int,
    comment: str = "",
    category_ratings: dict[str, int] | None = None,
    now: datetime | None = None,
) -> Review:
    b = await session.get(Booking, booking_id)
    if not b:
        raise NotFound(f"Booking {booking_id} not found")
    if b.status != BookingStatus.completed:
        raise InvalidState("Only completed bookings can be reviewed")

    if reviewer_id == b.renter_id:
        review_type, reviewee_id = ReviewType.renter_to_hubber, b.hubber_id
    elif reviewer_id == b.hubber_id:
        review_type, reviewee_id = ReviewType.hubber_to_renter, b.renter_id
    else:
        raise PermissionDenied("Only the renter or the hubber of the booking can review it")

    _check_rating(rating)
    cats = _check_categories(category_ratings)

    existing = (
        await session.execute(
            select(Review.id).where(Review.booking_id == booking_id).where(Review.reviewer_id == reviewer_id)
        )
    ).first()
    if existing:
        raise Conflict("You already reviewed this booking")

    r = Review(
        booking_id=booking_id,
        listing_id=b.listing_id,
        reviewer_id=reviewer_id,
        reviewee_id=reviewee_id,
        review_type=review_type,
        rating=rating,
        category_ratings_json=json.dumps(cats),
        comment=(comment or "").strip(),
        status=ReviewStatus.approved,
        created_at=now or utcnow(),
    )
    session.add(r)
    await session.flush()

    await recompute_aggregates(session, review_type, reviewee_id, b.listing_id)
    return r


async def get_review(session: AsyncSession, review_id: int) -> Review:
    r = await session.get(Review, review_id)
    if not r:
        raise NotFound(f"Review {review_id} not found")
    return r


async def update_review(
    session: AsyncSession,
    review_id: int,
    reviewer_id: int,
    *,
    rating: int | None = None,
    comment: str | None = None,
) -> Review:
    r = await get_review(session, review_id)
    if r.reviewer_id != reviewer_id:
        raise PermissionDenied("Not your review")
    if rating is not None:
        r.rating = _check_rating(rating)
    if comment is not None:
        r.comment = comment.strip()
    await session.flush()
    await recompute_aggregates(session, r.review_type, r.reviewee_id, r.listing_id)
    return r


async def set_status(
    session: AsyncSession, review_id: int, status: ReviewStatus, *, now: datetime | None = None
) -> Review:
    r = await get_review(session, review_id)
    r.status = status
    r.moderated_at = now or utcnow()
    await session.flush()
    await recompute_aggregates(session, r.review_type, r.reviewee_id, r.listing_id)
    log.info("review %s moderated: %s", r.id, status.value)
    return r


async def delete_review(session: AsyncSession, review_id: int, *, reviewer_id: int | None = None) -> None:
    r = await get_review(session, review_id)
    if reviewer_id is not None and r.reviewer_id != reviewer_id:
        raise PermissionDenied("Not your review")
    review_type, reviewee_id, listing_id = r.review_type, r.reviewee_id, r.listing_id
    await session.delete(r)
    await session.flush()
    await recompute_aggregates(session, review_type, reviewee_id, listing_id)


async def list_for_user(
    session: AsyncSession,
    user_id: int,
    *,
    review_type: ReviewType | None = None,
    include_hidden: bool = False,
) -> list[Review]:
    stmt = select(Review).where(Review.reviewee_id == user_id).order_by(Review.created_at.desc())
    if review_type is not None:
        stmt = stmt.where(Review.review_type == review_type)
    if not include_hidden:
        stmt = stmt.where(Review.status == ReviewStatus.approved)
    return list((await session.execute(stmt)).scalars().all())


async def list_for_listing(session: AsyncSession, listing_id: int) -> list[Review]:
    stmt = (
        select(Review)
        .where(Review.listing_id == listing_id)
        .where(Review.review_type == ReviewType.renter_to_hubber)
        .where(Review.status == ReviewStatus.approved)
        .order_by(Review.created_at.desc())
    )
    return list((await session.execute(stmt)).scalars().all())
