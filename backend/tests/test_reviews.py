# tests/test_reviews.py
import pytest

from helpers import NOW, day
from renthubber.domain.errors import Conflict, InvalidState, PermissionDenied, ValidationFailed
from renthubber.models import ReviewStatus, ReviewType
from renthubber.services import bookings as booking_service
from renthubber.services import reviews as review_service
from renthubber.services.users import create_user


@pytest.fixture
async def completed(session, listing, renter, gateway):
    b = await booking_service.create_booking(
        session, listing_id=listing.id, renter_id=renter.id, start_at=day(5), end_at=day(8), gateway=gateway, now=NOW
    )
    await booking_service.complete_booking(session, b.id, now=day(9))
    await session.commit()
    return b


@pytest.mark.asyncio
async def test_both_sides_can_review_once(session, completed, listing, hubber, renter):
    r1 = await review_service.create_review(
        session,
        booking_id=completed.id,
        reviewer_id=renter.id,
        rating=4,
        comment="Ottimo trapano ",
        category_ratings={"accuracy": 5, "communication": 4},
    )
    r2 = await review_service.create_review(session, booking_id=completed.id, reviewer_id=hubber.id, rating=5)

    assert r1.review_type == ReviewType.renter_to_hubber
    assert r1.reviewee_id == hubber.id
    assert r1.comment == "Ottimo trapano"
    assert r2.review_type == ReviewType.hubber_to_renter

    assert (hubber.rating, hubber.review_count) == (4.0, 1)
    assert (renter.renter_rating, renter.renter_review_count) == (5.0, 1)
    assert (listing.rating, listing.review_count) == (4.0, 1)

    with pytest.raises(Conflict):
        await review_service.create_review(session, booking_id=completed.id, reviewer_id=renter.id, rating=3)


@pytest.mark.asyncio
async def test_review_guards(session, completed, listing, renter, gateway):
    stranger = await create_user(session, name="Luca", email="luca@example.com")
    with pytest.raises(PermissionDenied):
        await review_service.create_review(session, booking_id=completed.id, reviewer_id=stranger.id, rating=4)
    with pytest.raises(ValidationFailed):
        await review_service.create_review(session, booking_id=completed.id, reviewer_id=renter.id, rating=6)
    with pytest.raises(ValidationFailed):
        await review_service.create_review(
            session, booking_id=completed.id, reviewer_id=renter.id, rating=4, category_ratings={"vibes": 5}
        )

    upcoming = await booking_service.create_booking(
        session, listing_id=listing.id, renter_id=renter.id, start_at=day(20), end_at=day(21), gateway=gateway, now=NOW
    )
    with pytest.raises(InvalidState):
        await review_service.create_review(session, booking_id=upcoming.id, reviewer_id=renter.id, rating=4)


@pytest.mark.asyncio
async def test_aggregates_follow_edits_and_moderation(session, completed, listing, hubber, renter):
    r = await review_service.create_review(session, booking_id=completed.id, reviewer_id=renter.id, rating=2)

    await review_service.update_review(session, r.id, renter.id, rating=5)
    assert hubber.rating == 5.0

    with pytest.raises(PermissionDenied):
        await review_service.update_review(session, r.id, hubber.id, rating=1)

    await review_service.set_status(session, r.id, ReviewStatus.hidden)
    assert (hubber.rating, hubber.review_count) == (None, 0)
    assert (listing.rating, listing.review_count) == (0.0, 0)
    assert await review_service.list_for_user(session, hubber.id) == []
    assert len(await review_service.list_for_user(session, hubber.id, include_hidden=True)) == 1

    await review_service.set_status(session, r.id, ReviewStatus.approved)
    assert [x.id for x in await review_service.list_for_listing(session, listing.id)] == [r.id]

    await review_service.delete_review(session, r.id, reviewer_id=renter.id)
    assert hubber.review_count == 0
