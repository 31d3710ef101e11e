# renthubber/entrypoints/api/routers/listings.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....domain.types import CancellationPolicy, ListingCategory, ListingStatus, PriceUnit
from ....schemas import ListingCreate, ListingOut, ListingStatusUpdate, ListingUpdate, ReviewOut
from ....services import listings as listing_service
from ....services import reviews as review_service
from ..deps import get_session

router = APIRouter(prefix="/listings", tags=["listings"])


@router.post("", response_model=ListingOut, status_code=201)
async def create_listing(body: ListingCreate, session: AsyncSession = Depends(get_session)) -> ListingOut:
    listing = await listing_service.create_listing(
        session,
        owner_id=body.owner_id,
        title=body.title,
        category=ListingCategory(body.category),
        price_cents=body.price_cents,
        price_unit=PriceUnit(body.price_unit),
        cleaning_fee_cents=body.cleaning_fee_cents,
        cancellation_policy=CancellationPolicy(body.cancellation_policy),
        location=body.location,
        city=body.city,
        status=ListingStatus.published if body.publish else ListingStatus.draft,
    )
    await session.commit()
    return ListingOut.model_validate(listing)


@router.get("", response_model=list[ListingOut])
async def list_listings(
    owner_id: int | None = Query(None),
    city: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> list[ListingOut]:
    # the public catalogue only shows published listings; owners see all of theirs
    status = None if owner_id is not None else ListingStatus.published
    rows = await listing_service.list_listings(session, owner_id=owner_id, city=city, status=status, limit=limit)
    return [ListingOut.model_validate(r) for r in rows]


@router.get("/available", response_model=list[ListingOut])
async def list_available(
    start_at: datetime = Query(...),
    end_at: datetime = Query(...),
    city: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[ListingOut]:
    rows = await listing_service.list_available(session, start_at, end_at, city=city)
    return [ListingOut.model_validate(r) for r in rows]


@router.get("/{listing_id}", response_model=ListingOut)
async def get_listing(listing_id: int, session: AsyncSession = Depends(get_session)) -> ListingOut:
    return ListingOut.model_validate(await listing_service.get_listing(session, listing_id))


@router.patch("/{listing_id}", response_model=ListingOut)
async def update_listing(
    listing_id: int, body: ListingUpdate, session: AsyncSession = Depends(get_session)
) -> ListingOut:
    changes = body.model_dump(exclude={"owner_id"}, exclude_none=True)
    for key, enum_cls in (
        ("category", ListingCategory),
        ("price_unit", PriceUnit),
        ("cancellation_policy", CancellationPolicy),
    ):
        if key in changes:
            changes[key] = enum_cls(changes[key])
    listing = await listing_service.update_listing(session, listing_id, body.owner_id, changes)
    await session.commit()
    return ListingOut.model_validate(listing)


@router.post("/{listing_id}/status", response_model=ListingOut)
async def set_listing_status(
    listing_id: int, body: ListingStatusUpdate, session: AsyncSession = Depends(get_session)
) -> ListingOut:
    listing = await listing_service.set_status(session, listing_id, ListingStatus(body.status), owner_id=body.owner_id)
    await session.commit()
    return ListingOut.model_validate(listing)


@router.get("/{listing_id}/reviews", response_model=list[ReviewOut])
async def listing_reviews(listing_id: int, session: AsyncSession = Depends(get_session)) -> list[ReviewOut]:
    return [ReviewOut.model_validate(r) for r in await review_service.list_for_listing(session, listing_id)]
