# renthubber/entrypoints/api/routers/reviews.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ....models import ReviewType
from ....schemas import ReviewCreate, ReviewOut, ReviewUpdate
from ....services import reviews as review_service
from ..deps import get_session

router = APIRouter(tags=["reviews"])


@router.post("/reviews", response_model=ReviewOut, status_code=201)
async def create_review(body: ReviewCreate, session: AsyncSession = Depends(get_session)) -> ReviewOut:
    r = await review_service.create_review(
        session,
        booking_id=body.booking_id,
        reviewer_id=body.reviewer_id,
        rating=body.rating,
        comment=body.comment,
        category_ratings=body.category_ratings,
    )
    await session.commit()
    return ReviewOut.model_validate(r)


@router.patch("/reviews/{review_id}", response_model=ReviewOut)
async def update_review(review_id: int, body: ReviewUpdate, session: AsyncSession = Depends(get_session)) -> ReviewOut:
    r = await review_service.update_review(session, review_id, body.reviewer_id, rating=body.rating, comment=body.comment)
    await session.commit()
    return ReviewOut.model_validate(r)


@router.delete("/reviews/{review_id}", status_code=204)
async def delete_review(
    review_id: int,
    reviewer_id: int = Query(...),
    session: AsyncSession = Depends(get_session),
) -> Response:
    await review_service.delete_review(session, review_id, reviewer_id=reviewer_id)
    await session.commit()
    return Response(status_code=204)


@router.get("/users/{user_id}/reviews", response_model=list[ReviewOut])
async def user_reviews(
    user_id: int,
    review_type: ReviewType | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[ReviewOut]:
    rows = await review_service.list_for_user(session, user_id, review_type=review_type)
    return [ReviewOut.model_validate(r) for r in rows]
