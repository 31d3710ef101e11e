# renthubber/entrypoints/api/routers/users.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ....schemas import UserCreate, UserOut
from ....services import users as user_service
from ..deps import get_session

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserOut, status_code=201)
async def create_user(body: UserCreate, session: AsyncSession = Depends(get_session)) -> UserOut:
    user = await user_service.create_user(session, name=body.name, email=body.email)
    await session.commit()
    return UserOut.model_validate(user)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: int, session: AsyncSession = Depends(get_session)) -> UserOut:
    return UserOut.model_validate(await user_service.get_user(session, user_id))
