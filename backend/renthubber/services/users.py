# renthubber/services/users.py
from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import Conflict, NotFound, ValidationFailed
from ..models import User, Wallet

log = logging.getLogger(__name__)


async def create_user(
    session: AsyncSession,
    *,
    name: str,
    email: str,
    is_super_hubber: bool = False,
) -> User:
    email_norm = (email or "").strip().lower()
    if "@" not in email_norm:
        raise ValidationFailed("Invalid email")

    existing = (
        await session.execute(select(User).where(func.lower(User.email) == email_norm))
    ).scalars().first()
    if existing:
        raise Conflict("Email already registered")

    user = User(name=name.strip(), email=email_norm, is_super_hubber=is_super_hubber)
    session.add(user)
    await session.flush()

    session.add(Wallet(user_id=user.id))
    await session.flush()

    log.info("user %s created", user.id)
    return user


async def get_user(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound(f"User {user_id} not found")
    return user


async def set_hubber_terms(
    session: AsyncSession,
    user_id: int,
    *,
    is_super_hubber: bool | None = None,
    custom_fee_percentage: float | None = None,
    clear_custom_fee: bool = False,
) -> User:
    user = await get_user(session, user_id)
    if is_super_hubber is not None:
        user.is_super_hubber = is_super_hubber
    if clear_custom_fee:
        user.custom_fee_percentage = None
    elif custom_fee_percentage is not None:
        if not 0 <= custom_fee_percentage <= 100:
            raise ValidationFailed("custom_fee_percentage must be between 0 and 100")
        user.custom_fee_percentage = custom_fee_percentage
    await session.flush()
    return user
