# renthubber/services/messages.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import BookingMessage


async def post_system_message(session: AsyncSession, booking_id: int, body: str) -> BookingMessage:
    msg = BookingMessage(booking_id=booking_id, body=body)
    session.add(msg)
    await session.flush()
    return msg


async def list_messages(session: AsyncSession, booking_id: int) -> list[BookingMessage]:
    stmt = select(BookingMessage).where(BookingMessage.booking_id == booking_id).order_by(BookingMessage.id.asc())
    return list((await session.execute(stmt)).scalars().all())
