# renthubber/entrypoints/api/routers/calendar.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ....adapters.clients.ical_fetch import CalendarFetcher
from ....domain.errors import ValidationFailed
from ....schemas import BlockCreate, BlockOut, BusyRangeOut, CalendarImport, ExportUrlOut, ImportedCalendarOut
from ....services import calendar as calendar_service
from ..deps import get_calendar_fetcher, get_session

router = APIRouter(tags=["calendar"])

ICAL_HEADERS = {
    "Content-Disposition": 'attachment; filename="renthubber.ics"',
    "Cache-Control": "no-cache, no-store, must-revalidate",
}


# -----------------------------
# Blocks / availability
# -----------------------------
@router.get("/listings/{listing_id}/unavailable", response_model=list[BusyRangeOut])
async def unavailable(listing_id: int, session: AsyncSession = Depends(get_session)) -> list[BusyRangeOut]:
    rows = await calendar_service.unavailable_ranges(session, listing_id, today=None)
    return [BusyRangeOut(start=r.start, end=r.end, kind=r.kind, ref_id=r.ref_id) for r in rows]


@router.get("/listings/{listing_id}/blocks", response_model=list[BlockOut])
async def list_blocks(listing_id: int, session: AsyncSession = Depends(get_session)) -> list[BlockOut]:
    return [BlockOut.model_validate(b) for b in await calendar_service.list_blocks(session, listing_id)]


@router.post("/listings/{listing_id}/blocks", response_model=list[BlockOut], status_code=201)
async def create_blocks(
    listing_id: int, body: BlockCreate, session: AsyncSession = Depends(get_session)
) -> list[BlockOut]:
    if body.days:
        blocks = await calendar_service.create_day_blocks(
            session, listing_id, body.days, body.reason, owner_id=body.owner_id
        )
    elif body.start_date and body.end_date:
        blocks = [
            await calendar_service.create_block(
                session, listing_id, body.start_date, body.end_date, body.reason, owner_id=body.owner_id
            )
        ]
    else:
        raise ValidationFailed("Provide days or start_date/end_date")
    await session.commit()
    return [BlockOut.model_validate(b) for b in blocks]


@router.delete("/blocks/{block_id}", status_code=204)
async def delete_block(
    block_id: int, owner_id: int = Query(...), session: AsyncSession = Depends(get_session)
) -> Response:
    await calendar_service.delete_block(session, block_id, owner_id=owner_id)
    await session.commit()
    return Response(status_code=204)


# -----------------------------
# Export
# -----------------------------
@router.get("/users/{user_id}/calendar/export", response_model=ExportUrlOut)
async def export_url(user_id: int, session: AsyncSession = Depends(get_session)) -> ExportUrlOut:
    url = await calendar_service.get_or_create_export_url(session, user_id)
    await session.commit()
    return ExportUrlOut(url=url)


@router.post("/users/{user_id}/calendar/export/regenerate", response_model=ExportUrlOut)
async def regenerate(user_id: int, session: AsyncSession = Depends(get_session)) -> ExportUrlOut:
    url = await calendar_service.regenerate_export_token(session, user_id)
    await session.commit()
    return ExportUrlOut(url=url)


@router.get("/ical/{user_id}.ics")
async def ical_feed(
    user_id: int,
    token: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> Response:
    body = await calendar_service.hubber_feed(session, user_id, token)
    return Response(content=body, media_type="text/calendar; charset=utf-8", headers=ICAL_HEADERS)


# -----------------------------
# Import
# -----------------------------
@router.post("/calendars", response_model=ImportedCalendarOut, status_code=201)
async def import_calendar(
    body: CalendarImport,
    session: AsyncSession = Depends(get_session),
    fetcher: CalendarFetcher = Depends(get_calendar_fetcher),
) -> ImportedCalendarOut:
    cal = await calendar_service.import_calendar(
        session,
        body.user_id,
        url=body.url,
        name=body.name,
        listing_ids=body.listing_ids,
        fetcher=fetcher,
    )
    await session.commit()
    return ImportedCalendarOut.model_validate(cal)


@router.get("/users/{user_id}/calendars", response_model=list[ImportedCalendarOut])
async def list_calendars(user_id: int, session: AsyncSession = Depends(get_session)) -> list[ImportedCalendarOut]:
    return [ImportedCalendarOut.model_validate(c) for c in await calendar_service.list_calendars(session, user_id)]


@router.post("/calendars/{calendar_id}/sync", response_model=ImportedCalendarOut)
async def sync_calendar(
    calendar_id: int,
    session: AsyncSession = Depends(get_session),
    fetcher: CalendarFetcher = Depends(get_calendar_fetcher),
) -> ImportedCalendarOut:
    cal = await calendar_service.sync_calendar(session, calendar_id, fetcher=fetcher)
    await session.commit()
    return ImportedCalendarOut.model_validate(cal)


@router.delete("/calendars/{calendar_id}", status_code=204)
async def remove_calendar(
    calendar_id: int, user_id: int = Query(...), session: AsyncSession = Depends(get_session)
) -> Response:
    await calendar_service.remove_calendar(session, calendar_id, user_id=user_id)
    await session.commit()
    return Response(status_code=204)
