# renthubber/entrypoints/api/routers/jobs.py
from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....adapters.clients.ical_fetch import CalendarFetcher
from ....jobs.dispatch import run_dispatch
from ....jobs.lifecycle import run_lifecycle
from ....schemas import DispatchResult, LifecycleResult
from ....services.calendar import sync_all_calendars
from ....services.jobruns import finish_job_fail, finish_job_success, recent_runs, start_job
from ..deps import get_calendar_fetcher, get_session, require_api_key

router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(require_api_key)])


@router.post("/dispatch", response_model=DispatchResult)
async def dispatch_outbox(
    batch_size: int = Query(50, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> DispatchResult:
    jr = await start_job(session, "dispatch_api")
    try:
        result = await run_dispatch(session=session, batch_size=batch_size)
        await finish_job_success(session, jr, result)
        await session.commit()
        return DispatchResult(**result)
    except Exception as e:
        await session.rollback()
        jr = await start_job(session, "dispatch_api")
        await finish_job_fail(session, jr, e)
        await session.commit()
        raise


@router.post("/lifecycle", response_model=LifecycleResult)
async def lifecycle_tick(session: AsyncSession = Depends(get_session)) -> LifecycleResult:
    jr = await start_job(session, "lifecycle_api")
    try:
        result = await run_lifecycle(session)
        await finish_job_success(session, jr, result)
        await session.commit()
        return LifecycleResult(**result)
    except Exception as e:
        await session.rollback()
        jr = await start_job(session, "lifecycle_api")
        await finish_job_fail(session, jr, e)
        await session.commit()
        raise


@router.post("/calendar-sync")
async def calendar_sync(
    session: AsyncSession = Depends(get_session),
    fetcher: CalendarFetcher = Depends(get_calendar_fetcher),
) -> dict[str, Any]:
    jr = await start_job(session, "calendar_sync_api")
    result = await sync_all_calendars(session, fetcher=fetcher)
    await finish_job_success(session, jr, result)
    await session.commit()
    return result


@router.get("/runs")
async def job_runs(
    job_name: str | None = Query(None),
    limit: int = Query(20, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    rows = await recent_runs(session, job_name, limit)
    return [
        {
            "id": r.id,
            "job_name": r.job_name,
            "status": r.status.value,
            "started_at": r.started_at,
            "finished_at": r.finished_at,
            "error": r.error,
            "summary": json.loads(r.summary_json) if r.summary_json else None,
        }
        for r in rows
    ]
