# renthubber/jobs/scheduler.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.clients.ical_fetch import fetch_calendar
from ..config import settings
from ..db import async_session
from ..domain.periods import utcnow
from ..models import Integration, OutboxEvent, OutboxStatus
from ..services.calendar import sync_all_calendars
from ..services.fees import expire_overrides
from ..services.jobruns import finish_job_fail, finish_job_success, start_job
from .dispatch import run_dispatch
from .lifecycle import run_lifecycle

log = logging.getLogger(__name__)


async def _tracked(job_name: str, work: Callable[[AsyncSession], Awaitable[dict[str, Any]]]) -> None:
    """Run one tick in its own transaction and record it in job_runs."""
    async with async_session() as session:
        jr = await start_job(session, job_name)
        await session.commit()
        try:
            summary = await work(session)
            await finish_job_success(session, jr, summary)
            await session.commit()
        except Exception as e:
            log.exception("%s failed", job_name)
            await session.rollback()
            await finish_job_fail(session, jr, e)
            await session.commit()


async def _run_lifecycle() -> None:
    await _tracked("lifecycle", lambda s: run_lifecycle(s, include_overrides=False))


async def _run_expire_overrides() -> None:
    async def work(session: AsyncSession) -> dict[str, Any]:
        return {"expired": await expire_overrides(session)}

    await _tracked("expire_overrides", work)


async def _run_calendar_sync() -> None:
    await _tracked("calendar_sync", lambda s: sync_all_calendars(s, fetcher=fetch_calendar))


async def _has_work_to_dispatch(session: AsyncSession, now: datetime) -> bool:
    enabled_sinks = (
        await session.execute(select(func.count()).select_from(Integration).where(Integration.enabled == True))  # noqa: E712
    ).scalar_one()
    if int(enabled_sinks) == 0:
        return False

    pending = (
        await session.execute(
            select(func.count())
            .select_from(OutboxEvent)
            .where(OutboxEvent.status == OutboxStatus.pending)
            .where(or_(OutboxEvent.next_attempt_at.is_(None), OutboxEvent.next_attempt_at <= now))
        )
    ).scalar_one()
    return int(pending) > 0


async def _run_dispatch_quiet() -> None:
    """No enabled sinks or nothing due: no job run, no HTTP."""
    async with async_session() as session:
        if not await _has_work_to_dispatch(session, utcnow()):
            return

    await _tracked("dispatch", lambda s: run_dispatch(s))


def build_scheduler() -> AsyncIOScheduler:
    sched = AsyncIOScheduler()

    sched.add_job(
        _run_lifecycle, "interval", minutes=settings.SCHED_LIFECYCLE_INTERVAL_MINUTES, id="lifecycle", max_instances=1
    )
    sched.add_job(
        _run_expire_overrides,
        "interval",
        minutes=settings.SCHED_OVERRIDES_INTERVAL_MINUTES,
        id="expire_overrides",
        max_instances=1,
    )
    sched.add_job(
        _run_calendar_sync,
        "interval",
        minutes=settings.SCHED_CALENDAR_SYNC_INTERVAL_MINUTES,
        id="calendar_sync",
        max_instances=1,
    )
    sched.add_job(
        _run_dispatch_quiet, "interval", minutes=settings.SCHED_DISPATCH_INTERVAL_MINUTES, id="dispatch", max_instances=1
    )
    return sched
