# tests/test_jobs.py
import pytest
from sqlalchemy import func, select

from helpers import NOW, day
from renthubber.domain.types import BookingStatus
from renthubber.jobs.lifecycle import run_lifecycle
from renthubber.models import Integration, JobRunStatus, Listing, User, WalletType
from renthubber.services import bookings as booking_service
from renthubber.services import wallet as wallet_service
from renthubber.services.demo_seed import seed_demo
from renthubber.services.jobruns import finish_job_fail, finish_job_success, recent_runs, start_job


@pytest.mark.asyncio
async def test_lifecycle_starts_then_completes(session, listing, renter, hubber, gateway):
    b = await booking_service.create_booking(
        session, listing_id=listing.id, renter_id=renter.id, start_at=day(5), end_at=day(8), gateway=gateway, now=NOW
    )
    await session.commit()

    assert await run_lifecycle(session, day(1)) == {"started": 0, "completed": 0, "overrides_expired": 0}

    res = await run_lifecycle(session, day(6))
    assert res["started"] == 1
    assert b.status == BookingStatus.active

    res = await run_lifecycle(session, day(9))
    assert res["completed"] == 1
    assert b.status == BookingStatus.completed
    assert await wallet_service.get_balance(session, hubber.id, WalletType.hubber) == 13300


@pytest.mark.asyncio
async def test_job_runs_are_recorded(session):
    ok = await start_job(session, "lifecycle")
    await finish_job_success(session, ok, {"started": 2})
    bad = await start_job(session, "lifecycle")
    await finish_job_fail(session, bad, RuntimeError("db gone"))
    await session.commit()

    runs = await recent_runs(session, "lifecycle", 10)
    assert [r.status for r in runs] == [JobRunStatus.failed, JobRunStatus.success]
    assert "db gone" in runs[0].error


@pytest.mark.asyncio
async def test_seed_is_idempotent(session):
    first = await seed_demo(session, webhook_url="https://hooks.example/demo")
    await session.commit()
    second = await seed_demo(session, webhook_url="https://hooks.example/demo", enable_webhook=True)
    await session.commit()

    assert first == {"users": 2, "listings": 2, "integrations": 1}
    assert second == {"users": 0, "listings": 0, "integrations": 0}
    assert (await session.execute(select(func.count(User.id)))).scalar_one() == 2
    assert (await session.execute(select(func.count(Listing.id)))).scalar_one() == 2

    integ = (await session.execute(select(Integration))).scalars().one()
    assert integ.enabled is True
