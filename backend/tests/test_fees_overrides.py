# tests/test_fees_overrides.py
from datetime import timedelta

import pytest

from helpers import NOW, day
from renthubber.domain.errors import Conflict, InvalidState, ValidationFailed
from renthubber.models import OverrideStatus
from renthubber.services import bookings as booking_service
from renthubber.services import fees as fee_service
from renthubber.services.users import set_hubber_terms


async def _quote(session, listing, renter):
    q = await booking_service.quote_booking(
        session, listing_id=listing.id, renter_id=renter.id, start_at=day(5), end_at=day(8), now=NOW
    )
    return q.price


@pytest.mark.asyncio
async def test_schedule_defaults_and_update(session):
    s = await fee_service.get_schedule(session)
    assert (s.renter_pct, s.hubber_pct, s.super_hubber_pct, s.fixed_fee_cents) == (10.0, 10.0, 5.0, 200)

    s = await fee_service.update_schedule(session, renter_pct=12.5, fixed_fee_cents=150)
    assert s.renter_pct == 12.5
    assert s.hubber_pct == 10.0
    assert s.fixed_fee_cents == 150

    with pytest.raises(ValidationFailed):
        await fee_service.update_schedule(session, hubber_pct=120)


@pytest.mark.asyncio
async def test_super_hubber_and_custom_percentage(session, listing, hubber, renter):
    await set_hubber_terms(session, hubber.id, is_super_hubber=True)
    assert (await _quote(session, listing, renter)).hubber_pct == 5.0

    await set_hubber_terms(session, hubber.id, custom_fee_percentage=3.0)
    assert (await _quote(session, listing, renter)).hubber_pct == 3.0

    await set_hubber_terms(session, hubber.id, clear_custom_fee=True)
    assert (await _quote(session, listing, renter)).hubber_pct == 5.0


@pytest.mark.asyncio
async def test_fees_disabled_override_until_cap(session, listing, renter, gateway):
    ov = await fee_service.create_override(
        session, renter.id, duration_days=30, fees_disabled=True, max_transaction_cents=15_000, reason="VIP", now=NOW
    )
    p = await _quote(session, listing, renter)
    assert p.renter_fee_cents == 0
    assert p.total_cents == 15_000

    await booking_service.create_booking(
        session,
        listing_id=listing.id,
        renter_id=renter.id,
        start_at=day(5),
        end_at=day(8),
        gateway=gateway,
        now=NOW,
    )
    assert ov.current_transaction_cents == 15_000
    assert ov.status == OverrideStatus.limit_reached
    assert await fee_service.active_override(session, renter.id, NOW) is None


@pytest.mark.asyncio
async def test_new_override_revokes_previous(session, renter):
    first = await fee_service.create_override(session, renter.id, duration_days=10, custom_renter_fee=5.0, now=NOW)
    second = await fee_service.create_override(session, renter.id, duration_days=10, custom_renter_fee=2.0, now=NOW)
    await session.refresh(first)

    assert first.status == OverrideStatus.revoked
    assert (await fee_service.active_override(session, renter.id, NOW)).id == second.id

    await fee_service.revoke_override(session, second.id, revoked_by=1)
    with pytest.raises(InvalidState):
        await fee_service.revoke_override(session, second.id)


@pytest.mark.asyncio
async def test_override_validation(session, renter):
    with pytest.raises(ValidationFailed):
        await fee_service.create_override(session, renter.id, duration_days=10, now=NOW)
    with pytest.raises(ValidationFailed):
        await fee_service.create_override(session, renter.id, duration_days=0, fees_disabled=True, now=NOW)


@pytest.mark.asyncio
async def test_expire_overrides(session, renter):
    await fee_service.create_override(session, renter.id, duration_days=30, fees_disabled=True, now=NOW)

    assert await fee_service.expire_overrides(session, NOW + timedelta(days=10)) == 0
    assert await fee_service.expire_overrides(session, NOW + timedelta(days=31)) == 1
    assert await fee_service.active_override(session, renter.id, NOW + timedelta(days=31)) is None


@pytest.mark.asyncio
async def test_launch_promo(session, listing, hubber, renter):
    ov = await fee_service.apply_promo(session, hubber.id, "LANCIO", now=NOW)
    assert ov.reason == "promo:lancio"
    assert ov.max_transaction_cents == 100_000

    p = await _quote(session, listing, renter)
    assert p.hubber_pct == 0.0
    assert p.hubber_fee_cents == 200

    with pytest.raises(Conflict):
        await fee_service.apply_promo(session, hubber.id, "lancio", now=NOW)
    with pytest.raises(ValidationFailed):
        await fee_service.apply_promo(session, renter.id, "nope", now=NOW)


@pytest.mark.asyncio
async def test_cancelled_booking_gives_back_override_volume(session, listing, renter, gateway):
    ov = await fee_service.create_override(
        session, renter.id, duration_days=30, fees_disabled=True, max_transaction_cents=15_000, reason="VIP", now=NOW
    )
    b = await booking_service.create_booking(
        session, listing_id=listing.id, renter_id=renter.id, start_at=day(5), end_at=day(8), gateway=gateway, now=NOW
    )
    assert b.renter_override_id == ov.id
    assert ov.status == OverrideStatus.limit_reached

    await booking_service.cancel_by_renter(session, b.id, renter.id, gateway=gateway, now=NOW)

    assert ov.current_transaction_cents == 0
    assert ov.status == OverrideStatus.active
    assert b.override_volume_cents == 0
    assert (await fee_service.active_override(session, renter.id, NOW)).id == ov.id


@pytest.mark.asyncio
async def test_release_after_end_date_leaves_override_expired(session, renter):
    ov = await fee_service.create_override(
        session, renter.id, duration_days=5, fees_disabled=True, max_transaction_cents=10_000, now=NOW
    )
    await fee_service.consume_override(session, ov, 12_000)
    assert ov.status == OverrideStatus.limit_reached

    await fee_service.release_override(session, ov, 20_000, now=NOW + timedelta(days=6))
    assert ov.current_transaction_cents == 0
    assert ov.status == OverrideStatus.expired
