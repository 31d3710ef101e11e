# renthubber/services/fees.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..domain.errors import Conflict, InvalidState, NotFound, ValidationFailed
from ..domain.fees import FeeSchedule, OverrideTerms
from ..domain.periods import utcnow
from ..models import OverrideStatus, PlatformFees, User, UserFeeOverride

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Promo:
    fees_disabled: bool = False
    custom_renter_fee: float | None = None
    custom_hubber_fee: float | None = None
    duration_days: int = 30
    max_transaction_cents: int | None = None


PROMOS: dict[str, Promo] = {
    # launch promo: zero hubber commission for 30 days or the first €1000
    "lancio": Promo(custom_hubber_fee=0.0, duration_days=30, max_transaction_cents=100_000),
}


def _default_schedule() -> FeeSchedule:
    return FeeSchedule(
        renter_pct=settings.DEFAULT_RENTER_FEE_PCT,
        hubber_pct=settings.DEFAULT_HUBBER_FEE_PCT,
        super_hubber_pct=settings.DEFAULT_SUPER_HUBBER_FEE_PCT,
        fixed_fee_cents=settings.DEFAULT_FIXED_FEE_CENTS,
    )


async def _fees_row(session: AsyncSession) -> PlatformFees | None:
    return (await session.execute(select(PlatformFees).order_by(PlatformFees.id.desc()).limit(1))).scalars().first()


async def get_schedule(session: AsyncSession) -> FeeSchedule:
    row = await _fees_row(session)
    if not row:
        return _default_schedule()
    return FeeSchedule(
        renter_pct=row.renter_percentage,
        hubber_pct=row.hubber_percentage,
        super_hubber_pct=row.super_hubber_percentage,
        fixed_fee_cents=row.fixed_fee_cents,
    )


async def update_schedule(
    session: AsyncSession,
    *,
    renter_pct: float | None = None,
    hubber_pct: float | None = None,
    super_hubber_pct: float | None = None,
    fixed_fee_cents: int | None = None,
) -> FeeSchedule:
    for label, pct in (("renter", renter_pct), ("hubber", hubber_pct), ("super_hubber", super_hubber_pct)):
        if pct is not None and not 0 <= pct <= 100:
            raise ValidationFailed(f"{label} percentage must be between 0 and 100")
    if fixed_fee_cents is not None and fixed_fee_cents < 0:
        raise ValidationFailed("fixed fee cannot be negative")

    row = await _fees_row(session)
    if not row:
        d = _default_schedule()
        row = PlatformFees(
            renter_percentage=d.renter_pct,
            hubber_percentage=d.hubber_pct,
            super_hubber_percentage=d.super_hubber_pct,
            fixed_fee_cents=d.fixed_fee_cents,
        )
        session.add(row)

    if renter_pct is not None:
        row.renter_percentage = renter_pct
    if hubber_pct is not None:
        row.hubber_percentage = hubber_pct
    if super_hubber_pct is not None:
        row.super_hubber_percentage = super_hubber_pct
    if fixed_fee_cents is not None:
        row.fixed_fee_cents = fixed_fee_cents
    row.updated_at = utcnow()
    await session.flush()
    return await get_schedule(session)


# -----------------------------
# Per-user overrides
# -----------------------------
def override_terms(ov: UserFeeOverride | None) -> OverrideTerms | None:
    if ov is None:
        return None
    return OverrideTerms(
        fees_disabled=ov.fees_disabled,
        custom_renter_fee=ov.custom_renter_fee,
        custom_hubber_fee=ov.custom_hubber_fee,
    )


async def active_override(session: AsyncSession, user_id: int, now: datetime | None = None) -> UserFeeOverride | None:
    now = now or utcnow()
    stmt = (
        select(UserFeeOverride)
        .where(UserFeeOverride.user_id == user_id)
        .where(UserFeeOverride.status == OverrideStatus.active)
        .where(UserFeeOverride.valid_from <= now)
        .where(UserFeeOverride.valid_until >= now)
        .where(
            or_(
                UserFeeOverride.max_transaction_cents.is_(None),
                UserFeeOverride.current_transaction_cents < UserFeeOverride.max_transaction_cents,
            )
        )
        .order_by(UserFeeOverride.id.desc())
        .limit(1)
    )
    return (await session.execute(stmt)).scalars().first()


async def create_override(
    session: AsyncSession,
    user_id: int,
    *,
    duration_days: int,
    fees_disabled: bool = False,
    custom_renter_fee: float | None = None,
    custom_hubber_fee: float | None = None,
    max_transaction_cents: int | None = None,
    reason: str = "",
    notes: str = "",
    created_by: int | None = None,
    now: datetime | None = None,
) -> UserFeeOverride:
    """A new override replaces (revokes) the user's current active one."""
    now = now or utcnow()
    if not await session.get(User, user_id):
        raise NotFound(f"User {user_id} not found")
    if duration_days <= 0:
        raise ValidationFailed("duration_days must be positive")
    if not fees_disabled and custom_renter_fee is None and custom_hubber_fee is None:
        raise ValidationFailed("Override must disable fees or set a custom percentage")
    for pct in (custom_renter_fee, custom_hubber_fee):
        if pct is not None and not 0 <= pct <= 100:
            raise ValidationFailed("custom fee must be between 0 and 100")
    if max_transaction_cents is not None and max_transaction_cents <= 0:
        raise ValidationFailed("max_transaction must be positive")

    await session.execute(
        update(UserFeeOverride)
        .where(UserFeeOverride.user_id == user_id)
        .where(UserFeeOverride.status == OverrideStatus.active)
        .values(status=OverrideStatus.revoked, revoked_by=created_by, revoked_at=now)
    )

    ov = UserFeeOverride(
        user_id=user_id,
        fees_disabled=fees_disabled,
        custom_renter_fee=custom_renter_fee,
        custom_hubber_fee=custom_hubber_fee,
        valid_from=now,
        valid_until=now + timedelta(days=duration_days),
        duration_days=duration_days,
        max_transaction_cents=max_transaction_cents,
        current_transaction_cents=0,
        status=OverrideStatus.active,
        reason=reason,
        notes=notes,
        created_by=created_by,
    )
    session.add(ov)
    await session.flush()
    log.info("fee override %s created for user %s (%s days)", ov.id, user_id, duration_days)
    return ov


async def revoke_override(
    session: AsyncSession, override_id: int, *, revoked_by: int | None = None, now: datetime | None = None
) -> UserFeeOverride:
    ov = await session.get(UserFeeOverride, override_id)
    if not ov:
        raise NotFound(f"Override {override_id} not found")
    if ov.status != OverrideStatus.active:
        raise InvalidState(f"Override is {ov.status.value}")
    ov.status = OverrideStatus.revoked
    ov.revoked_by = revoked_by
    ov.revoked_at = now or utcnow()
    await session.flush()
    return ov


async def list_overrides(
    session: AsyncSession, *, user_id: int | None = None, status: OverrideStatus | None = None
) -> list[UserFeeOverride]:
    stmt = select(UserFeeOverride).order_by(UserFeeOverride.id.desc())
    if user_id is not None:
        stmt = stmt.where(UserFeeOverride.user_id == user_id)
    if status is not None:
        stmt = stmt.where(UserFeeOverride.status == status)
    return list((await session.execute(stmt)).scalars().all())


async def consume_override(session: AsyncSession, ov: UserFeeOverride, amount_cents: int) -> UserFeeOverride:
    """Count booking volume against the override cap."""
    ov.current_transaction_cents = int(ov.current_transaction_cents or 0) + max(int(amount_cents), 0)
    if ov.max_transaction_cents is not None and ov.current_transaction_cents >= ov.max_transaction_cents:
        ov.status = OverrideStatus.limit_reached
        log.info("fee override %s reached its cap", ov.id)
    await session.flush()
    return ov


async def release_override(
    session: AsyncSession, ov: UserFeeOverride, amount_cents: int, *, now: datetime | None = None
) -> UserFeeOverride:
    """Give back volume from a cancelled booking; a capped override becomes usable again."""
    now = now or utcnow()
    ov.current_transaction_cents = max(int(ov.current_transaction_cents or 0) - max(int(amount_cents), 0), 0)
    if (
        ov.status == OverrideStatus.limit_reached
        and ov.max_transaction_cents is not None
        and ov.current_transaction_cents < ov.max_transaction_cents
    ):
        ov.status = OverrideStatus.active if ov.valid_until >= now else OverrideStatus.expired
    await session.flush()
    return ov


async def expire_overrides(session: AsyncSession, now: datetime | None = None) -> int:
    now = now or utcnow()
    res = await session.execute(
        update(UserFeeOverride)
        .where(UserFeeOverride.status == OverrideStatus.active)
        .where(UserFeeOverride.valid_until < now)
        .values(status=OverrideStatus.expired)
    )
    await session.flush()
    return int(res.rowcount or 0)


async def apply_promo(
    session: AsyncSession, user_id: int, code: str, *, now: datetime | None = None
) -> UserFeeOverride:
    key = (code or "").strip().lower()
    promo = PROMOS.get(key)
    if not promo:
        raise ValidationFailed(f"Unknown promo code: {code}")

    reason = f"promo:{key}"
    used = (
        await session.execute(
            select(UserFeeOverride.id)
            .where(UserFeeOverride.user_id == user_id)
            .where(UserFeeOverride.reason == reason)
        )
    ).first()
    if used:
        raise Conflict("Promo already used")

    return await create_override(
        session,
        user_id,
        duration_days=promo.duration_days,
        fees_disabled=promo.fees_disabled,
        custom_renter_fee=promo.custom_renter_fee,
        custom_hubber_fee=promo.custom_hubber_fee,
        max_transaction_cents=promo.max_transaction_cents,
        reason=reason,
        now=now,
    )
