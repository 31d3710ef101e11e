# renthubber/services/demo_seed.py
from __future__ import annotations

import json
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.types import CancellationPolicy, ListingCategory, ListingStatus, PriceUnit
from ..models import Integration, IntegrationType, Listing, User
from .listings import create_listing
from .users import create_user
from .wallet import credit_referral_bonus, topup

DEMO_USERS = [
    {"name": "Giulia Hubber", "email": "giulia.hubber@example.com", "is_super_hubber": True},
    {"name": "Marco Renter", "email": "marco.renter@example.com", "is_super_hubber": False},
]

DEMO_LISTINGS = [
    {
        "title": "Trapano avvitatore Bosch",
        "category": ListingCategory.object,
        "price_cents": 1200,
        "price_unit": PriceUnit.day,
        "cleaning_fee_cents": 0,
        "cancellation_policy": CancellationPolicy.flexible,
        "city": "Milano",
    },
    {
        "title": "Sala riunioni in centro",
        "category": ListingCategory.space,
        "price_cents": 2500,
        "price_unit": PriceUnit.hour,
        "cleaning_fee_cents": 1000,
        "cancellation_policy": CancellationPolicy.strict,
        "city": "Milano",
    },
]


async def _user_by_email(session: AsyncSession, email: str) -> User | None:
    return (await session.execute(select(User).where(User.email == email))).scalars().first()


async def seed_demo(session: AsyncSession, *, webhook_url: str | None = None, enable_webhook: bool = False) -> dict[str, Any]:
    """Idempotent: re-running only fills in what is missing. Does NOT commit."""
    created = {"users": 0, "listings": 0, "integrations": 0}

    users: list[User] = []
    for row in DEMO_USERS:
        user = await _user_by_email(session, row["email"])
        if not user:
            user = await create_user(session, **row)
            created["users"] += 1
            if not row["is_super_hubber"]:
                await topup(session, user.id, 5000)
                await credit_referral_bonus(session, user.id)
        users.append(user)

    hubber = users[0]
    for row in DEMO_LISTINGS:
        exists = (
            await session.execute(
                select(Listing.id).where(Listing.owner_id == hubber.id).where(Listing.title == row["title"])
            )
        ).first()
        if exists:
            continue
        await create_listing(session, owner_id=hubber.id, status=ListingStatus.published, **row)
        created["listings"] += 1

    if webhook_url:
        integ = (await session.execute(select(Integration).where(Integration.name == "demo_webhook"))).scalars().first()
        cfg = json.dumps({"url": webhook_url, "secret": None})
        if integ:
            integ.enabled = enable_webhook
            integ.config_json = cfg
        else:
            session.add(Integration(name="demo_webhook", type=IntegrationType.webhook, enabled=enable_webhook, config_json=cfg))
            created["integrations"] += 1
        await session.flush()

    return created
