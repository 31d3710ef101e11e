# renthubber/integrations/services/sinks.py
from __future__ import annotations

import json
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.errors import Conflict, NotFound, ValidationFailed
from ...models import Integration, IntegrationType


async def _find(session: AsyncSession, *, integration_id: int | None, name: str | None) -> Integration | None:
    if (integration_id is None) == (name is None):
        raise ValidationFailed("Provide exactly one of integration_id or name")
    stmt = select(Integration)
    stmt = stmt.where(Integration.id == integration_id) if integration_id is not None else stmt.where(Integration.name == name)
    return (await session.execute(stmt)).scalars().first()


async def create_webhook_integration(
    session: AsyncSession,
    *,
    name: str,
    url: str,
    secret: str | None = None,
    enabled: bool = False,
) -> Integration:
    if await _find(session, integration_id=None, name=name):
        raise Conflict("Integration name already exists")
    integ = Integration(
        name=name,
        type=IntegrationType.webhook,
        enabled=enabled,
        config_json=json.dumps({"url": url, "secret": secret}),
    )
    session.add(integ)
    await session.flush()
    return integ


async def update_integration(
    session: AsyncSession,
    integration_id: int,
    *,
    enabled: bool | None = None,
    url: str | None = None,
    secret: str | None = None,
) -> Integration:
    integ = await _find(session, integration_id=integration_id, name=None)
    if not integ:
        raise NotFound("Integration not found")

    if enabled is not None:
        integ.enabled = bool(enabled)
    if url is not None or secret is not None:
        cfg: dict[str, Any] = json.loads(integ.config_json or "{}")
        if url is not None:
            cfg["url"] = url
        if secret is not None:
            cfg["secret"] = secret
        integ.config_json = json.dumps(cfg)

    await session.flush()
    return integ


async def disable_integration(
    session: AsyncSession,
    *,
    integration_id: int | None = None,
    name: str | None = None,
) -> bool:
    """
    Turn a sink off without deleting it. Does NOT commit.

    Returns True if something was disabled, False if not found.
    """
    integ = await _find(session, integration_id=integration_id, name=name)
    if not integ:
        return False
    integ.enabled = False
    await session.flush()
    return True
