# renthubber/entrypoints/api/routers/integrations.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ....domain.errors import NotFound
from ....integrations.services.sinks import create_webhook_integration, disable_integration, update_integration
from ....models import Integration
from ....schemas import IntegrationCreate, IntegrationOut
from ..deps import get_session, require_api_key

router = APIRouter(tags=["integrations"], dependencies=[Depends(require_api_key)])


def _out(i: Integration) -> IntegrationOut:
    return IntegrationOut(id=i.id, name=i.name, type=i.type.value, enabled=i.enabled, created_at=i.created_at)


@router.post("/integrations", response_model=IntegrationOut, status_code=201)
async def create_integration(body: IntegrationCreate, session: AsyncSession = Depends(get_session)) -> IntegrationOut:
    if body.type != "webhook":
        raise HTTPException(status_code=400, detail="Only webhook integrations are supported")
    integ = await create_webhook_integration(
        session, name=body.name, url=body.url, secret=body.secret, enabled=body.enabled
    )
    await session.commit()
    return _out(integ)


@router.patch("/integrations/{integration_id}", response_model=IntegrationOut)
async def patch_integration(
    integration_id: int,
    enabled: bool | None = None,
    url: str | None = None,
    secret: str | None = None,
    session: AsyncSession = Depends(get_session),
) -> IntegrationOut:
    integ = await update_integration(session, integration_id, enabled=enabled, url=url, secret=secret)
    await session.commit()
    return _out(integ)


@router.get("/integrations", response_model=list[IntegrationOut])
async def list_integrations(session: AsyncSession = Depends(get_session)) -> list[IntegrationOut]:
    rows = (await session.execute(select(Integration).order_by(Integration.id.asc()))).scalars().all()
    return [_out(i) for i in rows]


@router.post("/integrations/{integration_id}/disable", status_code=204)
async def disable(integration_id: int, session: AsyncSession = Depends(get_session)) -> Response:
    if not await disable_integration(session, integration_id=integration_id):
        raise NotFound("Integration not found")
    await session.commit()
    return Response(status_code=204)
