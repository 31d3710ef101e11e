# renthubber/entrypoints/api/routers/health.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ....config import settings
from ..deps import get_session, require_api_key

router = APIRouter(tags=["health"])


def _redact(v: str | None) -> str | None:
    if not v:
        return v
    if len(v) <= 8:
        return "***"
    return v[:4] + "***" + v[-4:]


@router.get("/health")
async def health(session: AsyncSession = Depends(get_session)) -> dict[str, str]:
    await session.execute(text("SELECT 1"))
    return {"status": "ok"}


@router.get("/debug/config", dependencies=[Depends(require_api_key)])
def debug_config() -> dict[str, Any]:
    return {
        "ENV": settings.ENV,
        "HUBBER_DB_URL": settings.HUBBER_DB_URL,
        "PAYMENTS_BASE_URL": settings.PAYMENTS_BASE_URL,
        "PAYMENTS_API_KEY": _redact(settings.PAYMENTS_API_KEY),
        "PUBLIC_BASE_URL": settings.PUBLIC_BASE_URL,
        "DEFAULT_FEES": {
            "renter_pct": settings.DEFAULT_RENTER_FEE_PCT,
            "hubber_pct": settings.DEFAULT_HUBBER_FEE_PCT,
            "super_hubber_pct": settings.DEFAULT_SUPER_HUBBER_FEE_PCT,
            "fixed_fee_cents": settings.DEFAULT_FIXED_FEE_CENTS,
        },
    }


@router.get("/debug/routes", dependencies=[Depends(require_api_key)])
def debug_routes(request: Request) -> dict[str, Any]:
    """What this running server has actually mounted."""
    routes: list[str] = []
    for r in request.app.routes:
        methods = getattr(r, "methods", None)
        path = getattr(r, "path", None)
        if path:
            routes.append(f"{sorted(methods)} {path}" if methods else path)
    return {"count": len(routes), "routes": sorted(routes)}
