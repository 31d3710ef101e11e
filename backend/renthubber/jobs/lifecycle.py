# renthubber/jobs/lifecycle.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.periods import utcnow
from ..services import bookings as booking_service
from ..services.fees import expire_overrides

log = logging.getLogger(__name__)


async def run_lifecycle(
    session: AsyncSession, now: datetime | None = None, *, include_overrides: bool = True
) -> dict[str, Any]:
    """Start bookings whose period began, close the ones that ended, expire fee overrides."""
    now = now or utcnow()
    started = await booking_service.start_due_bookings(session, now)
    completed = await booking_service.complete_due_bookings(session, now)
    expired = await expire_overrides(session, now) if include_overrides else 0
    if started or completed or expired:
        log.info("lifecycle: started=%s completed=%s overrides_expired=%s", started, completed, expired)
    return {"started": started, "completed": completed, "overrides_expired": expired}
