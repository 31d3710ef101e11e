# renthubber/entrypoints/fastapi_app.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from ..db import engine
from ..models import Base
from .api.errors import setup_exception_handlers
from .api.routers import admin, bookings, calendar, health, integrations, jobs, listings, reviews, users, wallet


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Single place where DB tables are created in dev.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield


def create_app(*, create_tables: bool = True) -> FastAPI:
    app = FastAPI(title="RentHubber API", lifespan=_lifespan if create_tables else None)

    setup_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(listings.router)
    app.include_router(bookings.router)
    app.include_router(wallet.router)
    app.include_router(reviews.router)
    app.include_router(calendar.router)
    app.include_router(admin.router)
    app.include_router(integrations.router)
    app.include_router(jobs.router)

    return app
