from __future__ import annotations

import argparse
import asyncio

from renthubber.db import async_session, engine
from renthubber.models import Base
from renthubber.services.demo_seed import seed_demo


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--webhook-url", default=None, help="Register a demo webhook sink")
    parser.add_argument("--enable", action="store_true", help="Enable the demo webhook (off by default)")
    args = parser.parse_args()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        created = await seed_demo(session, webhook_url=args.webhook_url, enable_webhook=args.enable)
        await session.commit()

    print(f"Seeded demo data: {created}")


if __name__ == "__main__":
    asyncio.run(main())
