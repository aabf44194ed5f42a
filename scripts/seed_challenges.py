#!/usr/bin/env python3
"""
Seed the default challenges and demo bots.

Run with: python scripts/seed_challenges.py
"""

import asyncio

from codeduel.battle.challenges import CHALLENGES, DEMO_BOTS, seed_defaults
from codeduel.db.database import async_session_factory, init_db


async def seed() -> None:
    await init_db()
    async with async_session_factory() as session:
        challenges, bots = await seed_defaults(session)
        await session.commit()

    print(f"Created {challenges} challenges (of {len(CHALLENGES)} defaults)")
    print(f"Created {bots} demo bots (of {len(DEMO_BOTS)} defaults)")
    if not challenges and not bots:
        print("Tables already populated, nothing to do.")


if __name__ == "__main__":
    asyncio.run(seed())
