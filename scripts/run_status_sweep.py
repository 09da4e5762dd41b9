#!/usr/bin/env python3
"""
Run one competition status sweep and exit.

Usage:
    python scripts/run_status_sweep.py

Meant to be triggered periodically by cron or a container scheduler.
Exits non-zero when any competition could not be updated.
"""

import asyncio
import json
import logging

from sports_arena.competition import StatusLifecycleManager
from sports_arena.config import config
from sports_arena.db import close_database, get_database
from sports_arena.notifications import NotificationManager


async def run_sweep() -> dict:
    database = await get_database()
    redis_client = None
    if config.redis_url:
        import redis.asyncio as redis
        redis_client = redis.from_url(config.redis_url, decode_responses=True)

    try:
        async with database.get_session() as session:
            manager = StatusLifecycleManager(
                session,
                notifier=NotificationManager(database, redis_client=redis_client),
                atomic=database.supports_transactions,
            )
            result = await manager.sweep()
        return result.to_dict()
    finally:
        if redis_client is not None:
            await redis_client.aclose()
        await close_database()


def main():
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    result = asyncio.run(run_sweep())
    print(json.dumps(result, indent=2))

    return 1 if result["failures"] else 0


if __name__ == "__main__":
    exit(main())
