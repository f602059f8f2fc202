"""
Periodic rental upkeep: expire unanswered requests, complete ended rentals
and remind both parties of rentals about to end.

    python -m scripts.rental_maintenance

Meant to run from cron, once an hour or so.
"""
import argparse
import asyncio
import sys

import structlog

from shibr.core.database import close_db, session_scope
from shibr.core.logging_config import configure_logging
from shibr.services import rentals

logger = structlog.get_logger()


async def run() -> dict:
    async with session_scope() as session:
        expired = await rentals.expire_stale(session)
    async with session_scope() as session:
        completed = await rentals.complete_ended(session)
    async with session_scope() as session:
        reminded = await rentals.send_ending_reminders(session)
    return {"expired": expired, "completed": completed, "reminded": reminded}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.parse_args(argv)

    configure_logging(json_output=False)

    async def _main():
        try:
            return await run()
        finally:
            await close_db()

    try:
        counts = asyncio.run(_main())
    except Exception:
        logger.exception("rental_maintenance_failed")
        return 1
    logger.info("rental_maintenance_done", **counts)
    return 0


if __name__ == "__main__":
    sys.exit(main())
