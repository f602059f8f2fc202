"""
Prepare a Shibr database: tables, the platform admin and default settings.

    python -m scripts.init_db [--reset]
"""
import argparse
import asyncio
import sys

import structlog
from sqlalchemy import select

from shibr.core.config import settings
from shibr.core.database import close_db, init_db, session_scope
from shibr.core.logging_config import configure_logging
from shibr.core.security import get_password_hash
from shibr.models import AccountType, User
from shibr.services import platform

logger = structlog.get_logger()


async def ensure_admin() -> bool:
    """Create the admin account from ADMIN_EMAIL and ADMIN_PASSWORD. True if created."""
    email = settings.ADMIN_EMAIL.lower()
    async with session_scope() as session:
        existing = await session.scalar(select(User).where(User.email == email))
        if existing is not None:
            return False
        session.add(User(
            email=email,
            hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
            full_name="Shibr Admin",
            account_type=AccountType.ADMIN,
            is_active=True,
            is_verified=True,
        ))
    return True


async def run(reset: bool) -> None:
    await init_db(drop=reset)
    logger.info("tables_ready", reset=reset)

    created = await ensure_admin()
    logger.info("admin_ready", email=settings.ADMIN_EMAIL, created=created)

    async with session_scope() as session:
        await platform.seed_defaults(session)
    logger.info("platform_settings_ready")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--reset", action="store_true", help="drop every table before creating it")
    args = parser.parse_args(argv)

    configure_logging(json_output=False)

    async def _main():
        try:
            await run(args.reset)
        finally:
            await close_db()

    try:
        asyncio.run(_main())
    except Exception:
        logger.exception("database_init_failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
