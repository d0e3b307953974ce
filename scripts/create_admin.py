"""
Create the bootstrap admin account.

Reads ADMIN_USERNAME / ADMIN_EMAIL / ADMIN_PASSWORD (see ``Settings``) and
does nothing if a user with that email already exists.

    python -m scripts.create_admin
"""

import asyncio
import logging

from dotenv import load_dotenv

load_dotenv()

from taskboard.core.config import get_settings  # noqa: E402
from taskboard.core.logging import setup_logging  # noqa: E402
from taskboard.database import async_session, engine  # noqa: E402
from taskboard.services.user_service import UserService  # noqa: E402

logger = logging.getLogger("create_admin")


async def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    try:
        async with async_session() as db:
            await UserService().ensure_admin(
                settings.admin_username,
                settings.admin_email,
                settings.admin_password,
                db,
            )
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
