"""
create_tables.py
----------------
One-shot script to create all database tables and, when ADMIN_USERNAME and
ADMIN_PASSWORD are set, the first admin account (registration itself is
admin-only).

Usage:
    ADMIN_USERNAME=admin ADMIN_PASSWORD=secret python create_tables.py
"""

import asyncio

from chatserver.core.config import settings
from chatserver.core.logging import configure_logging, get_logger
from chatserver.core.security import PasswordHasher
from chatserver.db.session import Database
from chatserver.services.credential_store import CredentialStore

logger = get_logger(__name__)


async def create_all_tables() -> None:
    configure_logging(settings)
    database = Database(settings)
    try:
        await database.create_all()
        logger.info("All tables created", database=database.engine.url.render_as_string())

        if settings.ADMIN_USERNAME and settings.ADMIN_PASSWORD:
            store = CredentialStore(database, PasswordHasher(settings.PASSWORD_HASH_ROUNDS))
            created = await store.ensure_admin(
                settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD, settings.ADMIN_EMAIL
            )
            logger.info(
                "Admin account ready",
                username=settings.ADMIN_USERNAME,
                created=created,
            )
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(create_all_tables())
