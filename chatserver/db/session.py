"""
db/session.py
-------------
Async SQLAlchemy engine and session factory, wrapped in an explicitly
constructed Database object.

Design decisions:
  - No module-level engine. create_application() builds one Database and
    stores it on app.state; stores receive it through dependency injection.
  - Every store operation runs inside Database.transaction(): one session,
    one transaction, committed and released before the operation returns.
    No connection is held across requests.
  - Fail fast: connect and pool-checkout timeouts are bounded by settings.
    Connectivity faults (OperationalError, InterfaceError, pool timeouts,
    socket errors) are translated to StorageUnavailableError here. Every
    other driver error, IntegrityError and DataError included, propagates
    untouched: those describe the request, not the storage.
  - In-memory SQLite uses a StaticPool so every session shares the one
    database that exists.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from sqlalchemy.engine import make_url
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from chatserver.core.config import Settings
from chatserver.core.exceptions import StorageUnavailableError
from chatserver.core.logging import get_logger
from chatserver.db.base import Base

logger = get_logger(__name__)

# Errors meaning the database could not be reached or stopped responding
CONNECTIVITY_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, OSError)


def _engine_options(settings: Settings) -> Dict[str, Any]:
    url = make_url(settings.DATABASE_URL)
    options: Dict[str, Any] = {"echo": settings.DEBUG, "pool_pre_ping": True}

    if url.get_backend_name() == "sqlite":
        options["connect_args"] = {
            "timeout": settings.DB_CONNECT_TIMEOUT,
            "check_same_thread": False,
        }
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return options

    options.update(
        pool_size=10,
        max_overflow=20,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=3600,
        connect_args={"timeout": settings.DB_CONNECT_TIMEOUT},
    )
    return options


class Database:
    """Owns the engine and session factory for one application instance."""

    def __init__(self, settings: Settings) -> None:
        self.engine: AsyncEngine = create_async_engine(
            settings.DATABASE_URL, **_engine_options(settings)
        )

        self._sessions = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session inside a transaction.

        Commits on normal exit, rolls back on any exception. Driver errors
        other than connectivity faults propagate unchanged.

        Raises:
            StorageUnavailableError: on connectivity faults.
        """
        try:
            async with self._sessions() as session:
                async with session.begin():
                    yield session
        except CONNECTIVITY_ERRORS as exc:
            logger.error("Storage operation failed", error=str(exc))
            raise StorageUnavailableError("Storage is unavailable") from exc

    async def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        import chatserver.models  # noqa: F401  populate metadata

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except CONNECTIVITY_ERRORS as exc:
            logger.error("Could not create schema", error=str(exc))
            raise StorageUnavailableError("Storage is unavailable") from exc

    async def dispose(self) -> None:
        await self.engine.dispose()
