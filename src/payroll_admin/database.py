"""Database connection and session management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from payroll_admin.models import Base
from payroll_admin.services.transaction import TransactionCoordinator

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from payroll_admin.config import Settings

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Engine and session factory with an explicit lifecycle.

    Built once at process start, handed to whatever needs store access, and
    disposed at shutdown.
    """

    def __init__(
        self,
        database_url: str,
        *,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 20,
        transaction_timeout: float | None = None,
    ):
        self.database_url = database_url
        self.transaction_timeout = transaction_timeout

        engine_kwargs: dict[str, Any] = {"echo": echo}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_pre_ping=True,
                pool_size=pool_size,
                max_overflow=max_overflow,
            )
        self.engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)

        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        """Create database from application settings."""
        return cls(
            settings.database_url,
            echo=settings.debug,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            transaction_timeout=settings.transaction_timeout_seconds,
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def transactions(self) -> TransactionCoordinator:
        """Unit-of-work coordinator bound to this database."""
        return TransactionCoordinator(
            self.session_factory, timeout=self.transaction_timeout
        )

    async def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Schema ready on %s", self.dialect_name)

    async def drop_all(self) -> None:
        """Drop all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def dispose(self) -> None:
        """Release all pooled connections."""
        await self.engine.dispose()
        logger.info("Database engine disposed")
