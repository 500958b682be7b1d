"""Unit-of-work boundary around store mutations."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_admin.errors import ConflictError, NestedTransactionError, TransactionFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

_active_session: ContextVar[AsyncSession | None] = ContextVar(
    "payroll_admin_active_session", default=None
)


class TransactionCoordinator:
    """Runs work against one session inside one transaction.

    Guarantees:
    - One session is acquired per unit of work and always closed.
    - Success commits every mutation made through the session together.
    - Any error rolls everything back before it propagates. Domain errors
      propagate unchanged; driver errors become ConflictError (constraint
      violations) or TransactionFailure (everything else).
    - Units of work do not nest on the same task.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float | None = None,
    ):
        self.session_factory = session_factory
        self.timeout = timeout

    @staticmethod
    def in_unit_of_work() -> bool:
        """True if the current task is inside a unit of work."""
        return _active_session.get() is not None

    @asynccontextmanager
    async def unit_of_work(self, snapshot: bool = False) -> AsyncIterator[AsyncSession]:
        """Open a unit of work and yield its session.

        With snapshot=True every read inside the unit sees the same committed
        state (REPEATABLE READ on PostgreSQL; SQLite transactions already are).
        """
        if _active_session.get() is not None:
            raise NestedTransactionError("A unit of work is already active on this task")

        session = self.session_factory()
        token = _active_session.set(session)
        try:
            async with session.begin():
                if snapshot and session.bind.dialect.name == "postgresql":
                    await session.connection(
                        execution_options={"isolation_level": "REPEATABLE READ"}
                    )
                yield session
        except IntegrityError as exc:
            logger.warning("Unit of work rolled back on constraint violation: %s", exc.orig)
            raise ConflictError("The change conflicts with an existing record") from exc
        except DBAPIError as exc:
            logger.error("Unit of work aborted by the store: %s", exc.orig)
            raise TransactionFailure("The store could not complete the operation") from exc
        except Exception as exc:
            logger.debug("Unit of work rolled back: %s", type(exc).__name__)
            raise
        finally:
            _active_session.reset(token)
            await session.close()

    async def run(
        self,
        work: Callable[[AsyncSession], Awaitable[T]],
        snapshot: bool = False,
    ) -> T:
        """Run ``work(session)`` as one atomic unit and return its result."""
        if self.timeout is None:
            return await self._run(work, snapshot)

        try:
            return await asyncio.wait_for(self._run(work, snapshot), self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Unit of work exceeded %.1fs and was rolled back", self.timeout)
            raise TransactionFailure(
                f"The operation did not finish within {self.timeout}s"
            ) from exc

    async def _run(
        self,
        work: Callable[[AsyncSession], Awaitable[T]],
        snapshot: bool,
    ) -> T:
        async with self.unit_of_work(snapshot=snapshot) as session:
            return await work(session)
