"""User accounts."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_admin.errors import ConflictError
from payroll_admin.models import User
from payroll_admin.schemas import UserCreate
from payroll_admin.security import hash_password, needs_rehash, verify_password
from payroll_admin.services.transaction import TransactionCoordinator

logger = logging.getLogger(__name__)


def _by_username(username: str):
    return select(User).where(func.lower(User.username) == username.lower())


class UserService:
    """Create, look up and authenticate users.

    The ``add_user`` helper works on a caller's session so employee creation
    can insert the user and the employee in the same unit of work.
    """

    def __init__(self, transactions: TransactionCoordinator):
        self.transactions = transactions

    @staticmethod
    async def ensure_unique(
        session: AsyncSession,
        username: str,
        email: str,
        exclude_id: int | None = None,
    ) -> None:
        stmt = select(User.username, User.email).where(
            (func.lower(User.username) == username.lower())
            | (func.lower(User.email) == email.lower())
        )
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        existing = (await session.execute(stmt.limit(1))).first()
        if existing is None:
            return
        if existing.username.lower() == username.lower():
            raise ConflictError(f"Username {username!r} is already taken", record="user")
        raise ConflictError(f"Email {email!r} is already registered", record="user")

    @classmethod
    async def add_user(cls, session: AsyncSession, data: UserCreate) -> User:
        await cls.ensure_unique(session, data.username, data.email)
        user = User(
            username=data.username,
            password=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            phone=data.phone,
            role=data.role,
        )
        session.add(user)
        await session.flush()
        return user

    async def create_user(self, data: UserCreate) -> User:
        async def _create(session: AsyncSession) -> User:
            return await self.add_user(session, data)

        user = await self.transactions.run(_create)
        logger.info("Created user %s (%s)", user.id, user.username)
        return user

    async def get_user(self, user_id: int) -> User | None:
        async def _get(session: AsyncSession) -> User | None:
            return await session.get(User, user_id)

        return await self.transactions.run(_get)

    async def list_users(self) -> list[User]:
        async def _list(session: AsyncSession) -> list[User]:
            result = await session.execute(select(User).order_by(User.id))
            return list(result.scalars().all())

        return await self.transactions.run(_list)

    async def get_by_username(self, username: str) -> User | None:
        async def _get(session: AsyncSession) -> User | None:
            return await session.scalar(_by_username(username))

        return await self.transactions.run(_get)

    async def verify_credentials(self, username: str, password: str) -> User | None:
        """Return the user if the password matches, upgrading stale hashes."""

        async def _verify(session: AsyncSession) -> User | None:
            user = await session.scalar(_by_username(username))
            if user is None or not verify_password(password, user.password):
                return None
            if needs_rehash(user.password):
                user.password = hash_password(password)
                logger.info("Upgraded password hash for user %s", user.id)
            return user

        user = await self.transactions.run(_verify)
        if user is None:
            logger.info("Failed login for %r", username)
        return user
