"""Create the schema and seed the admin user and default departments.

Usage:
    python -m scripts.init_db [--database-url URL] [--admin-password PASSWORD]

Safe to run repeatedly: existing tables, the admin user and departments are
left untouched.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from sqlalchemy import func, select

from payroll_admin.config import configure_logging, get_settings
from payroll_admin.database import Database
from payroll_admin.models import Department, User
from payroll_admin.security import hash_password

logger = logging.getLogger("init_db")

DEFAULT_DEPARTMENTS = [
    ("IT", "Information Technology"),
    ("HR", "Human Resources"),
    ("Marketing", "Marketing and Communications"),
    ("Finance", "Finance and Accounting"),
]


async def init_db(database: Database, admin_password: str) -> None:
    """Create tables, then seed inside one unit of work."""
    await database.create_all()

    async with database.transactions().unit_of_work() as session:
        admin = await session.scalar(select(User).where(User.username == "admin"))
        if admin is None:
            session.add(
                User(
                    username="admin",
                    password=hash_password(admin_password),
                    first_name="Admin",
                    last_name="User",
                    email="admin@example.com",
                    role="admin",
                )
            )
            logger.info("Created admin user")

        department_count = await session.scalar(select(func.count(Department.id)))
        if not department_count:
            session.add_all(
                Department(name=name, description=description)
                for name, description in DEFAULT_DEPARTMENTS
            )
            logger.info("Seeded %d departments", len(DEFAULT_DEPARTMENTS))


async def main(database_url: str, admin_password: str) -> None:
    database = Database(database_url)
    try:
        await init_db(database, admin_password)
    finally:
        await database.dispose()


if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings)

    parser = argparse.ArgumentParser(description="Initialize the payroll admin database")
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="Database URL (defaults to DATABASE_URL)",
    )
    parser.add_argument(
        "--admin-password",
        default="password",
        help="Password for the seeded admin user",
    )
    args = parser.parse_args()

    asyncio.run(main(args.database_url, args.admin_password))
