"""Pytest fixtures for payroll admin tests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from payroll_admin.database import Database
from payroll_admin.models import Department, Employee, User
from payroll_admin.security import hash_password
from payroll_admin.services import (
    AggregationService,
    DepartmentService,
    EmployeeService,
    PayrollService,
    TransactionCoordinator,
    UserService,
)

# Every service under test sees "now" as mid-March 2025
FIXED_NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@dataclass
class Seed:
    """Ids of the rows created by the ``seeded`` fixture."""

    admin_id: int
    it_id: int
    hr_id: int
    alice_id: int  # active, IT, 6000.00
    bob_id: int  # active, HR, 4000.00
    carol_id: int  # inactive, IT, 5000.00


def employee_fields(**overrides) -> dict:
    fields = {
        "position": "Engineer",
        "tax_id": "123-45-6789",
        "tax_status": "single",
        "bank_name": "First Bank",
        "account_number": "000123456",
        "routing_number": "110000000",
        "base_salary": Decimal("5000.00"),
        "join_date": date(2023, 1, 9),
        "status": "active",
    }
    fields.update(overrides)
    return fields


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Fresh SQLite file database per test."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def transactions(database: Database) -> TransactionCoordinator:
    return database.transactions()


@pytest.fixture
def payroll_service(transactions: TransactionCoordinator) -> PayrollService:
    return PayrollService(transactions, clock=fixed_clock)


@pytest.fixture
def aggregation_service(transactions: TransactionCoordinator) -> AggregationService:
    return AggregationService(transactions, clock=fixed_clock)


@pytest.fixture
def employee_service(transactions: TransactionCoordinator) -> EmployeeService:
    return EmployeeService(transactions)


@pytest.fixture
def department_service(transactions: TransactionCoordinator) -> DepartmentService:
    return DepartmentService(transactions)


@pytest.fixture
def user_service(transactions: TransactionCoordinator) -> UserService:
    return UserService(transactions)


async def add_employee(transactions: TransactionCoordinator, **overrides) -> int:
    """Insert an employee row directly and return its id."""
    async with transactions.unit_of_work() as session:
        employee = Employee(**employee_fields(**overrides))
        session.add(employee)
        await session.flush()
        return employee.id


async def count_rows(transactions: TransactionCoordinator, model, *criteria) -> int:
    async with transactions.unit_of_work() as session:
        return await session.scalar(select(func.count()).select_from(model).where(*criteria))


@pytest_asyncio.fixture
async def seeded(transactions: TransactionCoordinator) -> Seed:
    """Admin user, two departments and three employees."""
    async with transactions.unit_of_work() as session:
        admin = User(
            username="admin",
            password=hash_password("password"),
            first_name="Admin",
            last_name="User",
            email="admin@example.com",
            role="admin",
        )
        alice_user = User(
            username="alice.smith",
            password=hash_password("smith123"),
            first_name="Alice",
            last_name="Smith",
            email="alice@example.com",
        )
        it = Department(name="IT", description="Information Technology")
        hr = Department(name="HR", description="Human Resources")
        session.add_all([admin, alice_user, it, hr])
        await session.flush()

        alice = Employee(
            **employee_fields(
                user_id=alice_user.id, department_id=it.id, base_salary=Decimal("6000.00")
            )
        )
        bob = Employee(
            **employee_fields(
                department_id=hr.id, position="Recruiter", base_salary=Decimal("4000.00")
            )
        )
        carol = Employee(
            **employee_fields(
                department_id=it.id, base_salary=Decimal("5000.00"), status="inactive"
            )
        )
        session.add_all([alice, bob, carol])
        await session.flush()

        return Seed(
            admin_id=admin.id,
            it_id=it.id,
            hr_id=hr.id,
            alice_id=alice.id,
            bob_id=bob.id,
            carol_id=carol.id,
        )
