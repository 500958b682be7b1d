"""Employee service - employee records and their linked users."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from payroll_admin.calculators import NetPayCalculator
from payroll_admin.errors import InvalidAmountError, InvalidReferenceError, NotFoundError, ValidationError
from payroll_admin.models import Department, Employee, Payroll, User
from payroll_admin.schemas import EmployeeCreate, EmployeePatch, UserCreate
from payroll_admin.services.rollup_service import PayrollRollupService
from payroll_admin.services.transaction import TransactionCoordinator
from payroll_admin.services.user_service import UserService
from payroll_admin.services.validation import PayrollValidator

logger = logging.getLogger(__name__)

# Columns that may be cleared with an explicit null
NULLABLE_FIELDS = {"department_id"}


class EmployeeService:
    """Service for employee records.

    Operations:
    - create_employee: optionally registers the user first; both rows in one unit of work
    - update_employee: partial update of employee and linked user fields
    - delete_employee: removes the employee and its payrolls, keeps the user
    """

    def __init__(self, transactions: TransactionCoordinator):
        self.transactions = transactions

    @staticmethod
    def _with_details(stmt):
        return stmt.options(selectinload(Employee.user), selectinload(Employee.department))

    async def _load(self, session: AsyncSession, employee_id: int) -> Employee | None:
        result = await session.execute(
            self._with_details(select(Employee).where(Employee.id == employee_id)).execution_options(
                populate_existing=True
            )
        )
        return result.scalar_one_or_none()

    async def get_employee(self, employee_id: int) -> Employee | None:
        async def _get(session: AsyncSession) -> Employee | None:
            return await self._load(session, employee_id)

        return await self.transactions.run(_get)

    async def list_employees(self) -> list[Employee]:
        async def _list(session: AsyncSession) -> list[Employee]:
            result = await session.execute(self._with_details(select(Employee).order_by(Employee.id)))
            return list(result.scalars().all())

        return await self.transactions.run(_list)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @staticmethod
    def parse_salary(value: Any) -> Decimal:
        salary = PayrollValidator.parse_amount("base_salary", value)
        if salary < 0:
            raise InvalidAmountError("base_salary", f"must not be negative, got {salary}")
        return NetPayCalculator.round_to_cents(salary)

    @staticmethod
    async def _check_department(session: AsyncSession, department_id: int | None) -> None:
        if department_id is not None and await session.get(Department, department_id) is None:
            raise InvalidReferenceError(
                "department_id", f"Department {department_id} does not exist"
            )

    @staticmethod
    def _new_user(data: EmployeeCreate) -> UserCreate:
        """User registration implied by an employee create.

        Username defaults to ``first.last`` and the password to
        ``<lastname>123``, both lower-cased. A caller-supplied username or
        password was already checked by EmployeeCreate; the generated defaults
        may be shorter than UserCreate allows, so the record is built without
        re-validation.
        """
        for name in ("first_name", "last_name", "email"):
            if not getattr(data, name):
                raise ValidationError(name, "is required when creating a new user")

        first, last = data.first_name.strip(), data.last_name.strip()
        return UserCreate.model_construct(
            username=data.username or f"{first.lower()}.{last.lower()}",
            password=data.password or f"{last.lower()}123",
            first_name=first,
            last_name=last,
            email=data.email,
            phone=data.phone,
            role="employee",
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def _insert_employee(self, session: AsyncSession, employee: Employee) -> Employee:
        session.add(employee)
        await session.flush()
        return employee

    async def create_employee(self, data: EmployeeCreate) -> Employee:
        """Create an employee, registering its user first when requested.

        Raises:
            InvalidReferenceError: unknown user or department
            InvalidAmountError: bad base salary
            ConflictError: username or email already taken
        """
        salary = self.parse_salary(data.base_salary)

        async def _create(session: AsyncSession) -> Employee:
            await self._check_department(session, data.department_id)

            user_id = data.user_id
            if data.is_new_user:
                user = await UserService.add_user(session, self._new_user(data))
                user_id = user.id
            elif user_id is not None and await session.get(User, user_id) is None:
                raise InvalidReferenceError("user_id", f"User {user_id} does not exist")

            employee = Employee(
                user_id=user_id,
                department_id=data.department_id,
                position=data.position,
                tax_id=data.tax_id,
                tax_status=data.tax_status,
                bank_name=data.bank_name,
                account_number=data.account_number,
                routing_number=data.routing_number,
                base_salary=salary,
                join_date=data.join_date,
                status=data.status,
            )
            await self._insert_employee(session, employee)
            return await self._load(session, employee.id)

        employee = await self.transactions.run(_create)
        logger.info("Created employee %s (user %s)", employee.id, employee.user_id)
        return employee

    async def update_employee(self, employee_id: int, patch: EmployeePatch) -> Employee:
        async def _update(session: AsyncSession) -> Employee:
            employee = await self._load(session, employee_id)
            if employee is None:
                raise NotFoundError("Employee", employee_id)

            changes = {
                k: v
                for k, v in patch.employee_changes().items()
                if v is not None or k in NULLABLE_FIELDS
            }
            if "department_id" in changes:
                await self._check_department(session, changes["department_id"])
            if "base_salary" in changes:
                changes["base_salary"] = self.parse_salary(changes["base_salary"])
            for name, value in changes.items():
                setattr(employee, name, value)

            user_changes = {k: v for k, v in patch.user_changes().items() if v is not None}
            if user_changes:
                if employee.user is None:
                    raise InvalidReferenceError(
                        "user_id", f"Employee {employee_id} has no linked user"
                    )
                if "email" in user_changes:
                    await UserService.ensure_unique(
                        session,
                        employee.user.username,
                        user_changes["email"],
                        exclude_id=employee.user.id,
                    )
                for name, value in user_changes.items():
                    setattr(employee.user, name, value)

            await session.flush()
            return await self._load(session, employee_id)

        employee = await self.transactions.run(_update)
        logger.info("Updated employee %s", employee_id)
        return employee

    async def delete_employee(self, employee_id: int) -> None:
        """Delete an employee and all of its payrolls. The user is kept."""

        async def _delete(session: AsyncSession) -> int:
            employee = await session.get(Employee, employee_id)
            if employee is None:
                raise NotFoundError("Employee", employee_id)

            periods = (
                await session.execute(
                    select(Payroll.month, Payroll.year)
                    .where(Payroll.employee_id == employee_id)
                    .distinct()
                )
            ).all()
            removed = await session.execute(
                delete(Payroll).where(Payroll.employee_id == employee_id)
            )
            await session.delete(employee)
            await PayrollRollupService(session).refresh_periods(
                (month, year) for month, year in periods
            )
            return removed.rowcount

        removed = await self.transactions.run(_delete)
        logger.info("Deleted employee %s and %d payroll(s)", employee_id, removed)
