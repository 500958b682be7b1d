"""Departments."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_admin.errors import ConflictError, DependentRecordsError, NotFoundError
from payroll_admin.models import Department, Employee
from payroll_admin.schemas import DepartmentCreate, DepartmentPatch
from payroll_admin.services.transaction import TransactionCoordinator

logger = logging.getLogger(__name__)


class DepartmentService:
    """Department CRUD. Names are unique ignoring case."""

    def __init__(self, transactions: TransactionCoordinator):
        self.transactions = transactions

    @staticmethod
    async def _ensure_name_free(
        session: AsyncSession, name: str, exclude_id: int | None = None
    ) -> None:
        stmt = select(Department.id).where(func.lower(Department.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Department.id != exclude_id)
        if await session.scalar(stmt.limit(1)) is not None:
            raise ConflictError(f"Department {name!r} already exists", record="department")

    async def list_departments(self) -> list[Department]:
        async def _list(session: AsyncSession) -> list[Department]:
            result = await session.execute(select(Department).order_by(Department.name))
            return list(result.scalars().all())

        return await self.transactions.run(_list)

    async def get_department(self, department_id: int) -> Department | None:
        async def _get(session: AsyncSession) -> Department | None:
            return await session.get(Department, department_id)

        return await self.transactions.run(_get)

    async def create_department(self, data: DepartmentCreate) -> Department:
        name = data.name.strip()

        async def _create(session: AsyncSession) -> Department:
            await self._ensure_name_free(session, name)
            department = Department(name=name, description=data.description)
            session.add(department)
            await session.flush()
            return department

        department = await self.transactions.run(_create)
        logger.info("Created department %s (%s)", department.id, department.name)
        return department

    async def update_department(self, department_id: int, patch: DepartmentPatch) -> Department:
        async def _update(session: AsyncSession) -> Department:
            department = await session.get(Department, department_id)
            if department is None:
                raise NotFoundError("Department", department_id)
            changes = patch.changes()
            if changes.get("name") is not None:
                changes["name"] = changes["name"].strip()
                await self._ensure_name_free(session, changes["name"], exclude_id=department_id)
            elif "name" in changes:
                changes.pop("name")
            for name, value in changes.items():
                setattr(department, name, value)
            await session.flush()
            return department

        return await self.transactions.run(_update)

    async def delete_department(self, department_id: int) -> None:
        """Delete a department that no employee references."""

        async def _delete(session: AsyncSession) -> None:
            department = await session.get(Department, department_id)
            if department is None:
                raise NotFoundError("Department", department_id)
            count = await session.scalar(
                select(func.count(Employee.id)).where(Employee.department_id == department_id)
            )
            if count:
                raise DependentRecordsError("department", department_id, "employee(s)", count)
            await session.delete(department)

        await self.transactions.run(_delete)
        logger.info("Deleted department %s", department_id)
