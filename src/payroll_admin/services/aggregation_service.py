"""Read-only dashboard aggregates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_admin.calculators import NetPayCalculator
from payroll_admin.errors import AggregationError, TransactionFailure
from payroll_admin.models import Department, Employee, EmployeeStatus, Payroll, utcnow
from payroll_admin.services.rollup_service import PayrollRollupService
from payroll_admin.services.state_machine import PayrollStatus
from payroll_admin.services.transaction import TransactionCoordinator

logger = logging.getLogger(__name__)

UNASSIGNED_DEPARTMENT = "Unassigned"


@dataclass(frozen=True)
class DashboardSummary:
    """Headline dashboard figures."""

    employee_count: int
    total_payroll: Decimal
    average_salary: Decimal
    pending_count: int
    month: int
    year: int
    source: str  # "rollup" or "payrolls"


@dataclass(frozen=True)
class DepartmentShare:
    """Active headcount of one department."""

    department_id: int | None
    name: str
    count: int
    percentage: int


class AggregationService:
    """Computes dashboard views from one consistent snapshot.

    - Each view is read inside a single snapshot unit of work.
    - total_payroll prefers the monthly rollup and falls back to raw payroll
      rows when no rollup exists for the period; both give the same figure.
    - A failed read raises AggregationError; zeros are never substituted.
    """

    def __init__(
        self,
        transactions: TransactionCoordinator,
        use_rollup: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.transactions = transactions
        self.use_rollup = use_rollup
        self.clock = clock

    async def get_dashboard_summary(self) -> DashboardSummary:
        """Summary for the current calendar month."""
        now = self.clock()
        month, year = now.month, now.year

        async def _summarize(session: AsyncSession) -> DashboardSummary:
            salaries = list(
                (
                    await session.execute(
                        select(Employee.base_salary).where(
                            Employee.status == EmployeeStatus.ACTIVE
                        )
                    )
                ).scalars()
            )
            total_payroll, source = await self._total_payroll(session, month, year)
            pending_count = await session.scalar(
                select(func.count(Payroll.id)).where(
                    Payroll.status == PayrollStatus.PENDING.value
                )
            )

            average_salary = Decimal("0.00")
            if salaries:
                average_salary = NetPayCalculator.round_to_cents(
                    sum(salaries, Decimal("0")) / len(salaries)
                )

            return DashboardSummary(
                employee_count=len(salaries),
                total_payroll=NetPayCalculator.round_to_cents(total_payroll),
                average_salary=average_salary,
                pending_count=pending_count or 0,
                month=month,
                year=year,
                source=source,
            )

        try:
            return await self.transactions.run(_summarize, snapshot=True)
        except (SQLAlchemyError, TransactionFailure) as exc:
            logger.exception("Dashboard summary failed for %02d/%d", month, year)
            raise AggregationError("Dashboard summary could not be computed") from exc

    async def get_department_distribution(self) -> list[DepartmentShare]:
        """Active headcount of every department, largest first.

        Percentages are rounded individually and may not sum to 100.
        """

        async def _distribute(session: AsyncSession) -> list[DepartmentShare]:
            active = and_(
                Employee.department_id == Department.id,
                Employee.status == EmployeeStatus.ACTIVE,
            )
            result = await session.execute(
                select(Department.id, Department.name, func.count(Employee.id))
                .outerjoin(Employee, active)
                .group_by(Department.id, Department.name)
            )
            rows = [tuple(row) for row in result.all()]
            unassigned = await session.scalar(
                select(func.count(Employee.id)).where(
                    Employee.department_id.is_(None),
                    Employee.status == EmployeeStatus.ACTIVE,
                )
            )
            if unassigned:
                rows.append((None, UNASSIGNED_DEPARTMENT, unassigned))
            total = sum(count for _, _, count in rows)

            shares = [
                DepartmentShare(
                    department_id=department_id,
                    name=name,
                    count=count,
                    percentage=self._percentage(count, total),
                )
                for department_id, name, count in rows
            ]
            return sorted(shares, key=lambda s: (-s.count, s.name))

        try:
            return await self.transactions.run(_distribute, snapshot=True)
        except (SQLAlchemyError, TransactionFailure) as exc:
            logger.exception("Department distribution failed")
            raise AggregationError("Department distribution could not be computed") from exc

    async def _total_payroll(
        self, session: AsyncSession, month: int, year: int
    ) -> tuple[Decimal, str]:
        if self.use_rollup:
            summary = await PayrollRollupService(session).get_period(month, year)
            if summary is not None:
                return summary.total_net, "rollup"

        result = await session.execute(
            select(Payroll.net_amount).where(Payroll.month == month, Payroll.year == year)
        )
        return sum(result.scalars().all(), Decimal("0")), "payrolls"

    @staticmethod
    def _percentage(count: int, total: int) -> int:
        if total == 0:
            return 0
        share = Decimal(count) * 100 / Decimal(total)
        return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
