"""Monthly payroll rollup maintenance."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_admin.models import Payroll, PayrollPeriodSummary, utcnow

logger = logging.getLogger(__name__)


class PayrollRollupService:
    """Keeps payroll_period_summaries in step with payroll rows.

    Every payroll mutation refreshes the summaries of the periods it touched,
    inside the caller's unit of work, so a committed summary always equals a
    recount of the raw rows. A period with no payrolls has no summary row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_period(self, month: int, year: int) -> PayrollPeriodSummary | None:
        """Load the summary for a period, if one exists."""
        return await self.session.get(PayrollPeriodSummary, (month, year))

    async def lock_period(self, month: int, year: int) -> None:
        """Serialize rollup writers of one period until the transaction ends.

        PostgreSQL only; SQLite already serializes writers on the database file.
        """
        if self.session.bind.dialect.name != "postgresql":
            return
        await self.session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:period))"),
            {"period": f"payroll_period:{year}-{month:02d}"},
        )

    async def refresh_period(self, month: int, year: int) -> PayrollPeriodSummary | None:
        """Recount one period from raw payroll rows.

        The caller must have flushed its own payroll changes. The period lock is
        taken before the recount, so under READ COMMITTED the recount sees every
        payroll committed by a concurrent writer of the same period.
        """
        await self.session.flush()
        await self.lock_period(month, year)

        result = await self.session.execute(
            select(Payroll.net_amount).where(Payroll.month == month, Payroll.year == year)
        )
        amounts = list(result.scalars().all())
        summary = await self.session.get(
            PayrollPeriodSummary, (month, year), populate_existing=True
        )

        if not amounts:
            if summary is not None:
                await self.session.delete(summary)
            return None

        if summary is None:
            summary = PayrollPeriodSummary(month=month, year=year)
            self.session.add(summary)

        summary.total_net = sum(amounts, Decimal("0"))
        summary.payroll_count = len(amounts)
        summary.refreshed_at = utcnow()
        logger.debug(
            "Rollup %02d/%d refreshed: %d payroll(s), net %s",
            month,
            year,
            summary.payroll_count,
            summary.total_net,
        )
        return summary

    async def refresh_periods(self, periods: Iterable[tuple[int, int]]) -> None:
        """Refresh several periods (duplicates are refreshed once)."""
        for month, year in sorted(set(periods), key=lambda p: (p[1], p[0])):
            await self.refresh_period(month, year)
