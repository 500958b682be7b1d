"""Payroll record and period rollup models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_admin.models.base import Base, Money, TimestampMixin, UTCDateTime, utcnow

if TYPE_CHECKING:
    from payroll_admin.models.employee import Employee
    from payroll_admin.models.user import User


class Payroll(Base, TimestampMixin):
    """One employee's pay for one calendar month.

    net_amount is always gross_amount - tax_deductions - other_deductions + bonuses
    as of the last write.
    """

    __tablename__ = "payrolls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employees.id"),
        nullable=False,
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    tax_deductions: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(
        Money(), nullable=False, default=Decimal("0")
    )
    bonuses: Mapped[Decimal] = mapped_column(Money(), nullable=False, default=Decimal("0"))
    net_amount: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    details: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    processed_by: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "month", "year", name="payrolls_employee_period_unique"
        ),
        CheckConstraint("month BETWEEN 1 AND 12", name="payrolls_month_check"),
        CheckConstraint("year BETWEEN 2000 AND 2100", name="payrolls_year_check"),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="payrolls_status_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="payrolls")
    processor: Mapped[User | None] = relationship(foreign_keys=[processed_by])

    @property
    def period(self) -> tuple[int, int]:
        """(month, year) of this payroll."""
        return self.month, self.year


class PayrollPeriodSummary(Base):
    """Precomputed monthly totals used by the dashboard.

    Refreshed in the same unit of work as every payroll mutation of the period.
    """

    __tablename__ = "payroll_period_summaries"

    month: Mapped[int] = mapped_column(Integer, primary_key=True)
    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Sum of many payrolls, wider than a single amount
    total_net: Mapped[Decimal] = mapped_column(Money(precision=16), nullable=False)
    payroll_count: Mapped[int] = mapped_column(Integer, nullable=False)
    refreshed_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow
    )
