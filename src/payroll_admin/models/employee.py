"""Department and employee models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_admin.models.base import Base, Money

if TYPE_CHECKING:
    from payroll_admin.models.payroll import Payroll
    from payroll_admin.models.user import User


class EmployeeStatus:
    """Employee status values."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"


class Department(Base):
    """Organizational department."""

    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    employees: Mapped[list[Employee]] = relationship(back_populates="department")


class Employee(Base):
    """Employee record.

    Deleting an employee removes its payrolls first (service level, one unit of
    work); the linked user is kept.
    """

    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        nullable=True,
    )
    department_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("departments.id"),
        nullable=True,
    )
    position: Mapped[str] = mapped_column(String(100), nullable=False)
    tax_id: Mapped[str] = mapped_column(String(50), nullable=False)
    tax_status: Mapped[str] = mapped_column(String(50), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    routing_number: Mapped[str] = mapped_column(String(50), nullable=False)
    base_salary: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    join_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=EmployeeStatus.ACTIVE
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'terminated')",
            name="employees_status_check",
        ),
    )

    # Relationships
    user: Mapped[User | None] = relationship(back_populates="employees")
    department: Mapped[Department | None] = relationship(back_populates="employees")
    payrolls: Mapped[list[Payroll]] = relationship(back_populates="employee")

    @property
    def is_active(self) -> bool:
        """Check if employee can receive payroll."""
        return self.status == EmployeeStatus.ACTIVE
