"""ORM models for payroll admin."""

from payroll_admin.models.base import CENTS, Base, Money, TimestampMixin, UTCDateTime, utcnow
from payroll_admin.models.employee import Department, Employee, EmployeeStatus
from payroll_admin.models.payroll import Payroll, PayrollPeriodSummary
from payroll_admin.models.user import User

__all__ = [
    "CENTS",
    "Base",
    "Money",
    "TimestampMixin",
    "UTCDateTime",
    "utcnow",
    "Department",
    "Employee",
    "EmployeeStatus",
    "Payroll",
    "PayrollPeriodSummary",
    "User",
]
