"""Payroll admin services."""

from payroll_admin.services.aggregation_service import (
    AggregationService,
    DashboardSummary,
    DepartmentShare,
)
from payroll_admin.services.department_service import DepartmentService
from payroll_admin.services.employee_service import EmployeeService
from payroll_admin.services.payroll_service import (
    EmployeeOutcome,
    MonthlyProcessingResult,
    PayrollService,
)
from payroll_admin.services.rollup_service import PayrollRollupService
from payroll_admin.services.state_machine import (
    InvalidTransitionError,
    PayrollStateMachine,
    PayrollStatus,
)
from payroll_admin.services.transaction import TransactionCoordinator
from payroll_admin.services.user_service import UserService
from payroll_admin.services.validation import PayrollDraft, PayrollValidator, ValidatedPayroll

__all__ = [
    "AggregationService",
    "DashboardSummary",
    "DepartmentShare",
    "DepartmentService",
    "EmployeeService",
    "EmployeeOutcome",
    "MonthlyProcessingResult",
    "PayrollService",
    "PayrollRollupService",
    "InvalidTransitionError",
    "PayrollStateMachine",
    "PayrollStatus",
    "TransactionCoordinator",
    "UserService",
    "PayrollDraft",
    "PayrollValidator",
    "ValidatedPayroll",
]
