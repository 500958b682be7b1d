"""Pydantic schemas for API responses and request bodies not shared with the services."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from payroll_admin.schemas import AmountInput


class ErrorResponse(BaseModel):
    """Error body returned by every handled failure."""

    code: str
    detail: str
    field: str | None = None
    record: str | None = None


# ============================================================================
# Users and departments
# ============================================================================


class UserSummary(BaseModel):
    """Public view of a user; the password hash is never returned."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: str | None = None
    role: str


class DepartmentResponse(BaseModel):
    """Schema for department response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None


# ============================================================================
# Employees
# ============================================================================


class EmployeeSummary(BaseModel):
    """Employee fields embedded in payroll responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    position: str
    status: str
    base_salary: Decimal
    user: UserSummary | None = None
    department: DepartmentResponse | None = None


class EmployeeResponse(EmployeeSummary):
    """Schema for employee response."""

    user_id: int | None = None
    department_id: int | None = None
    tax_id: str
    tax_status: str
    bank_name: str
    account_number: str
    routing_number: str
    join_date: date


# ============================================================================
# Payrolls
# ============================================================================


class PayrollResponse(BaseModel):
    """Schema for payroll response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    month: int
    year: int
    gross_amount: Decimal
    tax_deductions: Decimal
    other_deductions: Decimal
    bonuses: Decimal
    net_amount: Decimal
    status: str
    details: dict[str, Any] | None = None
    processed_at: datetime | None = None
    processed_by: int | None = None
    created_at: datetime
    employee: EmployeeSummary | None = None


class MonthlyProcessingRequest(BaseModel):
    """Request to run payroll for every eligible employee."""

    month: int
    year: int
    tax_rate: AmountInput | None = None


class EmployeeOutcomeResponse(BaseModel):
    """What the monthly run did for one employee."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: int
    status: str
    reason: str | None = None
    message: str | None = None
    payroll_id: int | None = None


class MonthlyProcessingResponse(BaseModel):
    """Report of a committed monthly run."""

    month: int
    year: int
    created: int
    skipped: int
    outcomes: list[EmployeeOutcomeResponse] = Field(default_factory=list)


# ============================================================================
# Dashboard
# ============================================================================


class DashboardSummaryResponse(BaseModel):
    """Headline dashboard figures for the current month."""

    model_config = ConfigDict(from_attributes=True)

    employee_count: int
    total_payroll: Decimal
    average_salary: Decimal
    pending_count: int
    month: int
    year: int


class DepartmentShareResponse(BaseModel):
    """Active headcount of one department."""

    model_config = ConfigDict(from_attributes=True)

    department_id: int | None = None
    name: str
    count: int
    percentage: int
