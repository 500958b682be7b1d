"""Pydantic input models for payroll admin operations.

Patch models follow one merge rule: only fields the caller actually set
(``model_dump(exclude_unset=True)``) overwrite stored values; unset fields
leave the stored value unchanged.

Monetary fields accept Decimal or string and are parsed by the validation
rules, so a non-numeric amount surfaces as InvalidAmount rather than as a
schema error.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

AmountInput = Union[Decimal, str]
PayrollStatusInput = Literal["pending", "completed", "failed"]
EmployeeStatusInput = Literal["active", "inactive", "terminated"]
RoleInput = Literal["employee", "admin"]
Username = Annotated[str, Field(min_length=3, max_length=100)]
Password = Annotated[str, Field(min_length=6)]


class PatchModel(BaseModel):
    """Base for partial-update models."""

    model_config = ConfigDict(extra="forbid")

    def changes(self) -> dict[str, Any]:
        """Fields explicitly supplied by the caller."""
        return self.model_dump(exclude_unset=True)


# ============================================================================
# Users
# ============================================================================


class UserCreate(BaseModel):
    """Schema for registering a user."""

    username: Username
    password: Password
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    phone: str | None = None
    role: RoleInput = "employee"


# ============================================================================
# Departments
# ============================================================================


class DepartmentCreate(BaseModel):
    """Schema for creating a department."""

    name: str = Field(min_length=1, max_length=100)
    description: str | None = None


class DepartmentPatch(PatchModel):
    """Schema for a partial department update."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None


# ============================================================================
# Employees
# ============================================================================


class EmployeeCreate(BaseModel):
    """Schema for creating an employee, optionally with a new user."""

    user_id: int | None = None
    is_new_user: bool = False

    # Used only when is_new_user is set
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    username: Username | None = None
    password: Password | None = None

    department_id: int | None = None
    position: str
    tax_id: str
    tax_status: str
    bank_name: str
    account_number: str
    routing_number: str
    base_salary: AmountInput
    join_date: date
    status: EmployeeStatusInput = "active"


class EmployeePatch(PatchModel):
    """Schema for a partial employee update.

    Name, email and phone are written to the linked user.
    """

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None

    department_id: int | None = None
    position: str | None = None
    tax_id: str | None = None
    tax_status: str | None = None
    bank_name: str | None = None
    account_number: str | None = None
    routing_number: str | None = None
    base_salary: AmountInput | None = None
    join_date: date | None = None
    status: EmployeeStatusInput | None = None

    USER_FIELDS: ClassVar[tuple[str, ...]] = ("first_name", "last_name", "email", "phone")

    def user_changes(self) -> dict[str, Any]:
        return {k: v for k, v in self.changes().items() if k in self.USER_FIELDS}

    def employee_changes(self) -> dict[str, Any]:
        return {k: v for k, v in self.changes().items() if k not in self.USER_FIELDS}


# ============================================================================
# Payrolls
# ============================================================================


class PayrollCreate(BaseModel):
    """Schema for creating a payroll.

    net_amount is accepted for compatibility but always recomputed.
    """

    employee_id: int
    month: int
    year: int
    gross_amount: AmountInput
    tax_deductions: AmountInput | None = None
    other_deductions: AmountInput | None = None
    bonuses: AmountInput | None = None
    net_amount: AmountInput | None = None
    status: PayrollStatusInput | None = None
    details: dict[str, Any] | None = None
    processed_at: datetime | None = None
    processed_by: int | None = None


class PayrollPatch(PatchModel):
    """Schema for a partial payroll update."""

    employee_id: int | None = None
    month: int | None = None
    year: int | None = None
    gross_amount: AmountInput | None = None
    tax_deductions: AmountInput | None = None
    other_deductions: AmountInput | None = None
    bonuses: AmountInput | None = None
    net_amount: AmountInput | None = None
    status: PayrollStatusInput | None = None
    details: dict[str, Any] | None = None
    processed_at: datetime | None = None
    processed_by: int | None = None
