"""Payroll validation rules.

Pure checks: no I/O, no session. The caller loads the referenced employee in
the same unit of work and hands it in, so the rules run identically for single
writes and for the bulk monthly run.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from payroll_admin.calculators import NetPayCalculator, PayrollAmounts
from payroll_admin.errors import InvalidAmountError, InvalidReferenceError, OutOfRangeError
from payroll_admin.services.state_machine import PayrollStateMachine, PayrollStatus

if TYPE_CHECKING:
    from payroll_admin.models import Employee, Payroll
    from payroll_admin.schemas import PayrollCreate

ZERO = Decimal("0")
# Money columns are NUMERIC(12, 2): at most 10 integer digits
MAX_AMOUNT = Decimal(10) ** 10


@dataclass(frozen=True)
class PayrollDraft:
    """Raw field values of a payroll about to be written.

    Built from a create request, or from a stored record with a patch merged in.
    net_amount is deliberately absent: it is always derived.
    """

    employee_id: int
    month: Any
    year: Any
    gross_amount: Any
    tax_deductions: Any = None
    other_deductions: Any = None
    bonuses: Any = None
    status: str | None = None
    details: dict[str, Any] | None = None
    processed_at: datetime | None = None
    processed_by: int | None = None

    @classmethod
    def from_create(cls, data: PayrollCreate) -> PayrollDraft:
        return cls(
            employee_id=data.employee_id,
            month=data.month,
            year=data.year,
            gross_amount=data.gross_amount,
            tax_deductions=data.tax_deductions,
            other_deductions=data.other_deductions,
            bonuses=data.bonuses,
            status=data.status,
            details=data.details,
            processed_at=data.processed_at,
            processed_by=data.processed_by,
        )

    @classmethod
    def from_record(cls, payroll: Payroll) -> PayrollDraft:
        return cls(
            employee_id=payroll.employee_id,
            month=payroll.month,
            year=payroll.year,
            gross_amount=payroll.gross_amount,
            tax_deductions=payroll.tax_deductions,
            other_deductions=payroll.other_deductions,
            bonuses=payroll.bonuses,
            status=payroll.status,
            details=payroll.details,
            processed_at=payroll.processed_at,
            processed_by=payroll.processed_by,
        )

    def merged(self, changes: dict[str, Any]) -> PayrollDraft:
        """Overlay supplied fields; fields not in ``changes`` keep their value."""
        names = {f.name for f in dataclasses.fields(self)}
        return dataclasses.replace(
            self, **{k: v for k, v in changes.items() if k in names}
        )


@dataclass(frozen=True)
class ValidatedPayroll:
    """A payroll that passed every rule, with net amount derived."""

    employee_id: int
    month: int
    year: int
    amounts: PayrollAmounts
    net_amount: Decimal
    status: str
    details: dict[str, Any] | None
    processed_at: datetime | None
    processed_by: int | None

    def apply_to(self, payroll: Payroll) -> Payroll:
        """Copy validated values onto an ORM record."""
        payroll.employee_id = self.employee_id
        payroll.month = self.month
        payroll.year = self.year
        payroll.gross_amount = self.amounts.gross_amount
        payroll.tax_deductions = self.amounts.tax_deductions
        payroll.other_deductions = self.amounts.other_deductions
        payroll.bonuses = self.amounts.bonuses
        payroll.net_amount = self.net_amount
        payroll.status = self.status
        payroll.details = self.details
        payroll.processed_at = self.processed_at
        payroll.processed_by = self.processed_by
        return payroll


class PayrollValidator:
    """Business rules a payroll must satisfy before it is stored.

    Rules:
    - employee exists and is active            → InvalidReference
    - month in [1, 12], year in [2000, 2100]   → OutOfRange
    - gross_amount numeric and > 0             → InvalidAmount
    - tax/other deductions, bonuses >= 0       → InvalidAmount (absent = 0)
    - every amount and the net below 10^10     → InvalidAmount
    - status known, defaults to pending        → OutOfRange
    - completed without processed_at           → processed_at = now
    """

    MIN_MONTH, MAX_MONTH = 1, 12
    MIN_YEAR, MAX_YEAR = 2000, 2100

    @staticmethod
    def check_employee(employee_id: int, employee: Employee | None) -> None:
        if employee is None:
            raise InvalidReferenceError("employee_id", f"Employee {employee_id} does not exist")
        if not employee.is_active:
            raise InvalidReferenceError(
                "employee_id",
                f"Employee {employee_id} is {employee.status}; only active employees can be paid",
            )

    @staticmethod
    def _is_int(value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool)

    @classmethod
    def check_period(cls, month: Any, year: Any) -> None:
        if not cls._is_int(month) or not cls.MIN_MONTH <= month <= cls.MAX_MONTH:
            raise OutOfRangeError(
                "month",
                f"must be an integer between {cls.MIN_MONTH} and {cls.MAX_MONTH}, got {month!r}",
            )
        if not cls._is_int(year) or not cls.MIN_YEAR <= year <= cls.MAX_YEAR:
            raise OutOfRangeError(
                "year",
                f"must be an integer between {cls.MIN_YEAR} and {cls.MAX_YEAR}, got {year!r}",
            )

    @staticmethod
    def parse_amount(field: str, value: Any, default: Decimal | None = None) -> Decimal:
        """Parse a monetary input into an exact Decimal.

        ``default`` is used when the value is absent; without one the field is
        required.
        """
        if value is None:
            if default is None:
                raise InvalidAmountError(field, "is required")
            return default
        if isinstance(value, bool):
            raise InvalidAmountError(field, f"{value!r} is not a number")
        if isinstance(value, Decimal):
            amount = value
        else:
            try:
                amount = Decimal(str(value).strip())
            except InvalidOperation:
                raise InvalidAmountError(field, f"{value!r} is not a number") from None
        if not amount.is_finite():
            raise InvalidAmountError(field, f"{value!r} is not a finite number")
        if (
            abs(amount) >= MAX_AMOUNT
            or abs(NetPayCalculator.round_to_cents(amount)) >= MAX_AMOUNT
        ):
            raise InvalidAmountError(field, f"must be less than {MAX_AMOUNT:,}, got {value}")
        return amount

    @classmethod
    def check_amounts(cls, draft: PayrollDraft) -> PayrollAmounts:
        gross = cls.parse_amount("gross_amount", draft.gross_amount)
        if NetPayCalculator.round_to_cents(gross) <= ZERO:
            raise InvalidAmountError("gross_amount", f"must be greater than zero, got {gross}")

        optional = {}
        for field in ("tax_deductions", "other_deductions", "bonuses"):
            amount = cls.parse_amount(field, getattr(draft, field), default=ZERO)
            if amount < ZERO:
                raise InvalidAmountError(field, f"must not be negative, got {amount}")
            optional[field] = amount

        return NetPayCalculator.normalize(PayrollAmounts(gross_amount=gross, **optional))

    @staticmethod
    def normalize_status(
        status: str | None,
        processed_at: datetime | None,
        now: datetime,
    ) -> tuple[str, datetime | None]:
        status = status or PayrollStatus.PENDING
        if not PayrollStateMachine.is_known(status):
            raise OutOfRangeError("status", f"unknown payroll status {status!r}")
        status = PayrollStatus(status).value
        if PayrollStateMachine.sets_processed_at(status) and processed_at is None:
            processed_at = now
        return status, processed_at

    @classmethod
    def validate(
        cls,
        draft: PayrollDraft,
        employee: Employee | None,
        now: datetime,
    ) -> ValidatedPayroll:
        """Run every rule and derive the net amount."""
        cls.check_employee(draft.employee_id, employee)
        cls.check_period(draft.month, draft.year)
        amounts = cls.check_amounts(draft)
        status, processed_at = cls.normalize_status(draft.status, draft.processed_at, now)
        net_amount = NetPayCalculator.calculate_net(amounts)
        if abs(net_amount) >= MAX_AMOUNT:
            raise InvalidAmountError(
                "net_amount", f"derived net {net_amount} is too large to store"
            )

        return ValidatedPayroll(
            employee_id=draft.employee_id,
            month=draft.month,
            year=draft.year,
            amounts=amounts,
            net_amount=net_amount,
            status=status,
            details=draft.details,
            processed_at=processed_at,
            processed_by=draft.processed_by,
        )
