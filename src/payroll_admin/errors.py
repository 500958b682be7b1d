"""Typed errors raised by the payroll core.

Every error carries a stable ``code`` so callers can branch on type or code
instead of parsing messages.

    PayrollAdminError
    +-- ValidationError
    |   +-- InvalidReferenceError
    |   +-- OutOfRangeError
    |   +-- InvalidAmountError
    |   +-- InvalidTransitionError   (payroll_admin.services.state_machine)
    |   +-- PayrollBatchError
    +-- NotFoundError
    +-- ConflictError
    |   +-- DuplicatePeriodError
    |   +-- DependentRecordsError
    +-- TransactionFailure
    |   +-- NestedTransactionError
    +-- AggregationError
"""

from __future__ import annotations

from typing import Any


class PayrollAdminError(Exception):
    """Base class for all payroll admin errors."""

    code = "PAYROLL_ADMIN_ERROR"


# ============================================================================
# Validation
# ============================================================================


class ValidationError(PayrollAdminError):
    """Caller input rejected before any mutation."""

    code = "ValidationError"

    def __init__(self, field: str | None, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "field": self.field, "detail": self.message}


class InvalidReferenceError(ValidationError):
    """A referenced record is missing or not eligible."""

    code = "InvalidReference"


class OutOfRangeError(ValidationError):
    """A bounded value (month, year, status) is outside its domain."""

    code = "OutOfRange"


class InvalidAmountError(ValidationError):
    """A monetary amount is non-numeric or violates its sign rule."""

    code = "InvalidAmount"


class PayrollBatchError(ValidationError):
    """A bulk run was rolled back because at least one employee failed validation.

    ``outcomes`` holds the per-employee report so callers can reconcile.
    """

    code = "BatchValidationFailed"

    def __init__(self, month: int, year: int, outcomes: list[Any]):
        self.month = month
        self.year = year
        self.outcomes = outcomes
        failed = [o for o in outcomes if o.status == "failed"]
        super().__init__(
            None,
            f"Monthly payroll {month:02d}/{year} rolled back: "
            f"{len(failed)} employee(s) failed validation",
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["outcomes"] = [o.to_dict() for o in self.outcomes]
        return data


# ============================================================================
# Lookups and conflicts
# ============================================================================


class NotFoundError(PayrollAdminError):
    """Referenced id does not exist."""

    code = "NotFound"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConflictError(PayrollAdminError):
    """A store-level constraint prevented the mutation."""

    code = "Conflict"

    def __init__(self, message: str, record: str | None = None):
        self.record = record
        super().__init__(message)


class DuplicatePeriodError(ConflictError):
    """A payroll for the employee and period already exists."""

    code = "DuplicatePeriod"

    def __init__(self, employee_id: int, month: int, year: int):
        self.employee_id = employee_id
        self.month = month
        self.year = year
        super().__init__(
            f"A payroll for employee {employee_id} already exists for {month:02d}/{year}",
            record=f"payroll(employee_id={employee_id}, month={month}, year={year})",
        )


class DependentRecordsError(ConflictError):
    """Delete refused because other records still reference the target."""

    code = "DependentRecords"

    def __init__(self, entity: str, entity_id: Any, dependents: str, count: int):
        self.entity = entity
        self.entity_id = entity_id
        self.dependents = dependents
        self.count = count
        super().__init__(
            f"Cannot delete {entity} {entity_id}: {count} {dependents} still reference it",
            record=f"{entity}({entity_id})",
        )


# ============================================================================
# Infrastructure
# ============================================================================


class TransactionFailure(PayrollAdminError):
    """A unit of work aborted for an infrastructure reason. Safe to retry."""

    code = "TransactionFailure"


class NestedTransactionError(TransactionFailure):
    """A unit of work was started while another is active on the same task."""

    code = "NestedTransaction"


class AggregationError(PayrollAdminError):
    """A dashboard aggregate could not be computed."""

    code = "AggregationError"
