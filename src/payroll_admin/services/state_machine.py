"""Payroll status state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from payroll_admin.errors import ValidationError


class PayrollStatus(str, Enum):
    """Payroll status values."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class InvalidTransitionError(ValidationError):
    """Raised when an invalid status transition is attempted."""

    code = "InvalidTransition"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__("status", msg)


class PayrollStateMachine:
    """State machine for payroll status transitions.

    Allowed transitions:
    - pending → completed (sets processed_at)
    - pending → failed

    completed and failed are terminal. Writing the current status again is a
    no-op, not a transition.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollStatus.PENDING: [PayrollStatus.COMPLETED, PayrollStatus.FAILED],
        PayrollStatus.COMPLETED: [],  # Terminal state
        PayrollStatus.FAILED: [],  # Terminal state
    }

    TERMINAL = {
        PayrollStatus.COMPLETED,
        PayrollStatus.FAILED,
    }

    @classmethod
    def is_known(cls, status: str) -> bool:
        """Check if status is one of the defined values."""
        return status in cls.VALID_TRANSITIONS

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        if from_status == to_status:
            return cls.is_known(to_status)
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            reason = None
            if from_status in cls.TERMINAL:
                reason = f"'{from_status}' is terminal"
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        """Check if no further transition is possible."""
        return status in cls.TERMINAL

    @classmethod
    def sets_processed_at(cls, status: str) -> bool:
        """Check if entering this status stamps processed_at."""
        return status == PayrollStatus.COMPLETED

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
