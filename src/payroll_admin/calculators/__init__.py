"""Payroll calculation."""

from payroll_admin.calculators.net_pay import NetPayCalculator
from payroll_admin.calculators.types import PayrollAmounts

__all__ = [
    "NetPayCalculator",
    "PayrollAmounts",
]
