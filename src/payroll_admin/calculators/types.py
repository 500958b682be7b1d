"""Type definitions for payroll calculation."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class PayrollAmounts:
    """The four caller-supplied amounts a net amount is derived from."""

    gross_amount: Decimal
    tax_deductions: Decimal = Decimal("0")
    other_deductions: Decimal = Decimal("0")
    bonuses: Decimal = Decimal("0")
