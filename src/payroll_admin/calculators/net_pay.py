"""Net pay derivation with exact decimal arithmetic."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from payroll_admin.calculators.types import PayrollAmounts


class NetPayCalculator:
    """Derives net pay from gross, deductions and bonuses.

    Formula (fixed):
        net = gross - tax_deductions - other_deductions + bonuses

    Rounding:
    - Every input is rounded half-up to cents before the formula, so the
      stored net equals the formula applied to the stored inputs.
    - The result is exact; no binary floating point is involved anywhere.
    """

    OUTPUT_PRECISION = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(NetPayCalculator.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @classmethod
    def normalize(cls, amounts: PayrollAmounts) -> PayrollAmounts:
        """Round each input amount to cents."""
        return PayrollAmounts(
            gross_amount=cls.round_to_cents(amounts.gross_amount),
            tax_deductions=cls.round_to_cents(amounts.tax_deductions),
            other_deductions=cls.round_to_cents(amounts.other_deductions),
            bonuses=cls.round_to_cents(amounts.bonuses),
        )

    @classmethod
    def calculate_net(cls, amounts: PayrollAmounts) -> Decimal:
        """Compute net amount for the given inputs."""
        rounded = cls.normalize(amounts)
        net = (
            rounded.gross_amount
            - rounded.tax_deductions
            - rounded.other_deductions
            + rounded.bonuses
        )
        return cls.round_to_cents(net)

    @classmethod
    def is_consistent(cls, amounts: PayrollAmounts, net_amount: Decimal | None) -> bool:
        """Check whether a stored or supplied net matches the formula."""
        if net_amount is None:
            return False
        return cls.round_to_cents(net_amount) == cls.calculate_net(amounts)

    @classmethod
    def tax_for_rate(cls, gross_amount: Decimal, rate: Decimal) -> Decimal:
        """Flat-rate tax deduction (rate given as a fraction, e.g. 0.15)."""
        return cls.round_to_cents(gross_amount * rate)
