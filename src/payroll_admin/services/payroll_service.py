"""Payroll service - lifecycle of payroll records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from payroll_admin.calculators import NetPayCalculator
from payroll_admin.errors import (
    DuplicatePeriodError,
    InvalidAmountError,
    InvalidReferenceError,
    NotFoundError,
    PayrollBatchError,
    ValidationError,
)
from payroll_admin.models import Employee, Payroll, User, utcnow
from payroll_admin.schemas import PayrollCreate, PayrollPatch
from payroll_admin.services.rollup_service import PayrollRollupService
from payroll_admin.services.state_machine import PayrollStateMachine, PayrollStatus
from payroll_admin.services.transaction import TransactionCoordinator
from payroll_admin.services.validation import PayrollDraft, PayrollValidator, ValidatedPayroll

logger = logging.getLogger(__name__)

MONTHLY_PROCESSING_SOURCE = "monthly_processing"


@dataclass(frozen=True)
class EmployeeOutcome:
    """What the monthly run did for one employee."""

    CREATED = "created"
    SKIPPED = "skipped"
    FAILED = "failed"

    employee_id: int
    status: str
    reason: str | None = None
    message: str | None = None
    payroll_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "status": self.status,
            "reason": self.reason,
            "message": self.message,
            "payroll_id": self.payroll_id,
        }


@dataclass
class MonthlyProcessingResult:
    """Per-employee report of a committed monthly run."""

    month: int
    year: int
    outcomes: list[EmployeeOutcome] = field(default_factory=list)

    def _with_status(self, status: str) -> list[EmployeeOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def created(self) -> list[EmployeeOutcome]:
        return self._with_status(EmployeeOutcome.CREATED)

    @property
    def skipped(self) -> list[EmployeeOutcome]:
        return self._with_status(EmployeeOutcome.SKIPPED)

    @property
    def failed(self) -> list[EmployeeOutcome]:
        return self._with_status(EmployeeOutcome.FAILED)


class PayrollService:
    """Service for managing the payroll lifecycle.

    Operations:
    - create_payroll: validate, derive net, insert
    - update_payroll: merge patch over the stored record, re-validate, re-derive net
    - delete_payroll: remove by id (idempotent)
    - process_monthly_payroll: one payroll per eligible employee, all or nothing

    Every mutation runs in its own unit of work and refreshes the monthly
    rollup of each period it touched before commit.
    """

    def __init__(
        self,
        transactions: TransactionCoordinator,
        default_tax_rate: Decimal = Decimal("0"),
        recent_limit: int = 5,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.transactions = transactions
        self.default_tax_rate = default_tax_rate
        self.recent_limit = recent_limit
        self.clock = clock

    # ------------------------------------------------------------------
    # Loading helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _with_details(stmt):
        return stmt.options(
            selectinload(Payroll.employee).options(
                selectinload(Employee.user),
                selectinload(Employee.department),
            ),
            selectinload(Payroll.processor),
        )

    async def _load(self, session: AsyncSession, payroll_id: int) -> Payroll | None:
        result = await session.execute(
            self._with_details(select(Payroll).where(Payroll.id == payroll_id)).execution_options(
                populate_existing=True
            )
        )
        return result.scalar_one_or_none()

    async def _list(self, stmt) -> list[Payroll]:
        async def _query(session: AsyncSession) -> list[Payroll]:
            result = await session.execute(self._with_details(stmt))
            return list(result.scalars().all())

        return await self.transactions.run(_query)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_payroll(self, payroll_id: int) -> Payroll | None:
        """Load a payroll with its employee, user and department."""

        async def _get(session: AsyncSession) -> Payroll | None:
            return await self._load(session, payroll_id)

        return await self.transactions.run(_get)

    async def list_payrolls(self) -> list[Payroll]:
        """All payrolls, newest period first."""
        return await self._list(
            select(Payroll).order_by(Payroll.year.desc(), Payroll.month.desc(), Payroll.id.desc())
        )

    async def list_payrolls_for_employee(self, employee_id: int) -> list[Payroll]:
        return await self._list(
            select(Payroll)
            .where(Payroll.employee_id == employee_id)
            .order_by(Payroll.year.desc(), Payroll.month.desc())
        )

    async def list_payrolls_for_period(self, month: int, year: int) -> list[Payroll]:
        PayrollValidator.check_period(month, year)
        return await self._list(
            select(Payroll)
            .where(Payroll.month == month, Payroll.year == year)
            .order_by(Payroll.id)
        )

    async def list_recent_payrolls(self, limit: int | None = None) -> list[Payroll]:
        """Most recently created payrolls."""
        return await self._list(
            select(Payroll)
            .order_by(Payroll.created_at.desc(), Payroll.id.desc())
            .limit(limit or self.recent_limit)
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate_and_compute(
        self,
        session: AsyncSession,
        data: PayrollCreate | PayrollDraft,
    ) -> ValidatedPayroll:
        """Apply every payroll rule and derive net pay.

        Reads the referenced employee (and processing user) through the given
        session so the checks see the same state the write will.
        """
        draft = data if isinstance(data, PayrollDraft) else PayrollDraft.from_create(data)
        employee = await session.get(Employee, draft.employee_id)
        validated = PayrollValidator.validate(draft, employee, self.clock())
        if validated.processed_by is not None:
            await self._check_processor(session, validated.processed_by)
        return validated

    @staticmethod
    async def _check_processor(session: AsyncSession, user_id: int) -> None:
        if await session.get(User, user_id) is None:
            raise InvalidReferenceError("processed_by", f"User {user_id} does not exist")

    @staticmethod
    async def _ensure_period_free(
        session: AsyncSession,
        employee_id: int,
        month: int,
        year: int,
        exclude_id: int | None = None,
    ) -> None:
        stmt = select(Payroll.id).where(
            Payroll.employee_id == employee_id,
            Payroll.month == month,
            Payroll.year == year,
        )
        if exclude_id is not None:
            stmt = stmt.where(Payroll.id != exclude_id)
        if await session.scalar(stmt.limit(1)) is not None:
            raise DuplicatePeriodError(employee_id, month, year)

    @staticmethod
    async def _paid_employee_ids(session: AsyncSession, month: int, year: int) -> set[int]:
        result = await session.execute(
            select(Payroll.employee_id).where(Payroll.month == month, Payroll.year == year)
        )
        return set(result.scalars())

    @staticmethod
    async def _flush(session: AsyncSession, validated: ValidatedPayroll) -> None:
        # Only the period constraint is left unchecked here; a concurrent
        # writer can still win that race.
        try:
            await session.flush()
        except IntegrityError as exc:
            raise DuplicatePeriodError(
                validated.employee_id, validated.month, validated.year
            ) from exc

    @staticmethod
    def _warn_if_net_differs(supplied: Any, validated: ValidatedPayroll) -> None:
        if supplied is None:
            return
        try:
            consistent = NetPayCalculator.is_consistent(validated.amounts, Decimal(str(supplied)))
        except InvalidOperation:
            consistent = False
        if not consistent:
            logger.warning(
                "Ignoring supplied net_amount %s for employee %s; derived %s",
                supplied,
                validated.employee_id,
                validated.net_amount,
            )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_payroll(
        self,
        data: PayrollCreate,
        acting_user_id: int | None = None,
    ) -> Payroll:
        """Validate and insert one payroll.

        Raises:
            ValidationError subclasses for rule violations
            DuplicatePeriodError if the employee already has a payroll for the period
        """

        async def _create(session: AsyncSession) -> Payroll:
            draft = PayrollDraft.from_create(data)
            if draft.processed_by is None and acting_user_id is not None:
                draft = draft.merged({"processed_by": acting_user_id})

            validated = await self.validate_and_compute(session, draft)
            self._warn_if_net_differs(data.net_amount, validated)
            await self._ensure_period_free(
                session, validated.employee_id, validated.month, validated.year
            )

            payroll = validated.apply_to(Payroll())
            session.add(payroll)
            await self._flush(session, validated)
            await PayrollRollupService(session).refresh_period(validated.month, validated.year)
            return await self._load(session, payroll.id)

        payroll = await self.transactions.run(_create)
        logger.info(
            "Created payroll %s for employee %s (%02d/%d) net %s",
            payroll.id,
            payroll.employee_id,
            payroll.month,
            payroll.year,
            payroll.net_amount,
        )
        return payroll

    async def update_payroll(
        self,
        payroll_id: int,
        patch: PayrollPatch,
        acting_user_id: int | None = None,
    ) -> Payroll:
        """Apply a partial update.

        The patch is merged over the stored record and the whole result is
        validated again; net_amount is always re-derived. Status changes must
        follow the state machine.
        """

        async def _update(session: AsyncSession) -> Payroll:
            payroll = await session.get(Payroll, payroll_id)
            if payroll is None:
                raise NotFoundError("Payroll", payroll_id)

            changes = patch.changes()
            changes.pop("net_amount", None)
            # An explicit null status leaves the stored one in place
            if changes.get("status", payroll.status) is None:
                changes.pop("status")

            new_status = changes.get("status", payroll.status)
            PayrollStateMachine.validate_transition(payroll.status, new_status)

            draft = PayrollDraft.from_record(payroll).merged(changes)
            if (
                new_status != payroll.status
                and PayrollStateMachine.sets_processed_at(new_status)
                and "processed_by" not in changes
                and acting_user_id is not None
            ):
                draft = draft.merged({"processed_by": acting_user_id})

            validated = await self.validate_and_compute(session, draft)
            previous_period = payroll.period
            if (validated.employee_id, validated.month, validated.year) != (
                payroll.employee_id,
                payroll.month,
                payroll.year,
            ):
                await self._ensure_period_free(
                    session,
                    validated.employee_id,
                    validated.month,
                    validated.year,
                    exclude_id=payroll.id,
                )

            previous_net = payroll.net_amount
            validated.apply_to(payroll)
            await self._flush(session, validated)
            await PayrollRollupService(session).refresh_periods(
                [previous_period, (validated.month, validated.year)]
            )
            if previous_net != validated.net_amount:
                logger.info(
                    "Payroll %s net recomputed: %s -> %s",
                    payroll_id,
                    previous_net,
                    validated.net_amount,
                )
            return await self._load(session, payroll.id)

        payroll = await self.transactions.run(_update)
        logger.info("Updated payroll %s (status %s)", payroll.id, payroll.status)
        return payroll

    async def delete_payroll(self, payroll_id: int) -> bool:
        """Delete a payroll. Returns False if it was already gone."""

        async def _delete(session: AsyncSession) -> bool:
            payroll = await session.get(Payroll, payroll_id)
            if payroll is None:
                return False
            period = payroll.period
            await session.delete(payroll)
            await PayrollRollupService(session).refresh_period(*period)
            return True

        deleted = await self.transactions.run(_delete)
        if deleted:
            logger.info("Deleted payroll %s", payroll_id)
        else:
            logger.debug("Payroll %s already absent", payroll_id)
        return deleted

    async def process_monthly_payroll(
        self,
        month: int,
        year: int,
        acting_user_id: int | None = None,
        tax_rate: Decimal | str | None = None,
    ) -> MonthlyProcessingResult:
        """Create a pending payroll for every eligible employee in one unit of work.

        - gross = base salary, tax = gross * tax_rate, no other deductions or bonuses
        - employees that already have a payroll for the period are skipped
        - employees that are not active are skipped
        - any other validation failure rolls back the whole run and raises
          PayrollBatchError carrying the per-employee outcomes
        """
        PayrollValidator.check_period(month, year)
        rate = PayrollValidator.parse_amount("tax_rate", tax_rate, default=self.default_tax_rate)
        if not Decimal("0") <= rate <= Decimal("1"):
            raise InvalidAmountError("tax_rate", f"must be between 0 and 1, got {rate}")

        async def _process(session: AsyncSession) -> MonthlyProcessingResult:
            if acting_user_id is not None:
                await self._check_processor(session, acting_user_id)

            already_paid = await self._paid_employee_ids(session, month, year)
            employees = list(
                (await session.execute(select(Employee).order_by(Employee.id))).scalars()
            )

            now = self.clock()
            outcomes: list[EmployeeOutcome] = []

            for employee in employees:
                if employee.id in already_paid:
                    outcomes.append(
                        EmployeeOutcome(
                            employee.id,
                            EmployeeOutcome.SKIPPED,
                            DuplicatePeriodError.code,
                            f"Payroll for {month:02d}/{year} already exists",
                        )
                    )
                    continue

                draft = PayrollDraft(
                    employee_id=employee.id,
                    month=month,
                    year=year,
                    gross_amount=employee.base_salary,
                    tax_deductions=NetPayCalculator.tax_for_rate(employee.base_salary, rate),
                    status=PayrollStatus.PENDING.value,
                    details={"source": MONTHLY_PROCESSING_SOURCE, "tax_rate": str(rate)},
                    processed_by=acting_user_id,
                )
                try:
                    validated = PayrollValidator.validate(draft, employee, now)
                except InvalidReferenceError as exc:
                    outcomes.append(
                        EmployeeOutcome(employee.id, EmployeeOutcome.SKIPPED, exc.code, exc.message)
                    )
                    continue
                except ValidationError as exc:
                    outcomes.append(
                        EmployeeOutcome(employee.id, EmployeeOutcome.FAILED, exc.code, str(exc))
                    )
                    continue

                payroll = validated.apply_to(Payroll())
                session.add(payroll)
                await self._flush(session, validated)
                outcomes.append(
                    EmployeeOutcome(employee.id, EmployeeOutcome.CREATED, payroll_id=payroll.id)
                )

            if any(o.status == EmployeeOutcome.FAILED for o in outcomes):
                raise PayrollBatchError(month, year, outcomes)

            await PayrollRollupService(session).refresh_period(month, year)
            return MonthlyProcessingResult(month=month, year=year, outcomes=outcomes)

        result = await self.transactions.run(_process)
        logger.info(
            "Monthly payroll %02d/%d: %d created, %d skipped",
            month,
            year,
            len(result.created),
            len(result.skipped),
        )
        return result
