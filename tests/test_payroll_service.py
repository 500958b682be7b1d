"""Tests for the payroll lifecycle service."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from payroll_admin.errors import (
    DuplicatePeriodError,
    InvalidAmountError,
    InvalidReferenceError,
    NotFoundError,
    OutOfRangeError,
    PayrollBatchError,
)
from payroll_admin.models import Payroll
from payroll_admin.schemas import PayrollCreate, PayrollPatch
from payroll_admin.services import PayrollRollupService, PayrollService
from payroll_admin.services.state_machine import InvalidTransitionError

from .conftest import FIXED_NOW, Seed, add_employee, count_rows

pytestmark = pytest.mark.asyncio


def payroll_input(employee_id: int, **overrides) -> PayrollCreate:
    fields = {
        "employee_id": employee_id,
        "month": 3,
        "year": 2025,
        "gross_amount": "5000.00",
        "tax_deductions": "750.00",
        "other_deductions": "0",
        "bonuses": "200.00",
    }
    fields.update(overrides)
    return PayrollCreate(**fields)


async def rollup_total(transactions, month: int, year: int):
    async with transactions.unit_of_work() as session:
        summary = await PayrollRollupService(session).get_period(month, year)
        if summary is None:
            return None
        return summary.total_net, summary.payroll_count


class TestCreatePayroll:
    """Test single payroll creation."""

    async def test_creates_pending_payroll_with_derived_net(
        self, payroll_service: PayrollService, seeded: Seed
    ):
        payroll = await payroll_service.create_payroll(payroll_input(seeded.alice_id))

        assert payroll.id is not None
        assert payroll.net_amount == Decimal("4450.00")
        assert payroll.status == "pending"
        assert payroll.processed_at is None
        assert payroll.employee.user.first_name == "Alice"
        assert payroll.employee.department.name == "IT"

    async def test_supplied_net_amount_is_ignored(
        self, payroll_service: PayrollService, seeded: Seed
    ):
        payroll = await payroll_service.create_payroll(
            payroll_input(seeded.alice_id, net_amount="1.00")
        )
        assert payroll.net_amount == Decimal("4450.00")

    async def test_acting_user_becomes_processor(
        self, payroll_service: PayrollService, seeded: Seed
    ):
        payroll = await payroll_service.create_payroll(
            payroll_input(seeded.alice_id), acting_user_id=seeded.admin_id
        )
        assert payroll.processed_by == seeded.admin_id

    async def test_unknown_processor(self, payroll_service: PayrollService, seeded: Seed):
        with pytest.raises(InvalidReferenceError) as exc_info:
            await payroll_service.create_payroll(payroll_input(seeded.alice_id, processed_by=999))
        assert exc_info.value.field == "processed_by"

    async def test_completed_on_create_stamps_processed_at(
        self, payroll_service: PayrollService, seeded: Seed
    ):
        payroll = await payroll_service.create_payroll(
            payroll_input(seeded.alice_id, status="completed")
        )
        assert payroll.processed_at == FIXED_NOW

    async def test_terminated_employee_is_rejected(
        self, payroll_service: PayrollService, transactions, seeded: Seed
    ):
        terminated_id = await add_employee(transactions, status="terminated")

        with pytest.raises(InvalidReferenceError):
            await payroll_service.create_payroll(payroll_input(terminated_id))
        assert await count_rows(transactions, Payroll) == 0

    async def test_inactive_employee_is_rejected(
        self, payroll_service: PayrollService, transactions, seeded: Seed
    ):
        with pytest.raises(InvalidReferenceError):
            await payroll_service.create_payroll(payroll_input(seeded.carol_id))
        assert await count_rows(transactions, Payroll) == 0

    async def test_month_out_of_range(self, payroll_service: PayrollService, seeded: Seed):
        with pytest.raises(OutOfRangeError) as exc_info:
            await payroll_service.create_payroll(payroll_input(seeded.alice_id, month=13))
        assert exc_info.value.field == "month"

    async def test_negative_gross(self, payroll_service: PayrollService, transactions, seeded: Seed):
        with pytest.raises(InvalidAmountError):
            await payroll_service.create_payroll(payroll_input(seeded.alice_id, gross_amount="-5"))
        assert await count_rows(transactions, Payroll) == 0

    async def test_duplicate_period(
        self, payroll_service: PayrollService, transactions, seeded: Seed
    ):
        await payroll_service.create_payroll(payroll_input(seeded.alice_id))

        with pytest.raises(DuplicatePeriodError) as exc_info:
            await payroll_service.create_payroll(payroll_input(seeded.alice_id, bonuses="0"))

        assert exc_info.value.code == "DuplicatePeriod"
        assert await count_rows(transactions, Payroll) == 1

    async def test_duplicate_caught_by_unique_constraint(
        self, payroll_service: PayrollService, transactions, seeded: Seed, monkeypatch
    ):
        """A writer that commits between the pre-check and the insert."""
        await payroll_service.create_payroll(payroll_input(seeded.alice_id))

        async def period_looks_free(session, employee_id, month, year, exclude_id=None):
            return None

        monkeypatch.setattr(PayrollService, "_ensure_period_free", staticmethod(period_looks_free))

        with pytest.raises(DuplicatePeriodError) as exc_info:
            await payroll_service.create_payroll(payroll_input(seeded.alice_id, bonuses="0"))

        assert exc_info.value.employee_id == seeded.alice_id
        assert await count_rows(transactions, Payroll) == 1
        assert await rollup_total(transactions, 3, 2025) == (Decimal("4450.00"), 1)

    @pytest.mark.parametrize("gross", ["1e30", "12345678901.00"])
    async def test_amount_too_large(
        self, payroll_service: PayrollService, transactions, seeded: Seed, gross
    ):
        with pytest.raises(InvalidAmountError) as exc_info:
            await payroll_service.create_payroll(payroll_input(seeded.alice_id, gross_amount=gross))

        assert exc_info.value.field == "gross_amount"
        assert await count_rows(transactions, Payroll) == 0

    async def test_rollup_recounts_rows_written_elsewhere(
        self, payroll_service: PayrollService, transactions, seeded: Seed
    ):
        await payroll_service.create_payroll(payroll_input(seeded.alice_id))
        async with transactions.unit_of_work() as session:
            session.add(
                Payroll(
                    employee_id=seeded.bob_id,
                    month=3,
                    year=2025,
                    gross_amount=Decimal("4000.00"),
                    tax_deductions=Decimal("0.00"),
                    other_deductions=Decimal("0.00"),
                    bonuses=Decimal("0.00"),
                    net_amount=Decimal("4000.00"),
                    status="pending",
                )
            )
        other = await add_employee(transactions)

        await payroll_service.create_payroll(
            payroll_input(other, tax_deductions="0", bonuses="0")
        )

        assert await rollup_total(transactions, 3, 2025) == (Decimal("13450.00"), 3)

    async def test_rollup_follows_creates(
        self, payroll_service: PayrollService, transactions, seeded: Seed
    ):
        await payroll_service.create_payroll(payroll_input(seeded.alice_id))
        await payroll_service.create_payroll(
            payroll_input(seeded.bob_id, gross_amount="4000.00", tax_deductions="400.00", bonuses="0")
        )

        assert await rollup_total(transactions, 3, 2025) == (Decimal("8050.00"), 2)


class TestUpdatePayroll:
    """Test partial updates."""

    async def test_patch_recomputes_net(self, payroll_service: PayrollService, seeded: Seed):
        created = await payroll_service.create_payroll(payroll_input(seeded.alice_id))

        updated = await payroll_service.update_payroll(
            created.id, PayrollPatch(bonuses="300.00", net_amount="0")
        )

        assert updated.bonuses == Decimal("300.00")
        assert updated.gross_amount == Decimal("5000.00")
        assert updated.tax_deductions == Decimal("750.00")
        assert updated.net_amount == Decimal("4550.00")

    async def test_not_found(self, payroll_service: PayrollService, seeded: Seed):
        with pytest.raises(NotFoundError):
            await payroll_service.update_payroll(999, PayrollPatch(bonuses="1"))

    async def test_patch_is_validated(self, payroll_service: PayrollService, seeded: Seed):
        created = await payroll_service.create_payroll(payroll_input(seeded.alice_id))

        with pytest.raises(InvalidAmountError):
            await payroll_service.update_payroll(created.id, PayrollPatch(gross_amount="-1"))

        stored = await payroll_service.get_payroll(created.id)
        assert stored.gross_amount == Decimal("5000.00")

    async def test_complete_sets_processed_fields(
        self, payroll_service: PayrollService, seeded: Seed
    ):
        created = await payroll_service.create_payroll(payroll_input(seeded.alice_id))

        updated = await payroll_service.update_payroll(
            created.id, PayrollPatch(status="completed"), acting_user_id=seeded.admin_id
        )

        assert updated.status == "completed"
        assert updated.processed_at == FIXED_NOW
        assert updated.processed_by == seeded.admin_id

    async def test_terminal_status_cannot_change(
        self, payroll_service: PayrollService, seeded: Seed
    ):
        created = await payroll_service.create_payroll(
            payroll_input(seeded.alice_id, status="completed")
        )

        with pytest.raises(InvalidTransitionError):
            await payroll_service.update_payroll(created.id, PayrollPatch(status="pending"))

        stored = await payroll_service.get_payroll(created.id)
        assert stored.status == "completed"

    async def test_move_to_taken_period(self, payroll_service: PayrollService, seeded: Seed):
        await payroll_service.create_payroll(payroll_input(seeded.alice_id, month=2))
        march = await payroll_service.create_payroll(payroll_input(seeded.alice_id, month=3))

        with pytest.raises(DuplicatePeriodError):
            await payroll_service.update_payroll(march.id, PayrollPatch(month=2))

    async def test_move_period_refreshes_both_rollups(
        self, payroll_service: PayrollService, transactions, seeded: Seed
    ):
        created = await payroll_service.create_payroll(payroll_input(seeded.alice_id, month=3))

        await payroll_service.update_payroll(created.id, PayrollPatch(month=4))

        assert await rollup_total(transactions, 3, 2025) is None
        assert await rollup_total(transactions, 4, 2025) == (Decimal("4450.00"), 1)


class TestDeletePayroll:
    async def test_delete_is_idempotent(
        self, payroll_service: PayrollService, transactions, seeded: Seed
    ):
        created = await payroll_service.create_payroll(payroll_input(seeded.alice_id))

        assert await payroll_service.delete_payroll(created.id) is True
        assert await payroll_service.delete_payroll(created.id) is False
        assert await payroll_service.get_payroll(created.id) is None
        assert await rollup_total(transactions, 3, 2025) is None


class TestMonthlyProcessing:
    """Test the all-or-nothing monthly run."""

    async def test_creates_for_active_and_skips_inactive(
        self, payroll_service: PayrollService, transactions, seeded: Seed
    ):
        result = await payroll_service.process_monthly_payroll(
            4, 2025, acting_user_id=seeded.admin_id, tax_rate=Decimal("0.10")
        )

        assert {o.employee_id for o in result.created} == {seeded.alice_id, seeded.bob_id}
        assert [(o.employee_id, o.reason) for o in result.skipped] == [
            (seeded.carol_id, "InvalidReference")
        ]
        assert result.failed == []

        payrolls = await payroll_service.list_payrolls_for_period(4, 2025)
        by_employee = {p.employee_id: p for p in payrolls}
        alice = by_employee[seeded.alice_id]
        assert alice.gross_amount == Decimal("6000.00")
        assert alice.tax_deductions == Decimal("600.00")
        assert alice.net_amount == Decimal("5400.00")
        assert alice.status == "pending"
        assert alice.processed_by == seeded.admin_id
        assert alice.details["source"] == "monthly_processing"
        assert {o.payroll_id for o in result.created} == {p.id for p in payrolls}

        assert await rollup_total(transactions, 4, 2025) == (Decimal("9000.00"), 2)

    async def test_rerun_skips_existing(
        self, payroll_service: PayrollService, transactions, seeded: Seed
    ):
        await payroll_service.process_monthly_payroll(4, 2025)
        result = await payroll_service.process_monthly_payroll(4, 2025)

        assert result.created == []
        reasons = {o.employee_id: o.reason for o in result.skipped}
        assert reasons == {
            seeded.alice_id: "DuplicatePeriod",
            seeded.bob_id: "DuplicatePeriod",
            seeded.carol_id: "InvalidReference",
        }
        assert await count_rows(transactions, Payroll) == 2

    async def test_existing_manual_payroll_is_kept(
        self, payroll_service: PayrollService, seeded: Seed
    ):
        manual = await payroll_service.create_payroll(payroll_input(seeded.alice_id, month=4))

        result = await payroll_service.process_monthly_payroll(4, 2025)

        assert [o.employee_id for o in result.created] == [seeded.bob_id]
        stored = await payroll_service.get_payroll(manual.id)
        assert stored.net_amount == Decimal("4450.00")

    async def test_failure_rolls_back_whole_batch(
        self, payroll_service: PayrollService, transactions, seeded: Seed
    ):
        unpaid_id = await add_employee(transactions, base_salary=Decimal("0"))

        with pytest.raises(PayrollBatchError) as exc_info:
            await payroll_service.process_monthly_payroll(4, 2025)

        error = exc_info.value
        failed = [o for o in error.outcomes if o.status == "failed"]
        assert [(o.employee_id, o.reason) for o in failed] == [(unpaid_id, "InvalidAmount")]
        assert error.to_dict()["code"] == "BatchValidationFailed"
        assert await count_rows(transactions, Payroll) == 0
        assert await rollup_total(transactions, 4, 2025) is None

    async def test_payroll_added_during_run_is_duplicate(
        self, payroll_service: PayrollService, transactions, seeded: Seed, monkeypatch
    ):
        """A payroll committed after the run read the period is reported, not a generic conflict."""
        await payroll_service.create_payroll(payroll_input(seeded.alice_id, month=4))

        async def nobody_paid(session, month, year):
            return set()

        monkeypatch.setattr(PayrollService, "_paid_employee_ids", staticmethod(nobody_paid))

        with pytest.raises(DuplicatePeriodError) as exc_info:
            await payroll_service.process_monthly_payroll(4, 2025)

        assert (exc_info.value.employee_id, exc_info.value.month) == (seeded.alice_id, 4)
        assert await count_rows(transactions, Payroll) == 1
        assert await rollup_total(transactions, 4, 2025) == (Decimal("4450.00"), 1)

    async def test_bad_period(self, payroll_service: PayrollService, seeded: Seed):
        with pytest.raises(OutOfRangeError):
            await payroll_service.process_monthly_payroll(13, 2025)

    async def test_bad_tax_rate(self, payroll_service: PayrollService, seeded: Seed):
        with pytest.raises(InvalidAmountError) as exc_info:
            await payroll_service.process_monthly_payroll(4, 2025, tax_rate="1.5")
        assert exc_info.value.field == "tax_rate"

    async def test_unknown_acting_user(self, payroll_service: PayrollService, seeded: Seed):
        with pytest.raises(InvalidReferenceError):
            await payroll_service.process_monthly_payroll(4, 2025, acting_user_id=999)


class TestPayrollReads:
    async def test_listing(self, payroll_service: PayrollService, seeded: Seed):
        await payroll_service.create_payroll(payroll_input(seeded.alice_id, month=1))
        await payroll_service.create_payroll(payroll_input(seeded.alice_id, month=2))
        await payroll_service.create_payroll(payroll_input(seeded.bob_id, month=2))

        all_payrolls = await payroll_service.list_payrolls()
        assert all_payrolls[0].month == 2
        assert len(all_payrolls) == 3

        alice = await payroll_service.list_payrolls_for_employee(seeded.alice_id)
        assert [p.month for p in alice] == [2, 1]

        february = await payroll_service.list_payrolls_for_period(2, 2025)
        assert {p.employee_id for p in february} == {seeded.alice_id, seeded.bob_id}

        recent = await payroll_service.list_recent_payrolls(limit=2)
        assert len(recent) == 2
        assert recent[0].employee.position == "Recruiter"


class RecordingSession:
    """Stands in for an AsyncSession; records executed statements."""

    def __init__(self, dialect_name: str):
        self.bind = SimpleNamespace(dialect=SimpleNamespace(name=dialect_name))
        self.statements = []

    async def execute(self, statement, params=None):
        self.statements.append((str(statement), params))


class TestPeriodLock:
    async def test_postgresql_takes_transaction_advisory_lock(self):
        session = RecordingSession("postgresql")

        await PayrollRollupService(session).lock_period(3, 2025)

        assert session.statements == [
            (
                "SELECT pg_advisory_xact_lock(hashtext(:period))",
                {"period": "payroll_period:2025-03"},
            )
        ]

    async def test_sqlite_needs_no_lock(self):
        session = RecordingSession("sqlite")

        await PayrollRollupService(session).lock_period(3, 2025)

        assert session.statements == []
