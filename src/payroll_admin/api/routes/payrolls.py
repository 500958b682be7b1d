"""Payroll API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Query, Response, status

from payroll_admin.api.dependencies import ActingUserId, Payrolls
from payroll_admin.api.schemas import (
    EmployeeOutcomeResponse,
    ErrorResponse,
    MonthlyProcessingRequest,
    MonthlyProcessingResponse,
    PayrollResponse,
)
from payroll_admin.errors import NotFoundError, ValidationError
from payroll_admin.schemas import PayrollCreate, PayrollPatch

router = APIRouter(prefix="/payrolls", tags=["payrolls"])


# ============================================================================
# Listing
# ============================================================================


@router.get("", response_model=list[PayrollResponse])
async def list_payrolls(
    payrolls: Payrolls,
    month: Annotated[int | None, Query()] = None,
    year: Annotated[int | None, Query()] = None,
) -> list[PayrollResponse]:
    """List payrolls, newest period first, optionally for one period.

    A period needs both month and year.
    """
    if (month is None) != (year is None):
        missing = "year" if year is None else "month"
        raise ValidationError(missing, "is required when filtering by period")
    if month is not None:
        records = await payrolls.list_payrolls_for_period(month, year)
    else:
        records = await payrolls.list_payrolls()
    return [PayrollResponse.model_validate(p) for p in records]


@router.get("/recent", response_model=list[PayrollResponse])
async def list_recent_payrolls(
    payrolls: Payrolls,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> list[PayrollResponse]:
    """Most recently created payrolls."""
    records = await payrolls.list_recent_payrolls(limit)
    return [PayrollResponse.model_validate(p) for p in records]


@router.get("/employee/{employee_id}", response_model=list[PayrollResponse])
async def list_employee_payrolls(
    payrolls: Payrolls,
    employee_id: Annotated[int, Path()],
) -> list[PayrollResponse]:
    records = await payrolls.list_payrolls_for_employee(employee_id)
    return [PayrollResponse.model_validate(p) for p in records]


# ============================================================================
# Monthly processing
# ============================================================================


@router.post(
    "/process",
    response_model=MonthlyProcessingResponse,
    responses={422: {"model": ErrorResponse}},
)
async def process_monthly_payroll(
    payrolls: Payrolls,
    acting_user_id: ActingUserId,
    payload: MonthlyProcessingRequest,
) -> MonthlyProcessingResponse:
    """Create pending payrolls for every eligible employee in one transaction."""
    result = await payrolls.process_monthly_payroll(
        payload.month,
        payload.year,
        acting_user_id=acting_user_id,
        tax_rate=payload.tax_rate,
    )
    return MonthlyProcessingResponse(
        month=result.month,
        year=result.year,
        created=len(result.created),
        skipped=len(result.skipped),
        outcomes=[EmployeeOutcomeResponse.model_validate(o) for o in result.outcomes],
    )


# ============================================================================
# Payroll CRUD
# ============================================================================


@router.post(
    "",
    response_model=PayrollResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_payroll(
    payrolls: Payrolls,
    acting_user_id: ActingUserId,
    payload: PayrollCreate,
) -> PayrollResponse:
    """Create a payroll; net amount is derived."""
    payroll = await payrolls.create_payroll(payload, acting_user_id=acting_user_id)
    return PayrollResponse.model_validate(payroll)


@router.get(
    "/{payroll_id}",
    response_model=PayrollResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll(
    payrolls: Payrolls,
    payroll_id: Annotated[int, Path()],
) -> PayrollResponse:
    payroll = await payrolls.get_payroll(payroll_id)
    if payroll is None:
        raise NotFoundError("Payroll", payroll_id)
    return PayrollResponse.model_validate(payroll)


@router.patch(
    "/{payroll_id}",
    response_model=PayrollResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_payroll(
    payrolls: Payrolls,
    acting_user_id: ActingUserId,
    payroll_id: Annotated[int, Path()],
    payload: PayrollPatch,
) -> PayrollResponse:
    """Partially update a payroll; net amount is re-derived."""
    payroll = await payrolls.update_payroll(payroll_id, payload, acting_user_id=acting_user_id)
    return PayrollResponse.model_validate(payroll)


@router.delete("/{payroll_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payroll(
    payrolls: Payrolls,
    payroll_id: Annotated[int, Path()],
) -> Response:
    """Delete a payroll. Deleting an absent payroll is not an error."""
    await payrolls.delete_payroll(payroll_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
