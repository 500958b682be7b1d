"""Dashboard API endpoints."""

from fastapi import APIRouter

from payroll_admin.api.dependencies import Aggregations
from payroll_admin.api.schemas import DashboardSummaryResponse, DepartmentShareResponse, ErrorResponse

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "/summary",
    response_model=DashboardSummaryResponse,
    responses={500: {"model": ErrorResponse}},
)
async def dashboard_summary(aggregations: Aggregations) -> DashboardSummaryResponse:
    """Headcount, current month payroll total, average salary and pending count."""
    summary = await aggregations.get_dashboard_summary()
    return DashboardSummaryResponse.model_validate(summary)


@router.get(
    "/departments",
    response_model=list[DepartmentShareResponse],
    responses={500: {"model": ErrorResponse}},
)
async def department_distribution(aggregations: Aggregations) -> list[DepartmentShareResponse]:
    shares = await aggregations.get_department_distribution()
    return [DepartmentShareResponse.model_validate(s) for s in shares]
