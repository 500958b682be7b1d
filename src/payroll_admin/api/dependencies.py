"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from payroll_admin.config import Settings
from payroll_admin.database import Database
from payroll_admin.services import (
    AggregationService,
    DepartmentService,
    EmployeeService,
    PayrollService,
    UserService,
)


def get_database(request: Request) -> Database:
    """Database built by the application factory."""
    return request.app.state.database


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


AppDatabase = Annotated[Database, Depends(get_database)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]


def get_payroll_service(database: AppDatabase, settings: AppSettings) -> PayrollService:
    return PayrollService(
        database.transactions(),
        default_tax_rate=settings.default_tax_rate,
        recent_limit=settings.recent_payrolls_limit,
    )


def get_employee_service(database: AppDatabase) -> EmployeeService:
    return EmployeeService(database.transactions())


def get_department_service(database: AppDatabase) -> DepartmentService:
    return DepartmentService(database.transactions())


def get_user_service(database: AppDatabase) -> UserService:
    return UserService(database.transactions())


def get_aggregation_service(database: AppDatabase, settings: AppSettings) -> AggregationService:
    return AggregationService(database.transactions(), use_rollup=settings.use_summary_rollup)


async def get_acting_user_id(
    x_user_id: Annotated[str | None, Header()] = None
) -> int | None:
    """Extract the acting user ID from header, if present."""
    if not x_user_id:
        return None
    try:
        return int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )


# Type aliases for cleaner dependency injection
Payrolls = Annotated[PayrollService, Depends(get_payroll_service)]
Employees = Annotated[EmployeeService, Depends(get_employee_service)]
Departments = Annotated[DepartmentService, Depends(get_department_service)]
Aggregations = Annotated[AggregationService, Depends(get_aggregation_service)]
Users = Annotated[UserService, Depends(get_user_service)]
ActingUserId = Annotated[int | None, Depends(get_acting_user_id)]
