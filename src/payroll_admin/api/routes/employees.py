"""Employee API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Response, status

from payroll_admin.api.dependencies import Employees
from payroll_admin.api.schemas import EmployeeResponse, ErrorResponse
from payroll_admin.errors import NotFoundError
from payroll_admin.schemas import EmployeeCreate, EmployeePatch

router = APIRouter(prefix="/employees", tags=["employees"])


@router.get("", response_model=list[EmployeeResponse])
async def list_employees(employees: Employees) -> list[EmployeeResponse]:
    records = await employees.list_employees()
    return [EmployeeResponse.model_validate(e) for e in records]


@router.post(
    "",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_employee(employees: Employees, payload: EmployeeCreate) -> EmployeeResponse:
    """Create an employee, registering a new user when is_new_user is set."""
    employee = await employees.create_employee(payload)
    return EmployeeResponse.model_validate(employee)


@router.get(
    "/{employee_id}",
    response_model=EmployeeResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_employee(
    employees: Employees,
    employee_id: Annotated[int, Path()],
) -> EmployeeResponse:
    employee = await employees.get_employee(employee_id)
    if employee is None:
        raise NotFoundError("Employee", employee_id)
    return EmployeeResponse.model_validate(employee)


@router.patch(
    "/{employee_id}",
    response_model=EmployeeResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_employee(
    employees: Employees,
    employee_id: Annotated[int, Path()],
    payload: EmployeePatch,
) -> EmployeeResponse:
    employee = await employees.update_employee(employee_id, payload)
    return EmployeeResponse.model_validate(employee)


@router.delete(
    "/{employee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_employee(
    employees: Employees,
    employee_id: Annotated[int, Path()],
) -> Response:
    """Delete an employee together with its payrolls."""
    await employees.delete_employee(employee_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
