"""Department API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Response, status

from payroll_admin.api.dependencies import Departments
from payroll_admin.api.schemas import DepartmentResponse, ErrorResponse
from payroll_admin.errors import NotFoundError
from payroll_admin.schemas import DepartmentCreate, DepartmentPatch

router = APIRouter(prefix="/departments", tags=["departments"])


@router.get("", response_model=list[DepartmentResponse])
async def list_departments(departments: Departments) -> list[DepartmentResponse]:
    records = await departments.list_departments()
    return [DepartmentResponse.model_validate(d) for d in records]


@router.post(
    "",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_department(
    departments: Departments, payload: DepartmentCreate
) -> DepartmentResponse:
    department = await departments.create_department(payload)
    return DepartmentResponse.model_validate(department)


@router.get(
    "/{department_id}",
    response_model=DepartmentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_department(
    departments: Departments,
    department_id: Annotated[int, Path()],
) -> DepartmentResponse:
    department = await departments.get_department(department_id)
    if department is None:
        raise NotFoundError("Department", department_id)
    return DepartmentResponse.model_validate(department)


@router.patch(
    "/{department_id}",
    response_model=DepartmentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_department(
    departments: Departments,
    department_id: Annotated[int, Path()],
    payload: DepartmentPatch,
) -> DepartmentResponse:
    department = await departments.update_department(department_id, payload)
    return DepartmentResponse.model_validate(department)


@router.delete(
    "/{department_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_department(
    departments: Departments,
    department_id: Annotated[int, Path()],
) -> Response:
    """Delete a department no employee belongs to."""
    await departments.delete_department(department_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
