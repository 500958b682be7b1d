"""User API endpoints. Password hashes are never returned."""

from typing import Annotated

from fastapi import APIRouter, Path, status

from payroll_admin.api.dependencies import Users
from payroll_admin.api.schemas import ErrorResponse, UserSummary
from payroll_admin.errors import NotFoundError
from payroll_admin.schemas import UserCreate

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserSummary])
async def list_users(users: Users) -> list[UserSummary]:
    records = await users.list_users()
    return [UserSummary.model_validate(u) for u in records]


@router.post(
    "",
    response_model=UserSummary,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_user(users: Users, payload: UserCreate) -> UserSummary:
    user = await users.create_user(payload)
    return UserSummary.model_validate(user)


@router.get(
    "/{user_id}",
    response_model=UserSummary,
    responses={404: {"model": ErrorResponse}},
)
async def get_user(users: Users, user_id: Annotated[int, Path()]) -> UserSummary:
    user = await users.get_user(user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return UserSummary.model_validate(user)
