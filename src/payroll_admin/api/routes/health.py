"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from payroll_admin.api.dependencies import AppDatabase

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(database: AppDatabase) -> HealthResponse:
    """Check API and database health."""
    db_status = "unhealthy"
    try:
        await database.ping()
        db_status = "healthy"
    except (SQLAlchemyError, OSError):
        logger.warning("Health check could not reach the database", exc_info=True)

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
    )
