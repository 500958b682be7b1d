"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_admin.api.routes import (
    dashboard_router,
    departments_router,
    employees_router,
    health_router,
    payrolls_router,
    users_router,
)
from payroll_admin.config import Settings, get_settings
from payroll_admin.database import Database
from payroll_admin.errors import (
    AggregationError,
    ConflictError,
    NotFoundError,
    TransactionFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    database: Database = app.state.database
    logger.info("Payroll admin starting on %s", database.dialect_name)
    yield
    if app.state.owns_database:
        await database.dispose()


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=exc.to_dict(),
        )

    @app.exception_handler(NotFoundError)
    async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"code": exc.code, "detail": str(exc)},
        )

    @app.exception_handler(ConflictError)
    async def conflict_exception_handler(request: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"code": exc.code, "detail": str(exc), "record": exc.record},
        )

    @app.exception_handler(TransactionFailure)
    async def transaction_exception_handler(
        request: Request, exc: TransactionFailure
    ) -> JSONResponse:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "code": exc.code,
                "detail": "The operation could not be completed, please retry",
            },
        )

    @app.exception_handler(AggregationError)
    async def aggregation_exception_handler(
        request: Request, exc: AggregationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"code": exc.code, "detail": "Dashboard data is unavailable"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    A database passed in is left open at shutdown; one built here from
    settings is disposed with the app.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Payroll Admin API",
        description="Employee, department and monthly payroll administration",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.owns_database = database is None
    app.state.database = database or Database.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(payrolls_router, prefix="/api/v1")
    app.include_router(employees_router, prefix="/api/v1")
    app.include_router(departments_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(dashboard_router, prefix="/api/v1")

    return app
