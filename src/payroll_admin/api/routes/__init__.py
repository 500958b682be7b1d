"""API routes."""

from payroll_admin.api.routes.dashboard import router as dashboard_router
from payroll_admin.api.routes.departments import router as departments_router
from payroll_admin.api.routes.employees import router as employees_router
from payroll_admin.api.routes.health import router as health_router
from payroll_admin.api.routes.payrolls import router as payrolls_router
from payroll_admin.api.routes.users import router as users_router

__all__ = [
    "dashboard_router",
    "departments_router",
    "employees_router",
    "health_router",
    "payrolls_router",
    "users_router",
]
