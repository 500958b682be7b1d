"""HTTP API."""

from payroll_admin.api.app import create_app

__all__ = ["create_app"]
