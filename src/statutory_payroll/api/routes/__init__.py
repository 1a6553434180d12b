"""API routes."""

from statutory_payroll.api.routes.health import router as health_router
from statutory_payroll.api.routes.payroll import router as payroll_router

__all__ = ["payroll_router", "health_router"]
