"""API routes."""

from nomina.api.routes.health import router as health_router
from nomina.api.routes.payroll import router as payroll_router

__all__ = ["health_router", "payroll_router"]
