"""API routes."""

from indo_payroll.api.routes.bulk_operations import router as bulk_operations_router
from indo_payroll.api.routes.health import router as health_router
from indo_payroll.api.routes.periods import router as periods_router
from indo_payroll.api.routes.salary import router as salary_router

__all__ = ["bulk_operations_router", "health_router", "periods_router", "salary_router"]
