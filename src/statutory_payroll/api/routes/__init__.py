"""API routes."""

from statutory_payroll.api.routes.health import router as health_router
from statutory_payroll.api.routes.rules import router as rules_router

__all__ = ["health_router", "rules_router"]
