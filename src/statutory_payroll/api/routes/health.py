"""Health and readiness endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from statutory_payroll.api.dependencies import DbSession
from statutory_payroll.models import StatutoryRulePointer, StatutoryRuleSetRecord

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    rule_storage: str


class ReadinessResponse(BaseModel):
    status: str
    detail: str | None = None


async def _rule_tables_reachable(db: AsyncSession) -> bool:
    """True when both the pointer and version tables answer a query."""
    try:
        await db.execute(select(StatutoryRulePointer.organization_id).limit(1))
        await db.execute(select(StatutoryRuleSetRecord.version).limit(1))
    except SQLAlchemyError:
        logger.exception("Rule storage check failed")
        return False
    return True


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Report database connectivity and rule storage state."""
    db_status = "unhealthy"
    rules_status = "unavailable"
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError:
        logger.exception("Database health check failed")
    else:
        if await _rule_tables_reachable(db):
            rules_status = "available"

    return HealthResponse(
        status="healthy" if rules_status == "available" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        rule_storage=rules_status,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(db: DbSession, response: Response) -> ReadinessResponse:
    """Ready once the rule tables exist; 503 until migrations have run."""
    if await _rule_tables_reachable(db):
        return ReadinessResponse(status="ready")
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status="not_ready", detail="Rule storage is not available")
