"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statutory_payroll.calculators import PayrollCalculator
from statutory_payroll.database import init_db
from statutory_payroll.rules import RuleStore


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the application session factory."""
    _, factory = init_db()
    return factory


SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


async def get_db_session(factory: SessionFactory) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_organization_id(
    x_organization_id: Annotated[str | None, Header()] = None,
) -> str:
    """Extract organization ID from header."""
    if not x_organization_id or not x_organization_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Organization-ID header is required",
        )
    return x_organization_id.strip()


async def get_editor_id(
    x_editor_id: Annotated[str | None, Header()] = None,
) -> str:
    """Extract the authenticated editor from header (set by the auth gateway)."""
    if not x_editor_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Editor-ID header is required for rule changes",
        )
    return x_editor_id


async def get_editor_label(
    x_editor_label: Annotated[str | None, Header()] = None,
) -> str | None:
    return x_editor_label


OrganizationId = Annotated[str, Depends(get_organization_id)]


def get_rule_store(factory: SessionFactory, organization_id: OrganizationId) -> RuleStore:
    """Rule store scoped to the requesting organization."""
    return RuleStore(factory, organization_id)


def get_calculator() -> PayrollCalculator:
    return PayrollCalculator()


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Store = Annotated[RuleStore, Depends(get_rule_store)]
Calculator = Annotated[PayrollCalculator, Depends(get_calculator)]
EditorId = Annotated[str, Depends(get_editor_id)]
EditorLabel = Annotated[str | None, Depends(get_editor_label)]
