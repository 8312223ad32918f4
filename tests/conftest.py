"""Pytest fixtures for statutory payroll tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from statutory_payroll.calculators import PayrollCalculator, RuleSet, TaxBand
from statutory_payroll.database import create_schema, create_session_factory, get_engine
from statutory_payroll.rules import RuleStore, default_rule_set

TEST_ORGANIZATION_ID = "org-test"


class SteppingClock:
    """Deterministic clock that advances one hour per reading."""

    def __init__(self, start: datetime, step: timedelta = timedelta(hours=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a per-test SQLite database on disk.

    A file database (rather than :memory:) gives every connection the same
    data, which concurrent store tests rely on.
    """
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'rules.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock(datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(session_factory, clock) -> RuleStore:
    """Rule store for the test organization."""
    return RuleStore(session_factory, TEST_ORGANIZATION_ID, clock=clock)


@pytest.fixture
def calculator() -> PayrollCalculator:
    return PayrollCalculator()


@pytest.fixture
def kenya_rules() -> RuleSet:
    """Default Kenya monthly rule set."""
    return default_rule_set()


@pytest.fixture
def flat_rules() -> RuleSet:
    """Simple rule set with round numbers for hand-checkable results."""
    return default_rule_set().replace(
        paye_bands=(
            TaxBand(Decimal("10000"), Decimal("0.10"), "First 10,000"),
            TaxBand(None, Decimal("0.20"), "Above 10,000"),
        ),
        personal_relief=Decimal("0"),
        nssf_employee_rate=Decimal("0.05"),
        nssf_employer_rate=Decimal("0.05"),
        nssf_tier1_limit=Decimal("1000"),
        nssf_tier2_limit=Decimal("5000"),
        nhdf_rate=Decimal("0.01"),
        sha_rate=Decimal("0.02"),
    )
