#!/usr/bin/env python
"""Seed default statutory rules for one or more organizations.

Usage:
    python scripts/seed_rules.py ORG_ID [ORG_ID ...]
    python scripts/seed_rules.py --database-url sqlite+aiosqlite:///./dev.db ORG_ID

Creates the tables if needed and bootstraps the Kenya defaults as version 1
for every organization that has no rules yet. Existing rules are untouched.
"""

from __future__ import annotations

import argparse
import asyncio

from statutory_payroll.calculators.money import from_cents
from statutory_payroll.calculators import PayrollCalculator
from statutory_payroll.database import create_schema, create_session_factory, get_engine
from statutory_payroll.rules import RuleStore

SAMPLE_GROSS = "100000"


async def seed(database_url: str | None, organization_ids: list[str]) -> None:
    engine = get_engine(database_url)
    await create_schema(engine)
    factory = create_session_factory(engine)
    calculator = PayrollCalculator()

    try:
        for organization_id in organization_ids:
            store = RuleStore(factory, organization_id)
            rule_set = await store.get_current()
            sample = calculator.compute(SAMPLE_GROSS, rule_set)
            print(
                f"{organization_id}: rules v{rule_set.version} active "
                f"(sample gross {SAMPLE_GROSS} -> net {from_cents(sample.net_pay)})"
            )
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed default statutory rules")
    parser.add_argument("organization_ids", nargs="+", help="Organization IDs to seed")
    parser.add_argument("--database-url", help="Database URL (defaults to DATABASE_URL)")
    args = parser.parse_args()

    print("Seeding statutory rules...")
    asyncio.run(seed(args.database_url, args.organization_ids))
    print("\nDone! Statutory rules seeded successfully.")


if __name__ == "__main__":
    main()
