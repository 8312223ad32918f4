"""Tests for the versioned rule store.

Each test gets its own SQLite file so separate sessions see one database,
which lets concurrent writers genuinely race.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from statutory_payroll.calculators import TaxBand
from statutory_payroll.database import create_session_factory, get_engine
from statutory_payroll.errors import (
    ConcurrentModificationError,
    InvalidRuleSetError,
    RuleSetNotFoundError,
)
from statutory_payroll.models import StatutoryRulePointer, StatutoryRuleSetRecord
from statutory_payroll.rules import RuleStore, default_rule_set, monthly_bands_from_annual
from statutory_payroll.rules.store import REVERT_NOTES

pytestmark = pytest.mark.asyncio


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestBootstrap:
    """Test first-use creation of the defaults."""

    async def test_first_read_creates_defaults(self, store: RuleStore):
        """An organization with no rules gets the defaults as version 1."""
        current = await store.get_current()

        assert current.version == 1
        assert current.is_active
        assert current.updated_by == "system"
        assert current.effective_from == utc(2025, 1, 1, 9, 0)
        assert current.fingerprint() == default_rule_set().fingerprint()

    async def test_second_read_reuses_defaults(self, store: RuleStore):
        first = await store.get_current()
        second = await store.get_current()

        assert first == second
        assert len(await store.get_history()) == 1

    async def test_concurrent_first_reads_create_one_version(self, store: RuleStore):
        """Racing first reads agree on a single version 1."""
        results = await asyncio.gather(*(store.get_current() for _ in range(5)))

        assert {r.version for r in results} == {1}
        assert len({r.effective_from for r in results}) == 1
        assert len(await store.get_history()) == 1

    async def test_organizations_are_isolated(self, session_factory, store: RuleStore):
        await store.update("alice", None, {"personal_relief": "3000"})

        other = RuleStore(session_factory, "org-other")
        rules = await other.get_current()

        assert rules.version == 1
        assert rules.personal_relief == Decimal("2400")

    async def test_pointer_created_with_defaults(self, session_factory, store: RuleStore):
        await store.get_current()

        async with session_factory() as session:
            pointer = await session.get(StatutoryRulePointer, store.organization_id)
        assert pointer.current_version == 1

    async def test_missing_schema_raises_not_found(self, tmp_path):
        """A database without the rule tables surfaces as a not-found error."""
        engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        bare = RuleStore(create_session_factory(engine), "org-unmigrated")
        try:
            with pytest.raises(RuleSetNotFoundError) as exc_info:
                await bare.get_current()
        finally:
            await engine.dispose()

        assert exc_info.value.organization_id == "org-unmigrated"


class TestUpdate:
    """Test appending new versions."""

    async def test_update_creates_next_version(self, store: RuleStore):
        """An edit adds version N+1 and deactivates N."""
        await store.get_current()
        updated = await store.update(
            "alice", "Alice (Payroll)", {"personal_relief": "2500"}, expected_version=1
        )

        assert updated.version == 2
        assert updated.personal_relief == Decimal("2500")
        assert updated.updated_by == "alice"
        assert updated.effective_from == utc(2025, 1, 1, 10, 0)

        current = await store.get_current()
        previous = await store.get_version(1)
        assert current == updated
        assert not previous.is_active
        assert previous.personal_relief == Decimal("2400")

    async def test_unchanged_fields_carry_over(self, store: RuleStore):
        before = await store.get_current()
        after = await store.update("alice", None, {"sha_rate": "0.03"})

        assert after.paye_bands == before.paye_bands
        assert after.nssf_tier2_limit == before.nssf_tier2_limit
        assert after.notes == before.notes

    async def test_history_newest_first(self, store: RuleStore):
        await store.get_current()
        await store.update("alice", None, {"nhdf_rate": "0.02"})
        await store.update("bob", None, {"nhdf_rate": "0.015"})

        history = await store.get_history()

        assert [r.version for r in history] == [3, 2, 1]
        assert [r.is_active for r in history] == [True, False, False]
        assert [r.updated_by for r in history] == ["bob", "alice", "system"]

    async def test_record_stores_label_and_hash(self, session_factory, store: RuleStore):
        updated = await store.update("alice", "Alice (Payroll)", {"sha_rate": "0.03"})

        async with session_factory() as session:
            record = await session.get(
                StatutoryRuleSetRecord, (store.organization_id, updated.version)
            )
        assert record.updated_by_label == "Alice (Payroll)"
        assert record.logic_hash == updated.fingerprint()

    async def test_history_reports_editor_labels(self, store: RuleStore):
        await store.get_current()
        await store.update("alice", "Alice (Payroll)", {"nhdf_rate": "0.02"})
        await store.update("bob", None, {"nhdf_rate": "0.015"})

        history = await store.get_history()

        assert [r.updated_by_label for r in history] == [
            None,
            "Alice (Payroll)",
            "System defaults",
        ]

    async def test_label_does_not_change_fingerprint(self, store: RuleStore):
        current = await store.get_current()
        assert current.replace(updated_by_label="Someone").fingerprint() == current.fingerprint()

    async def test_fractional_bounds_round_trip(self, store: RuleStore):
        """Band bounds come back from storage with every digit intact."""
        bands = monthly_bands_from_annual(
            [
                (Decimal("288000"), Decimal("0.10"), "First"),
                (Decimal("388000"), Decimal("0.25"), "Second"),
                (None, Decimal("0.30"), "Top"),
            ]
        )
        payload = [
            {
                "upto_amount": None if b.is_unbounded else str(b.upto_amount),
                "rate": str(b.rate),
                "label": b.label,
            }
            for b in bands
        ]
        await store.update("alice", None, {"paye_bands": payload})

        current = await store.get_current()
        assert current.paye_bands == bands

    async def test_clear_tier2_rate(self, store: RuleStore):
        await store.update("alice", None, {"nssf_employee_tier2_rate": "0.05"})
        cleared = await store.update("alice", None, {"nssf_employee_tier2_rate": None})

        assert cleared.nssf_employee_tier2_rate is None
        assert cleared.employee_tier2_rate == cleared.nssf_employee_rate


class TestInvalidUpdate:
    """Test that invalid edits change nothing."""

    async def test_out_of_order_bands_rejected(self, store: RuleStore):
        await store.get_current()

        with pytest.raises(InvalidRuleSetError) as exc_info:
            await store.update(
                "alice",
                None,
                {
                    "paye_bands": [
                        {"upto_amount": "50000", "rate": "0.10"},
                        {"upto_amount": "20000", "rate": "0.25"},
                        {"upto_amount": None, "rate": "0.30"},
                    ]
                },
            )

        assert any("must exceed previous bound" in e for e in exc_info.value.errors)
        current = await store.get_current()
        assert current.version == 1
        assert len(await store.get_history()) == 1

    async def test_malformed_delta_rejected(self, store: RuleStore):
        with pytest.raises(InvalidRuleSetError):
            await store.update("alice", None, {"nssf_tier1_limit": "-5"})

        assert (await store.get_current()).version == 1

    async def test_inverted_tiers_rejected(self, store: RuleStore):
        with pytest.raises(InvalidRuleSetError, match="tier II limit"):
            await store.update("alice", None, {"nssf_tier1_limit": "20000"})

    async def test_rejection_logged(self, store: RuleStore, caplog):
        await store.get_current()
        with caplog.at_level(logging.WARNING, logger="statutory_payroll.rules.store"):
            with pytest.raises(InvalidRuleSetError):
                await store.update("alice", None, {"sha_rate": "0.9"})

        assert "Rejected invalid rule edit" in caplog.text


class TestConcurrency:
    """Test optimistic concurrency on edits."""

    async def test_stale_expected_version(self, store: RuleStore):
        await store.get_current()
        await store.update("alice", None, {"nhdf_rate": "0.02"}, expected_version=1)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            await store.update("bob", None, {"nhdf_rate": "0.01"}, expected_version=1)

        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert (await store.get_current()).nhdf_rate == Decimal("0.02")

    async def test_concurrent_edits_one_wins(self, store: RuleStore):
        """Two edits based on the same version: exactly one commits."""
        await store.get_current()

        results = await asyncio.gather(
            store.update("alice", None, {"nhdf_rate": "0.02"}, expected_version=1),
            store.update("bob", None, {"nhdf_rate": "0.01"}, expected_version=1),
            return_exceptions=True,
        )

        committed = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, ConcurrentModificationError)]
        assert len(committed) == 1
        assert len(conflicts) == 1

        history = await store.get_history()
        assert [r.version for r in history] == [2, 1]
        assert (await store.get_current()) == committed[0]

    async def test_pointer_guard_rejects_stale_write(self, store: RuleStore):
        """A write based on a superseded version fails at the database."""
        base = await store.get_current()
        await store.update("alice", None, {"nhdf_rate": "0.02"})

        stale = base.replace(
            version=base.version + 1,
            effective_from=utc(2025, 6, 1),
            personal_relief=Decimal("9999"),
        )
        with pytest.raises(ConcurrentModificationError) as exc_info:
            await store._write_version(base, stale)

        assert exc_info.value.actual_version == 2
        current = await store.get_current()
        assert current.version == 2
        assert current.personal_relief == Decimal("2400")

    async def test_one_active_version(self, session_factory, store: RuleStore):
        await store.get_current()
        for rate in ("0.02", "0.025", "0.03"):
            await store.update("alice", None, {"nhdf_rate": rate})

        async with session_factory() as session:
            result = await session.execute(
                select(StatutoryRuleSetRecord.version).where(
                    StatutoryRuleSetRecord.organization_id == store.organization_id,
                    StatutoryRuleSetRecord.is_active.is_(True),
                )
            )
            assert result.scalars().all() == [4]


class TestRevert:
    """Test restoring the documented defaults."""

    async def test_revert_appends_defaults(self, store: RuleStore):
        await store.update("alice", None, {"personal_relief": "3000", "sha_rate": "0.03"})
        reverted = await store.revert_to_defaults("bob", "Bob", expected_version=2)

        assert reverted.version == 3
        assert reverted.personal_relief == Decimal("2400")
        assert reverted.sha_rate == Decimal("0.0275")
        assert reverted.notes == REVERT_NOTES
        assert reverted.updated_by == "bob"
        assert reverted.fingerprint() == default_rule_set().fingerprint()

        # Earlier versions survive
        assert (await store.get_version(2)).personal_relief == Decimal("3000")

    async def test_revert_stale(self, store: RuleStore):
        await store.update("alice", None, {"personal_relief": "3000"})

        with pytest.raises(ConcurrentModificationError):
            await store.revert_to_defaults("bob", None, expected_version=1)


class TestLookup:
    """Test version and effective-date lookups."""

    @pytest.fixture
    def daily_store(self, store: RuleStore, clock) -> RuleStore:
        """Store whose clock advances one day per write."""
        clock.step = timedelta(days=1)
        return store

    async def _three_versions(self, store: RuleStore) -> None:
        await store.get_current()
        await store.update("alice", None, {"nhdf_rate": "0.02"})
        await store.update("alice", None, {"nhdf_rate": "0.025"})

    async def test_get_version_missing(self, store: RuleStore):
        await store.get_current()
        with pytest.raises(RuleSetNotFoundError, match="version 42 does not exist"):
            await store.get_version(42)

    async def test_effective_on_date_includes_whole_day(self, daily_store: RuleStore):
        """A version that started during the day counts for that day."""
        await self._three_versions(daily_store)

        rules = await daily_store.get_effective(date(2025, 1, 2))
        assert rules.version == 2

    async def test_effective_at_instant(self, daily_store: RuleStore):
        await self._three_versions(daily_store)

        before = await daily_store.get_effective(utc(2025, 1, 2, 8, 59))
        at = await daily_store.get_effective(utc(2025, 1, 2, 9, 0))

        assert before.version == 1
        assert at.version == 2

    async def test_effective_after_last_change(self, daily_store: RuleStore):
        await self._three_versions(daily_store)

        rules = await daily_store.get_effective(date(2026, 1, 1))
        assert rules.version == 3
        assert rules.nhdf_rate == Decimal("0.025")

    async def test_effective_before_first_version(self, daily_store: RuleStore):
        await self._three_versions(daily_store)

        with pytest.raises(RuleSetNotFoundError, match="no rule set in force"):
            await daily_store.get_effective(date(2024, 12, 31))

    async def test_historical_version_reproduces_result(
        self, daily_store: RuleStore, calculator
    ):
        """Recomputing with the rules in force then gives the original result."""
        original = calculator.compute(10_000_000, await daily_store.get_current())
        await daily_store.update("alice", None, {"personal_relief": "0"})

        historical = await daily_store.get_effective(date(2025, 1, 1))
        assert calculator.compute(10_000_000, historical) == original
