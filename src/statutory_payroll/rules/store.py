"""Versioned, append-only statutory rule store."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statutory_payroll.calculators.types import RuleSet, TaxBand
from statutory_payroll.errors import (
    ConcurrentModificationError,
    InvalidRuleSetError,
    RuleSetNotFoundError,
)
from statutory_payroll.models import StatutoryRulePointer, StatutoryRuleSetRecord
from statutory_payroll.rules.defaults import default_parameters, default_rule_set
from statutory_payroll.rules.delta import RuleSetDelta, parse_delta
from statutory_payroll.rules.validation import collect_rule_set_errors

logger = logging.getLogger(__name__)

SYSTEM_EDITOR = "system"
SYSTEM_EDITOR_LABEL = "System defaults"
REVERT_NOTES = "Reverted to Kenya statutory defaults"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RuleStore:
    """Single source of truth for an organization's statutory rule sets.

    Storage layout:
    - statutory_rule_set: one immutable row per (organization_id, version)
    - statutory_rule_pointer: the current version per organization

    Every edit is one transaction that moves the pointer from version N to
    N+1 with a compare-and-set, deactivates N and inserts N+1. If the
    pointer is no longer at N the transaction is rolled back and
    ConcurrentModificationError is raised; the caller reloads and retries.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        organization_id: str,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.session_factory = session_factory
        self.organization_id = organization_id
        self._clock = clock

    def _now(self) -> datetime:
        return _to_utc(self._clock())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_current(self) -> RuleSet:
        """Return the active rule set, creating the defaults on first use."""
        try:
            async with self.session_factory() as session:
                record = await self._load_active(session)
        except SQLAlchemyError as exc:
            raise RuleSetNotFoundError(self.organization_id, str(exc)) from exc
        if record is not None:
            return _to_rule_set(record)
        return await self._bootstrap()

    async def get_history(self) -> list[RuleSet]:
        """All versions, newest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(StatutoryRuleSetRecord)
                .where(StatutoryRuleSetRecord.organization_id == self.organization_id)
                .order_by(StatutoryRuleSetRecord.version.desc())
            )
            return [_to_rule_set(record) for record in result.scalars().all()]

    async def get_version(self, version: int) -> RuleSet:
        """Return one specific version."""
        async with self.session_factory() as session:
            record = await session.get(
                StatutoryRuleSetRecord, (self.organization_id, version)
            )
        if record is None:
            raise RuleSetNotFoundError(self.organization_id, f"version {version} does not exist")
        return _to_rule_set(record)

    async def get_effective(self, as_of: date | datetime) -> RuleSet:
        """Return the rule set in force at a given instant or on a given day.

        For a date, any version that took effect during that day counts.
        Used to recompute historical payroll periods.
        """
        if isinstance(as_of, datetime):
            cutoff = _to_utc(as_of)
            condition = StatutoryRuleSetRecord.effective_from <= cutoff
        else:
            cutoff = datetime.combine(as_of + timedelta(days=1), time.min, tzinfo=timezone.utc)
            condition = StatutoryRuleSetRecord.effective_from < cutoff

        async with self.session_factory() as session:
            result = await session.execute(
                select(StatutoryRuleSetRecord)
                .where(
                    StatutoryRuleSetRecord.organization_id == self.organization_id,
                    condition,
                )
                .order_by(
                    StatutoryRuleSetRecord.effective_from.desc(),
                    StatutoryRuleSetRecord.version.desc(),
                )
                .limit(1)
            )
            record = result.scalar_one_or_none()

        if record is None:
            raise RuleSetNotFoundError(self.organization_id, f"no rule set in force on {as_of}")
        return _to_rule_set(record)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update(
        self,
        editor_id: str,
        editor_label: str | None,
        delta: RuleSetDelta | Mapping[str, Any],
        expected_version: int | None = None,
    ) -> RuleSet:
        """Create a new active version from the current one plus a delta.

        Raises:
            InvalidRuleSetError: If the merged rule set violates an invariant
            ConcurrentModificationError: If the current version is not
                ``expected_version`` or moved during the write
        """
        changes = parse_delta(delta)
        return await self._transition(editor_id, editor_label, changes, expected_version)

    async def revert_to_defaults(
        self,
        editor_id: str,
        editor_label: str | None,
        expected_version: int | None = None,
    ) -> RuleSet:
        """Create a new active version carrying the documented defaults."""
        changes = default_parameters()
        changes["notes"] = REVERT_NOTES
        return await self._transition(editor_id, editor_label, changes, expected_version)

    async def _transition(
        self,
        editor_id: str,
        editor_label: str | None,
        changes: dict[str, Any],
        expected_version: int | None,
    ) -> RuleSet:
        current = await self.get_current()

        if expected_version is not None and expected_version != current.version:
            logger.warning(
                "Rejected stale rule edit for %s by %s: based on v%s, current is v%s",
                self.organization_id,
                editor_id,
                expected_version,
                current.version,
            )
            raise ConcurrentModificationError(
                self.organization_id, expected_version, current.version
            )

        now = self._now()
        candidate = current.replace(
            version=current.version + 1,
            effective_from=now,
            is_active=True,
            updated_by=editor_id,
            updated_by_label=editor_label,
            updated_at=now,
            **changes,
        )

        errors = collect_rule_set_errors(candidate)
        if errors:
            logger.warning(
                "Rejected invalid rule edit for %s by %s: %s",
                self.organization_id,
                editor_id,
                "; ".join(errors),
            )
            raise InvalidRuleSetError(errors)

        await self._write_version(current, candidate)
        logger.info(
            "Statutory rules for %s moved v%s -> v%s by %s",
            self.organization_id,
            current.version,
            candidate.version,
            editor_id,
        )
        return candidate

    async def _write_version(
        self,
        base: RuleSet,
        candidate: RuleSet,
    ) -> None:
        """Atomically move the pointer from ``base`` to ``candidate``."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    moved = await session.execute(
                        update(StatutoryRulePointer)
                        .where(
                            StatutoryRulePointer.organization_id == self.organization_id,
                            StatutoryRulePointer.current_version == base.version,
                        )
                        .values(
                            current_version=candidate.version,
                            updated_at=candidate.effective_from,
                        )
                    )
                    if moved.rowcount != 1:
                        actual = await session.scalar(
                            select(StatutoryRulePointer.current_version).where(
                                StatutoryRulePointer.organization_id == self.organization_id
                            )
                        )
                        logger.warning(
                            "Concurrent rule edit for %s: expected v%s, pointer at v%s",
                            self.organization_id,
                            base.version,
                            actual,
                        )
                        raise ConcurrentModificationError(
                            self.organization_id, base.version, actual
                        )

                    await session.execute(
                        update(StatutoryRuleSetRecord)
                        .where(
                            StatutoryRuleSetRecord.organization_id == self.organization_id,
                            StatutoryRuleSetRecord.version == base.version,
                        )
                        .values(is_active=False)
                    )
                    session.add(_to_record(self.organization_id, candidate))
        except IntegrityError as exc:
            raise ConcurrentModificationError(
                self.organization_id, base.version, None
            ) from exc

    async def _bootstrap(self) -> RuleSet:
        """Persist the defaults as version 1.

        Concurrent callers collide on the primary keys; the losers read the
        winner's row instead of creating a second version 1.
        """
        now = self._now()
        defaults = default_rule_set(
            version=1, effective_from=now, updated_by=SYSTEM_EDITOR
        ).replace(updated_by_label=SYSTEM_EDITOR_LABEL)

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    session.add(_to_record(self.organization_id, defaults))
                    session.add(
                        StatutoryRulePointer(
                            organization_id=self.organization_id,
                            current_version=1,
                            updated_at=now,
                        )
                    )
            logger.info("Created default statutory rules for %s", self.organization_id)
        except IntegrityError:
            logger.info(
                "Default statutory rules for %s were created concurrently",
                self.organization_id,
            )
        except SQLAlchemyError as exc:
            raise RuleSetNotFoundError(self.organization_id, str(exc)) from exc

        try:
            async with self.session_factory() as session:
                record = await self._load_active(session)
        except SQLAlchemyError as exc:
            raise RuleSetNotFoundError(self.organization_id, str(exc)) from exc

        if record is None:
            raise RuleSetNotFoundError(
                self.organization_id, "bootstrap did not produce an active version"
            )
        return _to_rule_set(record)

    async def _load_active(self, session: AsyncSession) -> StatutoryRuleSetRecord | None:
        result = await session.execute(
            select(StatutoryRuleSetRecord).where(
                StatutoryRuleSetRecord.organization_id == self.organization_id,
                StatutoryRuleSetRecord.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()


def _to_record(organization_id: str, rule_set: RuleSet) -> StatutoryRuleSetRecord:
    return StatutoryRuleSetRecord(
        organization_id=organization_id,
        version=rule_set.version,
        effective_from=_to_utc(rule_set.effective_from),
        is_active=rule_set.is_active,
        payload_json=rule_set.to_canonical_dict(),
        logic_hash=rule_set.fingerprint(),
        notes=rule_set.notes,
        updated_by=rule_set.updated_by,
        updated_by_label=rule_set.updated_by_label,
    )


def _to_rule_set(record: StatutoryRuleSetRecord) -> RuleSet:
    payload = record.payload_json

    def dec(key: str) -> Decimal:
        return Decimal(str(payload[key]))

    def opt_dec(key: str) -> Decimal | None:
        value = payload.get(key)
        return Decimal(str(value)) if value is not None else None

    effective_from = _to_utc(record.effective_from)
    return RuleSet(
        version=record.version,
        effective_from=effective_from,
        is_active=record.is_active,
        paye_bands=tuple(TaxBand.from_dict(b) for b in payload["paye_bands"]),
        personal_relief=dec("personal_relief"),
        nssf_employee_rate=dec("nssf_employee_rate"),
        nssf_employer_rate=dec("nssf_employer_rate"),
        nssf_employee_tier2_rate=opt_dec("nssf_employee_tier2_rate"),
        nssf_employer_tier2_rate=opt_dec("nssf_employer_tier2_rate"),
        nssf_tier1_limit=dec("nssf_tier1_limit"),
        nssf_tier2_limit=dec("nssf_tier2_limit"),
        nhdf_rate=dec("nhdf_rate"),
        sha_rate=dec("sha_rate"),
        notes=record.notes,
        updated_by=record.updated_by,
        updated_by_label=record.updated_by_label,
        updated_at=effective_from,
    )
