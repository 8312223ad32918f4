"""Type definitions for the statutory calculation pipeline."""

from __future__ import annotations

import dataclasses
import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, Hashable, TypeVar

from statutory_payroll.calculators.money import from_cents

K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True)
class TaxBand:
    """Progressive tax band: income up to ``upto_amount`` taxed at ``rate``."""

    upto_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.25 for 25%
    label: str = ""

    @property
    def is_unbounded(self) -> bool:
        return self.upto_amount is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "upto_amount": str(self.upto_amount) if self.upto_amount is not None else None,
            "rate": str(self.rate),
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaxBand:
        upto = data.get("upto_amount")
        return cls(
            upto_amount=Decimal(str(upto)) if upto is not None else None,
            rate=Decimal(str(data["rate"])),
            label=data.get("label") or "",
        )


@dataclass(frozen=True)
class RuleSet:
    """Immutable, versioned snapshot of statutory payroll parameters.

    Monetary parameters are major currency units. ``notes``, ``updated_by``,
    ``updated_by_label`` and ``updated_at`` are provenance only and never
    affect a calculation.
    """

    version: int
    effective_from: datetime
    paye_bands: tuple[TaxBand, ...]
    personal_relief: Decimal
    nssf_employee_rate: Decimal
    nssf_employer_rate: Decimal
    nssf_tier1_limit: Decimal
    nssf_tier2_limit: Decimal
    nhdf_rate: Decimal
    sha_rate: Decimal
    nssf_employee_tier2_rate: Decimal | None = None
    nssf_employer_tier2_rate: Decimal | None = None
    is_active: bool = True
    notes: str | None = None
    updated_by: str | None = None
    updated_at: datetime | None = None
    updated_by_label: str | None = None

    # Fields a delta may change; version, dates and activity belong to the store.
    EDITABLE_FIELDS = (
        "paye_bands",
        "personal_relief",
        "nssf_employee_rate",
        "nssf_employer_rate",
        "nssf_employee_tier2_rate",
        "nssf_employer_tier2_rate",
        "nssf_tier1_limit",
        "nssf_tier2_limit",
        "nhdf_rate",
        "sha_rate",
        "notes",
    )

    @property
    def employee_tier2_rate(self) -> Decimal:
        if self.nssf_employee_tier2_rate is None:
            return self.nssf_employee_rate
        return self.nssf_employee_tier2_rate

    @property
    def employer_tier2_rate(self) -> Decimal:
        if self.nssf_employer_tier2_rate is None:
            return self.nssf_employer_rate
        return self.nssf_employer_tier2_rate

    def replace(self, **changes: Any) -> RuleSet:
        """Return a copy with the given fields changed."""
        if "paye_bands" in changes:
            changes["paye_bands"] = tuple(changes["paye_bands"])
        return dataclasses.replace(self, **changes)

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return calculation parameters only, with deterministic ordering."""

        def opt(value: Decimal | None) -> str | None:
            return str(value) if value is not None else None

        return {
            "paye_bands": [band.to_dict() for band in self.paye_bands],
            "personal_relief": str(self.personal_relief),
            "nssf_employee_rate": str(self.nssf_employee_rate),
            "nssf_employer_rate": str(self.nssf_employer_rate),
            "nssf_employee_tier2_rate": opt(self.nssf_employee_tier2_rate),
            "nssf_employer_tier2_rate": opt(self.nssf_employer_tier2_rate),
            "nssf_tier1_limit": str(self.nssf_tier1_limit),
            "nssf_tier2_limit": str(self.nssf_tier2_limit),
            "nhdf_rate": str(self.nhdf_rate),
            "sha_rate": str(self.sha_rate),
        }

    def fingerprint(self) -> str:
        """Deterministic hash of the calculation parameters."""
        json_str = json.dumps(self.to_canonical_dict(), sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]


@dataclass(frozen=True)
class TaxResult:
    """Outcome of a band walk, in cents."""

    gross_tax: int
    relief_applied: int
    net_tax: int


@dataclass(frozen=True)
class BandSlice:
    """Portion of taxable pay that fell inside one band (display only)."""

    label: str
    rate: Decimal
    taxed_amount: Decimal  # cents, may be fractional at an exact bound
    tax: Decimal  # cents, unrounded


@dataclass(frozen=True)
class ContributionResult:
    """Tiered pension contribution, in cents."""

    amount: int
    pensionable_base: int
    tier1_portion: int
    tier2_portion: int


@dataclass(frozen=True)
class LevyResult:
    """Flat-rate levy, in cents."""

    amount: int
    base: int


@dataclass(frozen=True)
class DeductionBreakdown:
    """Full statutory breakdown for one pay event. All amounts in cents."""

    gross_pay: int
    taxable_pay: int
    paye_gross: int
    personal_relief_applied: int
    paye_net: int
    nssf_employee: int
    nssf_employer: int
    nssf_pensionable_base: int
    nhdf: int
    sha: int
    total_employee_deductions: int
    net_pay: int
    employer_cost: int
    rule_set_version: int
    rules_fingerprint: str

    MONEY_FIELDS = (
        "gross_pay",
        "taxable_pay",
        "paye_gross",
        "personal_relief_applied",
        "paye_net",
        "nssf_employee",
        "nssf_employer",
        "nssf_pensionable_base",
        "nhdf",
        "sha",
        "total_employee_deductions",
        "net_pay",
        "employer_cost",
    )

    def to_major(self) -> dict[str, Any]:
        """Presentation mapping in major units."""
        data: dict[str, Any] = {name: from_cents(getattr(self, name)) for name in self.MONEY_FIELDS}
        data["rule_set_version"] = self.rule_set_version
        data["rules_fingerprint"] = self.rules_fingerprint
        return data


@dataclass
class PayrollBatchResult(Generic[K]):
    """Breakdowns for a whole period, keyed by the caller's identifiers."""

    rule_set_version: int
    results: dict[K, DeductionBreakdown] = field(default_factory=dict)
    total_gross: int = 0
    total_net: int = 0
    total_paye: int = 0
    total_employer_cost: int = 0

    def add(self, key: K, breakdown: DeductionBreakdown) -> None:
        self.results[key] = breakdown
        self.total_gross += breakdown.gross_pay
        self.total_net += breakdown.net_pay
        self.total_paye += breakdown.paye_net
        self.total_employer_cost += breakdown.employer_cost
