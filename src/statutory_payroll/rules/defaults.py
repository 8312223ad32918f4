"""Documented Kenya statutory defaults (monthly)."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from statutory_payroll.calculators.types import RuleSet, TaxBand

MONTHS_PER_YEAR = Decimal("12")

DEFAULT_PAYE_BANDS: tuple[TaxBand, ...] = (
    TaxBand(Decimal("24000"), Decimal("0.10"), "First 24,000"),
    TaxBand(Decimal("32333.33"), Decimal("0.25"), "Next 8,333.33"),
    TaxBand(Decimal("500000"), Decimal("0.30"), "Next 467,666.67"),
    TaxBand(Decimal("800000"), Decimal("0.325"), "Next 300,000"),
    TaxBand(None, Decimal("0.35"), "Above 800,000"),
)

DEFAULT_NOTES = "Kenya statutory defaults"


def default_parameters() -> dict[str, Any]:
    """Editable parameters of the default rule set."""
    return {
        "paye_bands": DEFAULT_PAYE_BANDS,
        "personal_relief": Decimal("2400"),
        "nssf_employee_rate": Decimal("0.06"),
        "nssf_employer_rate": Decimal("0.06"),
        "nssf_employee_tier2_rate": None,
        "nssf_employer_tier2_rate": None,
        "nssf_tier1_limit": Decimal("6000"),
        "nssf_tier2_limit": Decimal("18000"),
        "nhdf_rate": Decimal("0.015"),
        "sha_rate": Decimal("0.0275"),
        "notes": DEFAULT_NOTES,
    }


def default_rule_set(
    version: int = 1,
    effective_from: datetime | None = None,
    updated_by: str | None = "system",
) -> RuleSet:
    """Build the default rule set."""
    effective_from = effective_from or datetime(2024, 1, 1, tzinfo=timezone.utc)
    return RuleSet(
        version=version,
        effective_from=effective_from,
        is_active=True,
        updated_by=updated_by,
        updated_at=effective_from,
        **default_parameters(),
    )


def monthly_bands_from_annual(
    annual_bands: Sequence[tuple[Decimal | None, Decimal, str]],
) -> tuple[TaxBand, ...]:
    """Convert annual statutory thresholds to monthly bands.

    Bounds are divided exactly, e.g. 388,000 / 12 stays 32,333.3333...
    rather than being rounded to the cent.
    """
    return tuple(
        TaxBand(
            upto_amount=(upto / MONTHS_PER_YEAR) if upto is not None else None,
            rate=rate,
            label=label,
        )
        for upto, rate, label in annual_bands
    )
