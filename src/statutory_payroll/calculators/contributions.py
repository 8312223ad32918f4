"""Tiered pension contributions and flat-rate levies."""

from __future__ import annotations

from decimal import Decimal

from statutory_payroll.calculators.money import round_cents, to_cents
from statutory_payroll.calculators.types import ContributionResult, LevyResult


class ContributionEngine:
    """Calculates NSSF-style tiered contributions and flat levies.

    Tiered contributions use the same formula for employee and employer
    sides; only the rates differ. Tier II may carry its own rate.
    """

    def tiered_contribution(
        self,
        gross_pay: int,
        tier1_limit: Decimal,
        tier2_limit: Decimal,
        tier1_rate: Decimal,
        tier2_rate: Decimal | None = None,
    ) -> ContributionResult:
        """Contribution on pay up to the tier II ceiling."""
        if gross_pay <= 0:
            return ContributionResult(
                amount=0, pensionable_base=0, tier1_portion=0, tier2_portion=0
            )

        if tier2_rate is None:
            tier2_rate = tier1_rate

        tier1_cap = to_cents(tier1_limit)
        tier2_cap = to_cents(tier2_limit)

        pensionable = min(gross_pay, tier2_cap)
        tier1_portion = min(pensionable, tier1_cap)
        tier2_portion = max(0, pensionable - tier1_cap)

        amount = round_cents(
            Decimal(tier1_portion) * tier1_rate + Decimal(tier2_portion) * tier2_rate
        )
        return ContributionResult(
            amount=amount,
            pensionable_base=pensionable,
            tier1_portion=tier1_portion,
            tier2_portion=tier2_portion,
        )

    def flat_levy(self, gross_pay: int, rate: Decimal) -> LevyResult:
        """Uncapped percentage of gross pay."""
        base = max(0, gross_pay)
        return LevyResult(amount=round_cents(Decimal(base) * rate), base=base)
