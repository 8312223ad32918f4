"""Rule set invariant checks."""

from __future__ import annotations

from decimal import Decimal

from statutory_payroll.calculators.types import RuleSet
from statutory_payroll.errors import InvalidRuleSetError

ZERO = Decimal("0")
ONE = Decimal("1")


def _check_rate(errors: list[str], name: str, rate: Decimal | None) -> None:
    if rate is None:
        return
    if rate < ZERO or rate > ONE:
        errors.append(f"{name} must be between 0 and 1, got {rate}")


def collect_band_errors(rule_set: RuleSet) -> list[str]:
    """Return every PAYE band problem found (empty if valid)."""
    errors: list[str] = []
    bands = rule_set.paye_bands

    if not bands:
        return ["PAYE bands must not be empty"]

    unbounded = [i for i, band in enumerate(bands) if band.is_unbounded]
    if len(unbounded) != 1:
        errors.append(
            f"Exactly one PAYE band must be unbounded, found {len(unbounded)}"
        )
    elif unbounded[0] != len(bands) - 1:
        errors.append("The unbounded PAYE band must be last")

    previous_upto: Decimal | None = None
    previous_rate: Decimal | None = None
    for idx, band in enumerate(bands, start=1):
        _check_rate(errors, f"PAYE band {idx} rate", band.rate)

        if not band.is_unbounded:
            if band.upto_amount <= ZERO:
                errors.append(f"PAYE band {idx} upper bound must be positive")
            if previous_upto is not None and band.upto_amount <= previous_upto:
                errors.append(
                    f"PAYE band {idx} upper bound {band.upto_amount} must exceed "
                    f"previous bound {previous_upto}"
                )
            previous_upto = band.upto_amount

        if previous_rate is not None and band.rate < previous_rate:
            errors.append(
                f"PAYE band {idx} rate {band.rate} is lower than previous rate {previous_rate}"
            )
        previous_rate = band.rate

    return errors


def collect_rule_set_errors(rule_set: RuleSet) -> list[str]:
    """Return every invariant violation in a rule set (empty if valid)."""
    errors = collect_band_errors(rule_set)

    if rule_set.personal_relief < ZERO:
        errors.append("Personal relief must not be negative")

    _check_rate(errors, "NSSF employee rate", rule_set.nssf_employee_rate)
    _check_rate(errors, "NSSF employer rate", rule_set.nssf_employer_rate)
    _check_rate(errors, "NSSF employee tier II rate", rule_set.nssf_employee_tier2_rate)
    _check_rate(errors, "NSSF employer tier II rate", rule_set.nssf_employer_tier2_rate)
    _check_rate(errors, "NHDF rate", rule_set.nhdf_rate)
    _check_rate(errors, "SHA rate", rule_set.sha_rate)

    if rule_set.nssf_tier1_limit <= ZERO:
        errors.append("NSSF tier I limit must be positive")
    if rule_set.nssf_tier1_limit >= rule_set.nssf_tier2_limit:
        errors.append(
            f"NSSF tier I limit {rule_set.nssf_tier1_limit} must be below "
            f"tier II limit {rule_set.nssf_tier2_limit}"
        )

    if not errors:
        top_paye_rate = rule_set.paye_bands[-1].rate
        top_nssf_rate = max(rule_set.nssf_employee_rate, rule_set.employee_tier2_rate)
        combined = top_paye_rate + top_nssf_rate + rule_set.nhdf_rate + rule_set.sha_rate
        if combined > ONE:
            errors.append(
                f"Combined marginal employee deduction rate {combined} exceeds 100%"
            )

    return errors


def validate_rule_set(rule_set: RuleSet) -> RuleSet:
    """Raise InvalidRuleSetError if the rule set violates any invariant."""
    errors = collect_rule_set_errors(rule_set)
    if errors:
        raise InvalidRuleSetError(errors)
    return rule_set
