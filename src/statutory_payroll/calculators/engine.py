"""Payroll calculator - main orchestrator."""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from decimal import Decimal, InvalidOperation
from typing import TypeVar

from statutory_payroll.calculators.contributions import ContributionEngine
from statutory_payroll.calculators.money import to_cents
from statutory_payroll.calculators.policies import (
    GrossPayPolicy,
    NonTaxableAllowancePolicy,
    TaxablePayPolicy,
)
from statutory_payroll.calculators.tax_bands import TaxBandEngine
from statutory_payroll.calculators.types import (
    DeductionBreakdown,
    PayrollBatchResult,
    RuleSet,
)
from statutory_payroll.errors import InvalidInputError
from statutory_payroll.rules.validation import validate_rule_set

K = TypeVar("K", bound=Hashable)

Amount = int | Decimal | str

# Four employee deductions, each rounded half up once.
ROUNDING_SLACK = 2


def _cap_in_order(gross: int, deductions: list[int]) -> list[int]:
    """Limit each deduction, in calculation order, to the pay still available.

    Only bites when per-component rounding overshoots gross by a cent or two
    on very small pay.
    """
    remaining = gross
    capped = []
    for amount in deductions:
        amount = min(amount, remaining)
        capped.append(amount)
        remaining -= amount
    return capped


def amount_to_cents(amount: Amount, name: str) -> int:
    """Normalize a non-negative money input to cents.

    ``int`` is taken as cents already; ``Decimal`` and ``str`` as major units.
    ``name`` labels the input in error messages.
    """
    if isinstance(amount, bool):
        raise InvalidInputError(f"{name} must be a number, got a boolean")
    if isinstance(amount, int):
        cents = amount
    else:
        try:
            cents = to_cents(amount)
        except (ValueError, TypeError, InvalidOperation) as exc:
            raise InvalidInputError(f"{name} is not a valid amount: {amount!r}") from exc
    if cents < 0:
        raise InvalidInputError(f"{name} must not be negative, got {amount}")
    return cents


def gross_to_cents(gross_pay: Amount) -> int:
    """Normalize a gross pay input to cents."""
    return amount_to_cents(gross_pay, "Gross pay")


class PayrollCalculator:
    """Statutory payroll calculator.

    Calculation order (fixed):
    1) Gross pay
    2) Taxable pay (injected policy)
    3) Gross PAYE via band walk
    4) Personal relief
    5) Net PAYE
    6) Flat levies (NHDF, SHA) on gross
    7) Tiered NSSF, employee and employer independently
    8) Total employee deductions
    9) Net pay
    10) Employer cost

    Pure: no I/O and no state between calls, so one instance may serve any
    number of concurrent computations.
    """

    def __init__(
        self,
        tax_engine: TaxBandEngine | None = None,
        contribution_engine: ContributionEngine | None = None,
    ):
        self.tax_engine = tax_engine or TaxBandEngine()
        self.contribution_engine = contribution_engine or ContributionEngine()

    def compute(
        self,
        gross_pay: Amount,
        rule_set: RuleSet,
        taxable_pay_policy: TaxablePayPolicy | None = None,
    ) -> DeductionBreakdown:
        """Compute the full deduction breakdown for one gross pay figure."""
        policy = taxable_pay_policy or GrossPayPolicy()

        gross = gross_to_cents(gross_pay)

        taxable = policy.taxable_pay(gross)
        if taxable < 0 or taxable > gross:
            raise InvalidInputError(
                f"Taxable pay policy returned {taxable}, outside [0, {gross}]"
            )

        paye = self.tax_engine.calculate(
            taxable, rule_set.paye_bands, rule_set.personal_relief
        )

        nhdf = self.contribution_engine.flat_levy(gross, rule_set.nhdf_rate)
        sha = self.contribution_engine.flat_levy(gross, rule_set.sha_rate)

        nssf_employee = self.contribution_engine.tiered_contribution(
            gross,
            rule_set.nssf_tier1_limit,
            rule_set.nssf_tier2_limit,
            rule_set.nssf_employee_rate,
            rule_set.employee_tier2_rate,
        )
        nssf_employer = self.contribution_engine.tiered_contribution(
            gross,
            rule_set.nssf_tier1_limit,
            rule_set.nssf_tier2_limit,
            rule_set.nssf_employer_rate,
            rule_set.employer_tier2_rate,
        )

        uncapped = paye.net_tax + nhdf.amount + sha.amount + nssf_employee.amount
        if uncapped - gross > ROUNDING_SLACK:
            # Validation caps the combined marginal rate at 100%; this guards
            # rule sets that bypassed it.
            raise InvalidInputError(
                f"Deductions {uncapped} exceed gross pay {gross} "
                f"under rule set version {rule_set.version}"
            )

        paye_net, nhdf_amount, sha_amount, nssf_amount = _cap_in_order(
            gross, [paye.net_tax, nhdf.amount, sha.amount, nssf_employee.amount]
        )
        total_deductions = paye_net + nssf_amount + nhdf_amount + sha_amount
        net = gross - total_deductions

        return DeductionBreakdown(
            gross_pay=gross,
            taxable_pay=taxable,
            paye_gross=paye.gross_tax,
            personal_relief_applied=paye.relief_applied,
            paye_net=paye_net,
            nssf_employee=nssf_amount,
            nssf_employer=nssf_employer.amount,
            nssf_pensionable_base=nssf_employee.pensionable_base,
            nhdf=nhdf_amount,
            sha=sha_amount,
            total_employee_deductions=total_deductions,
            net_pay=net,
            employer_cost=gross + nssf_employer.amount,
            rule_set_version=rule_set.version,
            rules_fingerprint=rule_set.fingerprint(),
        )

    def compute_batch(
        self,
        gross_pays: Mapping[K, Amount],
        rule_set: RuleSet,
        taxable_pay_policy: TaxablePayPolicy | None = None,
    ) -> PayrollBatchResult[K]:
        """Compute breakdowns for every entry of a pay period."""
        batch: PayrollBatchResult[K] = PayrollBatchResult(rule_set_version=rule_set.version)
        for key, gross_pay in gross_pays.items():
            batch.add(key, self.compute(gross_pay, rule_set, taxable_pay_policy))
        return batch

    def preview(
        self,
        gross_pay: Amount,
        rule_set: RuleSet,
        non_taxable_allowances: Amount = 0,
    ) -> DeductionBreakdown:
        """Compute against a draft rule set, validating it first."""
        validate_rule_set(rule_set)
        allowance = amount_to_cents(non_taxable_allowances, "Non-taxable allowances")
        policy: TaxablePayPolicy = (
            NonTaxableAllowancePolicy(allowance) if allowance else GrossPayPolicy()
        )
        return self.compute(gross_pay, rule_set, policy)
