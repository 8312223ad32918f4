"""Statutory payroll calculation."""

from statutory_payroll.calculators.contributions import ContributionEngine
from statutory_payroll.calculators.engine import PayrollCalculator
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
    TaxBand,
)

__all__ = [
    "ContributionEngine",
    "DeductionBreakdown",
    "GrossPayPolicy",
    "NonTaxableAllowancePolicy",
    "PayrollBatchResult",
    "PayrollCalculator",
    "RuleSet",
    "TaxBand",
    "TaxBandEngine",
    "TaxablePayPolicy",
]
