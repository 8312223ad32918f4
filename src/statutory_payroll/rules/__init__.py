"""Statutory rule sets: defaults, validation and versioned storage."""

from statutory_payroll.rules.defaults import (
    DEFAULT_PAYE_BANDS,
    default_parameters,
    default_rule_set,
    monthly_bands_from_annual,
)
from statutory_payroll.rules.delta import RuleSetDelta, TaxBandInput, parse_delta
from statutory_payroll.rules.store import RuleStore
from statutory_payroll.rules.validation import collect_rule_set_errors, validate_rule_set

__all__ = [
    "DEFAULT_PAYE_BANDS",
    "RuleSetDelta",
    "RuleStore",
    "TaxBandInput",
    "collect_rule_set_errors",
    "default_parameters",
    "default_rule_set",
    "monthly_bands_from_annual",
    "parse_delta",
    "validate_rule_set",
]
