"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from statutory_payroll.calculators.types import DeductionBreakdown, RuleSet
from statutory_payroll.rules.delta import RuleSetDelta


# ============================================================================
# Rule set schemas
# ============================================================================


class TaxBandResponse(BaseModel):
    """PAYE band as displayed to administrators."""

    upto_amount: Decimal | None
    rate: Decimal
    label: str
    is_unbounded: bool


class RuleSetResponse(BaseModel):
    """Schema for a rule set version."""

    version: int
    effective_from: datetime
    is_active: bool
    paye_bands: list[TaxBandResponse]
    personal_relief: Decimal
    nssf_employee_rate: Decimal
    nssf_employer_rate: Decimal
    nssf_employee_tier2_rate: Decimal | None = None
    nssf_employer_tier2_rate: Decimal | None = None
    nssf_tier1_limit: Decimal
    nssf_tier2_limit: Decimal
    nhdf_rate: Decimal
    sha_rate: Decimal
    notes: str | None = None
    updated_by: str | None = None
    updated_by_label: str | None = None
    updated_at: datetime | None = None
    fingerprint: str

    @classmethod
    def from_rule_set(cls, rule_set: RuleSet) -> RuleSetResponse:
        return cls(
            version=rule_set.version,
            effective_from=rule_set.effective_from,
            is_active=rule_set.is_active,
            paye_bands=[
                TaxBandResponse(
                    upto_amount=band.upto_amount,
                    rate=band.rate,
                    label=band.label,
                    is_unbounded=band.is_unbounded,
                )
                for band in rule_set.paye_bands
            ],
            personal_relief=rule_set.personal_relief,
            nssf_employee_rate=rule_set.nssf_employee_rate,
            nssf_employer_rate=rule_set.nssf_employer_rate,
            nssf_employee_tier2_rate=rule_set.nssf_employee_tier2_rate,
            nssf_employer_tier2_rate=rule_set.nssf_employer_tier2_rate,
            nssf_tier1_limit=rule_set.nssf_tier1_limit,
            nssf_tier2_limit=rule_set.nssf_tier2_limit,
            nhdf_rate=rule_set.nhdf_rate,
            sha_rate=rule_set.sha_rate,
            notes=rule_set.notes,
            updated_by=rule_set.updated_by,
            updated_by_label=rule_set.updated_by_label,
            updated_at=rule_set.updated_at,
            fingerprint=rule_set.fingerprint(),
        )


class RuleSetHistoryResponse(BaseModel):
    """Schema for listing rule set versions, newest first."""

    items: list[RuleSetResponse]
    total: int


class RuleUpdateRequest(BaseModel):
    """Schema for editing the current rule set."""

    expected_version: int | None = Field(
        default=None,
        description="Version the edit was based on; a mismatch returns 409",
    )
    changes: RuleSetDelta


class RevertRequest(BaseModel):
    """Schema for restoring the documented defaults."""

    expected_version: int | None = None


# ============================================================================
# Calculation schemas
# ============================================================================


class PreviewRequest(BaseModel):
    """Live preview of deductions, optionally against unsaved changes."""

    gross_pay: Decimal = Field(ge=0)
    non_taxable_allowances: Decimal = Field(default=Decimal("0"), ge=0)
    draft_changes: RuleSetDelta | None = None


class DeductionBreakdownResponse(BaseModel):
    """Deduction breakdown in major currency units."""

    currency: str
    gross_pay: Decimal
    taxable_pay: Decimal
    paye_gross: Decimal
    personal_relief_applied: Decimal
    paye_net: Decimal
    nssf_employee: Decimal
    nssf_employer: Decimal
    nssf_pensionable_base: Decimal
    nhdf: Decimal
    sha: Decimal
    total_employee_deductions: Decimal
    net_pay: Decimal
    employer_cost: Decimal
    rule_set_version: int
    rules_fingerprint: str
    is_draft: bool = False

    @classmethod
    def from_breakdown(
        cls, breakdown: DeductionBreakdown, currency: str, *, is_draft: bool = False
    ) -> DeductionBreakdownResponse:
        return cls(currency=currency, is_draft=is_draft, **breakdown.to_major())


# ============================================================================
# Errors
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str
    errors: list[str] = Field(default_factory=list)

