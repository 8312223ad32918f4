"""Partial rule set edits submitted by an administrator."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from statutory_payroll.calculators.types import TaxBand
from statutory_payroll.errors import InvalidRuleSetError

# Fields that may be explicitly cleared by sending null.
NULLABLE_FIELDS = {"nssf_employee_tier2_rate", "nssf_employer_tier2_rate", "notes"}


class TaxBandInput(BaseModel):
    """PAYE band as submitted. A null upper bound means no upper limit."""

    model_config = ConfigDict(extra="forbid")

    upto_amount: Decimal | None = None
    rate: Decimal = Field(ge=0, le=1)
    label: str = ""

    def to_band(self) -> TaxBand:
        return TaxBand(upto_amount=self.upto_amount, rate=self.rate, label=self.label)


class RuleSetDelta(BaseModel):
    """Fields to change relative to the current rule set.

    Only fields actually present in the payload are applied.
    """

    model_config = ConfigDict(extra="forbid")

    paye_bands: list[TaxBandInput] | None = None
    personal_relief: Decimal | None = Field(default=None, ge=0)
    nssf_employee_rate: Decimal | None = Field(default=None, ge=0, le=1)
    nssf_employer_rate: Decimal | None = Field(default=None, ge=0, le=1)
    nssf_employee_tier2_rate: Decimal | None = Field(default=None, ge=0, le=1)
    nssf_employer_tier2_rate: Decimal | None = Field(default=None, ge=0, le=1)
    nssf_tier1_limit: Decimal | None = Field(default=None, gt=0)
    nssf_tier2_limit: Decimal | None = Field(default=None, gt=0)
    nhdf_rate: Decimal | None = Field(default=None, ge=0, le=1)
    sha_rate: Decimal | None = Field(default=None, ge=0, le=1)
    notes: str | None = None

    def changes(self) -> dict[str, Any]:
        """Map of RuleSet field name to new value."""
        errors: list[str] = []
        data: dict[str, Any] = {}
        for name in sorted(self.model_fields_set):
            value = getattr(self, name)
            if value is None and name not in NULLABLE_FIELDS:
                errors.append(f"{name} may not be cleared")
                continue
            if name == "paye_bands":
                value = tuple(band.to_band() for band in value)
            data[name] = value
        if errors:
            raise InvalidRuleSetError(errors)
        return data


def parse_delta(delta: RuleSetDelta | Mapping[str, Any]) -> dict[str, Any]:
    """Validate a delta and return the field changes it carries."""
    if not isinstance(delta, RuleSetDelta):
        try:
            delta = RuleSetDelta.model_validate(dict(delta))
        except ValidationError as exc:
            raise InvalidRuleSetError(
                [
                    f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                ]
            ) from exc
    return delta.changes()
