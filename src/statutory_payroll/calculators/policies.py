"""Taxable pay policies.

Which allowances are non-taxable is decided by the payroll-period workflow,
so the calculator takes the decision as an injected policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from statutory_payroll.calculators.money import to_cents


class TaxablePayPolicy(Protocol):
    """Maps gross pay (cents) to taxable pay (cents)."""

    def taxable_pay(self, gross_pay: int) -> int: ...


@dataclass(frozen=True)
class GrossPayPolicy:
    """Taxable pay equals gross pay."""

    def taxable_pay(self, gross_pay: int) -> int:
        return gross_pay


@dataclass(frozen=True)
class NonTaxableAllowancePolicy:
    """Taxable pay is gross minus a fixed non-taxable allowance, floored at zero."""

    allowance: int  # cents

    @classmethod
    def from_major(cls, amount: Decimal | int | str) -> NonTaxableAllowancePolicy:
        return cls(allowance=to_cents(amount))

    def taxable_pay(self, gross_pay: int) -> int:
        return max(0, gross_pay - self.allowance)
