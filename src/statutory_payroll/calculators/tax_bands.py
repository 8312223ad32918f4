"""Progressive income tax via cumulative band walk."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from statutory_payroll.calculators.money import exact_cents, round_cents, to_cents
from statutory_payroll.calculators.types import BandSlice, TaxBand, TaxResult


class TaxBandEngine:
    """Computes PAYE on taxable pay using progressive bands.

    Bands must already satisfy rule set validation: ascending upper bounds,
    a single unbounded band in last position. Each band taxes the slice of
    pay in ``(previous_bound, this_bound]``, so pay exactly on a bound stays
    in the lower band. Tax is accumulated unrounded and rounded once to whole
    cents. Relief is subtracted from the tax, never from taxable pay.
    """

    def calculate(
        self,
        taxable_pay: int,
        bands: Sequence[TaxBand],
        relief: Decimal = Decimal("0"),
    ) -> TaxResult:
        """Calculate gross tax, relief applied and net tax in cents."""
        gross_tax = self.gross_tax(taxable_pay, bands)
        relief_applied = min(to_cents(relief), gross_tax)
        return TaxResult(
            gross_tax=gross_tax,
            relief_applied=relief_applied,
            net_tax=gross_tax - relief_applied,
        )

    def gross_tax(self, taxable_pay: int, bands: Sequence[TaxBand]) -> int:
        """Tax before relief, in whole cents."""
        total = sum((s.tax for s in self.band_breakdown(taxable_pay, bands)), Decimal("0"))
        return round_cents(total)

    def band_breakdown(
        self, taxable_pay: int, bands: Sequence[TaxBand]
    ) -> list[BandSlice]:
        """Per-band slices of taxable pay with their unrounded tax."""
        if taxable_pay <= 0:
            return []

        slices: list[BandSlice] = []
        taxable = Decimal(taxable_pay)
        lower = Decimal("0")

        for band in bands:
            if taxable <= lower:
                break

            if band.is_unbounded:
                upper = taxable
            else:
                upper = min(taxable, exact_cents(band.upto_amount))

            in_band = upper - lower
            if in_band > 0:
                slices.append(
                    BandSlice(
                        label=band.label,
                        rate=band.rate,
                        taxed_amount=in_band,
                        tax=in_band * band.rate,
                    )
                )

            if band.is_unbounded:
                break
            lower = exact_cents(band.upto_amount)

        return slices

    def effective_rate(
        self,
        taxable_pay: int,
        bands: Sequence[TaxBand],
        relief: Decimal = Decimal("0"),
    ) -> Decimal:
        """Net tax as a fraction of taxable pay (0 for zero pay)."""
        if taxable_pay <= 0:
            return Decimal("0")
        result = self.calculate(taxable_pay, bands, relief)
        return Decimal(result.net_tax) / Decimal(taxable_pay)
