"""Minor-unit money helpers.

All engine arithmetic happens in integer cents. Rule parameters are held in
major units as entered by an administrator and converted here.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENTS_PER_UNIT = Decimal("100")
TWO_PLACES = Decimal("0.01")


def as_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce a numeric value to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean is not a monetary amount")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a numeric amount: {value!r}") from exc


def round_cents(value: Decimal) -> int:
    """Round a fractional cent amount to whole cents (half up)."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_cents(amount: Decimal | int | float | str) -> int:
    """Convert a major-unit amount to whole cents."""
    return round_cents(as_decimal(amount) * CENTS_PER_UNIT)


def exact_cents(amount: Decimal | int | float | str) -> Decimal:
    """Convert a major-unit amount to cents without rounding.

    Used for band bounds such as 32,333.3333 (an annual threshold divided by
    twelve), which must be honored exactly during the band walk.
    """
    return as_decimal(amount) * CENTS_PER_UNIT


def from_cents(cents: int) -> Decimal:
    """Convert whole cents to a two-place major-unit Decimal."""
    return (Decimal(cents) / CENTS_PER_UNIT).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
