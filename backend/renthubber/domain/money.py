from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def _half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_cents(eur: float | int | str | Decimal) -> int:
    return _half_up(Decimal(str(eur)) * 100)


def from_cents(cents: int | None) -> float:
    return float(Decimal(int(cents or 0)) / 100)


def pct_of(cents: int, pct: float) -> int:
    """`pct` percent of `cents`, rounded half-up to the cent."""
    return _half_up(Decimal(int(cents)) * Decimal(str(pct)) / 100)


def share_of(cents: int, part: int, whole: int) -> int:
    """`cents * part / whole` rounded half-up; 0 when `whole` is 0."""
    if whole <= 0:
        return 0
    return _half_up(Decimal(int(cents)) * Decimal(int(part)) / Decimal(int(whole)))


def fmt_eur(cents: int) -> str:
    return f"€{from_cents(cents):.2f}"
