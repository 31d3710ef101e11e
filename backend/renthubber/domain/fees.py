from __future__ import annotations

from dataclasses import dataclass

from .money import pct_of

# Small rentals pay a reduced fixed fee
HUBBER_LOW_TIER_MAX_CENTS = 1000
RENTER_LOW_TIER_MAX_CENTS = 800
LOW_TIER_FIXED_FEE_CENTS = 50


@dataclass(frozen=True)
class FeeSchedule:
    renter_pct: float
    hubber_pct: float
    super_hubber_pct: float
    fixed_fee_cents: int


@dataclass(frozen=True)
class OverrideTerms:
    """The fee-relevant part of an active user_fee_overrides row."""
    fees_disabled: bool = False
    custom_renter_fee: float | None = None
    custom_hubber_fee: float | None = None


@dataclass(frozen=True)
class Rates:
    renter_pct: float
    hubber_pct: float
    renter_fixed: bool = True
    hubber_fixed: bool = True


@dataclass(frozen=True)
class PriceQuote:
    units: int
    unit_price_cents: int
    base_cents: int
    cleaning_fee_cents: int
    subtotal_cents: int

    renter_pct: float
    renter_variable_cents: int
    renter_fixed_cents: int
    hubber_pct: float
    hubber_variable_cents: int
    hubber_fixed_cents: int

    @property
    def renter_fee_cents(self) -> int:
        return self.renter_variable_cents + self.renter_fixed_cents

    @property
    def hubber_fee_cents(self) -> int:
        return self.hubber_variable_cents + self.hubber_fixed_cents

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.renter_fee_cents

    @property
    def hubber_net_cents(self) -> int:
        return self.subtotal_cents - self.hubber_fee_cents


def hubber_fixed_fee(subtotal_cents: int, fixed_fee_cents: int) -> int:
    return LOW_TIER_FIXED_FEE_CENTS if subtotal_cents <= HUBBER_LOW_TIER_MAX_CENTS else fixed_fee_cents


def renter_fixed_fee(subtotal_cents: int, fixed_fee_cents: int) -> int:
    return LOW_TIER_FIXED_FEE_CENTS if subtotal_cents <= RENTER_LOW_TIER_MAX_CENTS else fixed_fee_cents


def resolve_rates(
    schedule: FeeSchedule,
    *,
    is_super_hubber: bool = False,
    hubber_custom_pct: float | None = None,
    renter_override: OverrideTerms | None = None,
    hubber_override: OverrideTerms | None = None,
) -> Rates:
    """
    Effective commission rates for one booking.

    Hubber percentage precedence:
      override custom_hubber_fee > per-user custom percentage
      > super-hubber percentage > platform percentage.
    `fees_disabled` on an override zeroes that party's variable and fixed fee.
    """
    renter_pct = schedule.renter_pct
    renter_fixed = True
    if renter_override is not None:
        if renter_override.fees_disabled:
            renter_pct, renter_fixed = 0.0, False
        elif renter_override.custom_renter_fee is not None:
            renter_pct = float(renter_override.custom_renter_fee)

    if is_super_hubber:
        hubber_pct = schedule.super_hubber_pct
    else:
        hubber_pct = schedule.hubber_pct
    if hubber_custom_pct is not None:
        hubber_pct = float(hubber_custom_pct)

    hubber_fixed = True
    if hubber_override is not None:
        if hubber_override.fees_disabled:
            hubber_pct, hubber_fixed = 0.0, False
        elif hubber_override.custom_hubber_fee is not None:
            hubber_pct = float(hubber_override.custom_hubber_fee)

    return Rates(
        renter_pct=renter_pct,
        hubber_pct=hubber_pct,
        renter_fixed=renter_fixed,
        hubber_fixed=hubber_fixed,
    )


def quote(
    *,
    unit_price_cents: int,
    units: int,
    cleaning_fee_cents: int,
    rates: Rates,
    schedule: FeeSchedule,
) -> PriceQuote:
    base = unit_price_cents * units
    subtotal = base + cleaning_fee_cents

    return PriceQuote(
        units=units,
        unit_price_cents=unit_price_cents,
        base_cents=base,
        cleaning_fee_cents=cleaning_fee_cents,
        subtotal_cents=subtotal,
        renter_pct=rates.renter_pct,
        renter_variable_cents=pct_of(subtotal, rates.renter_pct),
        renter_fixed_cents=renter_fixed_fee(subtotal, schedule.fixed_fee_cents) if rates.renter_fixed else 0,
        hubber_pct=rates.hubber_pct,
        hubber_variable_cents=pct_of(subtotal, rates.hubber_pct),
        hubber_fixed_cents=hubber_fixed_fee(subtotal, schedule.fixed_fee_cents) if rates.hubber_fixed else 0,
    )
