from __future__ import annotations

from dataclasses import dataclass

from .cancellation import split_refund
from .money import pct_of
from .types import RefundMethod


@dataclass(frozen=True)
class StoredPricing:
    """Pricing snapshot of an existing booking."""
    base_cents: int
    cleaning_fee_cents: int
    renter_pct: float
    renter_fixed_cents: int
    hubber_pct: float
    hubber_fixed_cents: int
    amount_total_cents: int
    wallet_used_cents: int


@dataclass(frozen=True)
class Repricing:
    new_base_cents: int
    new_renter_fee_cents: int
    new_hubber_fee_cents: int
    new_total_cents: int
    new_hubber_net_cents: int
    difference_cents: int

    # settlement of the difference
    refund_card_cents: int = 0
    refund_wallet_cents: int = 0
    charge_extra_cents: int = 0


def reprice(stored: StoredPricing, *, new_units: int, unit_price_cents: int) -> Repricing:
    """
    Recompute a booking for new dates.

    The fixed fees were paid once and never change; only the base price and
    the variable commissions follow the new number of units. A shorter
    booking refunds in proportion to how it was paid (wallet share back to
    the wallet, card share back to the card). A longer one owes the
    difference as a supplement.
    """
    old_subtotal = stored.base_cents + stored.cleaning_fee_cents
    new_base = unit_price_cents * new_units
    new_subtotal = new_base + stored.cleaning_fee_cents

    old_renter_var = pct_of(old_subtotal, stored.renter_pct)
    new_renter_var = pct_of(new_subtotal, stored.renter_pct)
    new_hubber_fee = pct_of(new_subtotal, stored.hubber_pct) + stored.hubber_fixed_cents

    difference = (new_base - stored.base_cents) + (new_renter_var - old_renter_var)
    new_total = new_subtotal + new_renter_var + stored.renter_fixed_cents

    refund_card = refund_wallet = charge = 0
    if difference < 0:
        split = split_refund(
            total_paid_cents=stored.amount_total_cents,
            wallet_used_cents=stored.wallet_used_cents,
            refund_cents=-difference,
            method=RefundMethod.card,
        )
        refund_card, refund_wallet = split.card_cents, split.wallet_cents
    elif difference > 0:
        charge = difference

    return Repricing(
        new_base_cents=new_base,
        new_renter_fee_cents=new_renter_var + stored.renter_fixed_cents,
        new_hubber_fee_cents=new_hubber_fee,
        new_total_cents=new_total,
        new_hubber_net_cents=new_subtotal - new_hubber_fee,
        difference_cents=difference,
        refund_card_cents=refund_card,
        refund_wallet_cents=refund_wallet,
        charge_extra_cents=charge,
    )
