from __future__ import annotations

from dataclasses import dataclass

from .money import share_of
from .types import CancellationPolicy, RefundMethod


@dataclass(frozen=True)
class PolicyRule:
    min_hours_before: float
    refund_percentage: int
    label: str


# (hours before start required, refund % when met)
POLICY_RULES: dict[CancellationPolicy, PolicyRule] = {
    CancellationPolicy.flexible: PolicyRule(24, 100, "flexible"),
    CancellationPolicy.moderate: PolicyRule(5 * 24, 100, "moderate"),
    CancellationPolicy.strict: PolicyRule(7 * 24, 50, "strict"),
}

_NO_REFUND_WINDOWS = {
    CancellationPolicy.flexible: "less than 24h before start",
    CancellationPolicy.moderate: "less than 5 days before start",
    CancellationPolicy.strict: "less than 7 days before start",
}


@dataclass(frozen=True)
class RefundDecision:
    policy: CancellationPolicy
    percentage: int
    message: str


@dataclass(frozen=True)
class RefundSplit:
    wallet_cents: int
    card_cents: int

    @property
    def total_cents(self) -> int:
        return self.wallet_cents + self.card_cents


def coerce_policy(raw: str | CancellationPolicy | None) -> CancellationPolicy:
    """Unknown or missing policies behave as flexible."""
    if isinstance(raw, CancellationPolicy):
        return raw
    try:
        return CancellationPolicy(raw or CancellationPolicy.flexible.value)
    except ValueError:
        return CancellationPolicy.flexible


def refund_for_renter_cancellation(
    policy: str | CancellationPolicy | None,
    hours_until_start: float,
) -> RefundDecision:
    p = coerce_policy(policy)
    rule = POLICY_RULES[p]

    if hours_until_start >= rule.min_hours_before:
        if rule.refund_percentage == 100:
            msg = f"Full refund ({rule.label} policy)"
        else:
            msg = f"{rule.refund_percentage}% refund ({rule.label} policy)"
        return RefundDecision(policy=p, percentage=rule.refund_percentage, message=msg)

    return RefundDecision(policy=p, percentage=0, message=f"No refund ({_NO_REFUND_WINDOWS[p]})")


def split_refund(
    *,
    total_paid_cents: int,
    wallet_used_cents: int,
    refund_cents: int,
    method: RefundMethod,
) -> RefundSplit:
    """
    Route a refund to wallet and/or card.

    - wallet: everything goes to the wallet.
    - card: the share paid by wallet goes back to the wallet, the share paid
      by card goes back to the card (each capped at what was paid that way).
    Rounding residue lands on the card so both parts add up to `refund_cents`.
    """
    if refund_cents <= 0:
        return RefundSplit(0, 0)

    if method == RefundMethod.wallet or total_paid_cents <= 0:
        return RefundSplit(wallet_cents=refund_cents, card_cents=0)

    wallet_used = max(min(wallet_used_cents, total_paid_cents), 0)
    card_paid = total_paid_cents - wallet_used

    wallet_part = min(share_of(refund_cents, wallet_used, total_paid_cents), wallet_used)
    card_part = min(refund_cents - wallet_part, card_paid)
    return RefundSplit(wallet_cents=wallet_part, card_cents=card_part)
