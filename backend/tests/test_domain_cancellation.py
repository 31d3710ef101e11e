# tests/test_domain_cancellation.py
import pytest

from renthubber.domain.cancellation import coerce_policy, refund_for_renter_cancellation, split_refund
from renthubber.domain.types import CancellationPolicy, RefundMethod


@pytest.mark.parametrize(
    "policy,hours,expected",
    [
        ("flexible", 24, 100),
        ("flexible", 23.9, 0),
        ("moderate", 120, 100),
        ("moderate", 119, 0),
        ("strict", 168, 50),
        ("strict", 100, 0),
    ],
)
def test_policy_windows(policy, hours, expected):
    assert refund_for_renter_cancellation(policy, hours).percentage == expected


def test_unknown_policy_behaves_as_flexible():
    assert coerce_policy("super_strict") == CancellationPolicy.flexible
    assert coerce_policy(None) == CancellationPolicy.flexible
    d = refund_for_renter_cancellation("nonsense", 48)
    assert d.policy == CancellationPolicy.flexible
    assert d.percentage == 100


def test_refund_messages():
    assert refund_for_renter_cancellation("strict", 200).message == "50% refund (strict policy)"
    assert "less than 24h" in refund_for_renter_cancellation("flexible", 2).message


def test_wallet_method_sends_everything_to_wallet():
    s = split_refund(total_paid_cents=10000, wallet_used_cents=0, refund_cents=5000, method=RefundMethod.wallet)
    assert (s.wallet_cents, s.card_cents) == (5000, 0)


def test_card_method_splits_by_how_it_was_paid():
    s = split_refund(total_paid_cents=10000, wallet_used_cents=4000, refund_cents=5000, method=RefundMethod.card)
    assert (s.wallet_cents, s.card_cents) == (2000, 3000)

    full = split_refund(total_paid_cents=10000, wallet_used_cents=4000, refund_cents=10000, method=RefundMethod.card)
    assert (full.wallet_cents, full.card_cents) == (4000, 6000)


def test_zero_refund():
    s = split_refund(total_paid_cents=10000, wallet_used_cents=4000, refund_cents=0, method=RefundMethod.card)
    assert s.total_cents == 0
