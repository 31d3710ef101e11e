# tests/test_domain_modification.py
from renthubber.domain.modification import StoredPricing, reprice


def _stored(wallet_used_cents: int = 0) -> StoredPricing:
    # 3 days at 50 EUR, 10% + 2 EUR each side
    return StoredPricing(
        base_cents=15000,
        cleaning_fee_cents=0,
        renter_pct=10.0,
        renter_fixed_cents=200,
        hubber_pct=10.0,
        hubber_fixed_cents=200,
        amount_total_cents=16700,
        wallet_used_cents=wallet_used_cents,
    )


def test_shorter_booking_refunds_the_difference():
    r = reprice(_stored(), new_units=2, unit_price_cents=5000)

    assert r.difference_cents == -5500
    assert r.new_total_cents == 11200
    assert r.refund_card_cents == 5500
    assert r.refund_wallet_cents == 0
    assert r.charge_extra_cents == 0
    assert r.new_hubber_fee_cents == 1200
    assert r.new_hubber_net_cents == 8800


def test_refund_splits_like_the_original_payment():
    # 16000 of 16700 came from the wallet
    r = reprice(_stored(wallet_used_cents=16000), new_units=2, unit_price_cents=5000)
    assert r.refund_wallet_cents == 5269
    assert r.refund_card_cents == 231


def test_mixed_payment_refund_is_proportional():
    r = reprice(_stored(wallet_used_cents=5000), new_units=2, unit_price_cents=5000)
    assert r.refund_wallet_cents == 1647
    assert r.refund_card_cents == 3853
    assert r.refund_wallet_cents + r.refund_card_cents == 5500


def test_longer_booking_charges_difference():
    r = reprice(_stored(), new_units=4, unit_price_cents=5000)
    assert r.difference_cents == 5500
    assert r.charge_extra_cents == 5500
    assert r.new_total_cents == 16700 + 5500


def test_same_length_is_a_noop():
    r = reprice(_stored(), new_units=3, unit_price_cents=5000)
    assert r.difference_cents == 0
    assert r.new_total_cents == 16700
