# tests/test_domain_fees.py
from renthubber.domain.fees import FeeSchedule, OverrideTerms, quote, resolve_rates

SCHEDULE = FeeSchedule(renter_pct=10.0, hubber_pct=10.0, super_hubber_pct=5.0, fixed_fee_cents=200)


def test_standard_quote_three_days():
    rates = resolve_rates(SCHEDULE)
    q = quote(unit_price_cents=5000, units=3, cleaning_fee_cents=0, rates=rates, schedule=SCHEDULE)

    assert q.subtotal_cents == 15000
    assert q.renter_fee_cents == 1500 + 200
    assert q.total_cents == 16700
    assert q.hubber_fee_cents == 1500 + 200
    assert q.hubber_net_cents == 13300


def test_cleaning_fee_is_part_of_commission_base():
    rates = resolve_rates(SCHEDULE)
    q = quote(unit_price_cents=2000, units=2, cleaning_fee_cents=1000, rates=rates, schedule=SCHEDULE)

    assert q.base_cents == 4000
    assert q.subtotal_cents == 5000
    assert q.renter_variable_cents == 500
    assert q.total_cents == 5000 + 500 + 200


def test_small_rentals_pay_reduced_fixed_fee():
    rates = resolve_rates(SCHEDULE)

    tiny = quote(unit_price_cents=500, units=1, cleaning_fee_cents=0, rates=rates, schedule=SCHEDULE)
    assert tiny.renter_fixed_cents == 50
    assert tiny.hubber_fixed_cents == 50

    # renter tier stops at 8 EUR, hubber tier at 10 EUR
    mid = quote(unit_price_cents=900, units=1, cleaning_fee_cents=0, rates=rates, schedule=SCHEDULE)
    assert mid.renter_fixed_cents == 200
    assert mid.hubber_fixed_cents == 50


def test_hubber_rate_precedence():
    assert resolve_rates(SCHEDULE).hubber_pct == 10.0
    assert resolve_rates(SCHEDULE, is_super_hubber=True).hubber_pct == 5.0
    assert resolve_rates(SCHEDULE, is_super_hubber=True, hubber_custom_pct=7.0).hubber_pct == 7.0

    r = resolve_rates(
        SCHEDULE,
        hubber_custom_pct=7.0,
        hubber_override=OverrideTerms(custom_hubber_fee=0.0),
    )
    assert r.hubber_pct == 0.0
    assert r.hubber_fixed is True


def test_fees_disabled_override_zeroes_variable_and_fixed():
    rates = resolve_rates(SCHEDULE, renter_override=OverrideTerms(fees_disabled=True))
    q = quote(unit_price_cents=5000, units=1, cleaning_fee_cents=0, rates=rates, schedule=SCHEDULE)

    assert q.renter_fee_cents == 0
    assert q.total_cents == 5000
    # hubber side untouched
    assert q.hubber_fee_cents == 500 + 200


def test_custom_renter_fee_override():
    rates = resolve_rates(SCHEDULE, renter_override=OverrideTerms(custom_renter_fee=3.0))
    assert rates.renter_pct == 3.0
    assert rates.renter_fixed is True
