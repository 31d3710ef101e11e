# tests/test_wallet.py
import pytest

from renthubber.domain.errors import InsufficientFunds, ValidationFailed
from renthubber.models import TxSource, TxType, Wallet, WalletType
from renthubber.services import wallet as wallet_service


@pytest.mark.asyncio
async def test_topup_records_transaction(session, renter):
    tx = await wallet_service.topup(session, renter.id, 2500)

    assert tx.type == TxType.credit
    assert tx.source == TxSource.topup
    assert tx.balance_after_cents == 2500
    assert await wallet_service.get_balance(session, renter.id) == 2500


@pytest.mark.asyncio
async def test_debit_never_goes_negative(session, renter):
    await wallet_service.topup(session, renter.id, 1000)

    with pytest.raises(InsufficientFunds):
        await wallet_service.debit(session, renter.id, 1001)

    tx = await wallet_service.debit(session, renter.id, 400, description="test")
    assert tx.amount_cents == -400
    assert tx.balance_after_cents == 600


@pytest.mark.asyncio
async def test_amounts_must_be_positive(session, renter):
    with pytest.raises(ValidationFailed):
        await wallet_service.topup(session, renter.id, 0)
    with pytest.raises(ValidationFailed):
        await wallet_service.credit(session, renter.id, -5)


@pytest.mark.asyncio
async def test_wallets_are_separate(session, renter):
    await wallet_service.credit_referral_bonus(session, renter.id)
    await wallet_service.credit(session, renter.id, 700, wallet_type=WalletType.hubber)

    assert await wallet_service.get_balance(session, renter.id) == 0
    assert await wallet_service.get_balance(session, renter.id, WalletType.referral) == 500
    assert await wallet_service.get_balance(session, renter.id, WalletType.hubber) == 700

    referral_only = await wallet_service.list_transactions(session, renter.id, WalletType.referral)
    assert [t.source for t in referral_only] == [TxSource.referral_bonus]


@pytest.mark.asyncio
async def test_admin_adjustment_needs_reason(session, renter):
    with pytest.raises(ValidationFailed):
        await wallet_service.admin_credit(session, renter.id, 1000, reason="  ")

    tx = await wallet_service.admin_credit(session, renter.id, 1000, reason="Goodwill", admin_id=1)
    assert tx.description == "Admin adjustment: Goodwill"

    tx = await wallet_service.admin_debit(session, renter.id, 300, reason="Correction")
    assert tx.balance_after_cents == 700


def test_referral_credit_only_covers_part_of_the_fee():
    w = Wallet(balance_cents=100, referral_balance_cents=10_000, hubber_balance_cents=0)
    c = wallet_service.usable_credit(w, renter_fee_cents=1000, total_cents=600)

    assert c.referral_cents == 300
    assert c.general_cents == 100
    assert c.total_cents == 400


def test_credit_never_exceeds_total():
    w = Wallet(balance_cents=50_000, referral_balance_cents=0, hubber_balance_cents=0)
    c = wallet_service.usable_credit(w, renter_fee_cents=1700, total_cents=16_700)
    assert c.general_cents == 16_700
