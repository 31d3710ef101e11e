# tests/test_payouts.py
import pytest

from renthubber.domain.errors import InsufficientFunds, InvalidState, ValidationFailed
from renthubber.models import PayoutStatus, WalletType
from renthubber.services import payouts as payout_service
from renthubber.services import wallet as wallet_service


async def _hubber_balance(session, user_id):
    return await wallet_service.get_balance(session, user_id, WalletType.hubber)


@pytest.mark.asyncio
async def test_payout_flow(session, hubber):
    await wallet_service.credit(session, hubber.id, 13_300, wallet_type=WalletType.hubber)

    with pytest.raises(ValidationFailed):
        await payout_service.request_payout(session, hubber.id, 4999)

    p = await payout_service.request_payout(session, hubber.id, 6000)
    assert p.status == PayoutStatus.pending
    assert await _hubber_balance(session, hubber.id) == 7300

    with pytest.raises(InvalidState):
        await payout_service.request_payout(session, hubber.id, 5000)

    await payout_service.approve_payout(session, p.id, notes="ok")
    with pytest.raises(ValidationFailed):
        await payout_service.mark_paid(session, p.id, transfer_reference=" ")

    paid = await payout_service.mark_paid(session, p.id, transfer_reference="TRX-42")
    assert paid.status == PayoutStatus.paid
    assert paid.paid_at is not None

    with pytest.raises(InvalidState):
        await payout_service.reject_payout(session, p.id)


@pytest.mark.asyncio
async def test_rejected_payout_goes_back_to_wallet(session, hubber):
    await wallet_service.credit(session, hubber.id, 8000, wallet_type=WalletType.hubber)

    p = await payout_service.request_payout(session, hubber.id, 8000)
    assert await _hubber_balance(session, hubber.id) == 0

    await payout_service.reject_payout(session, p.id, notes="IBAN mismatch")
    assert await _hubber_balance(session, hubber.id) == 8000
    assert [x.id for x in await payout_service.list_payouts(session, hubber_id=hubber.id)] == [p.id]


@pytest.mark.asyncio
async def test_cannot_withdraw_more_than_earned(session, hubber):
    await wallet_service.credit(session, hubber.id, 5000, wallet_type=WalletType.hubber)
    with pytest.raises(InsufficientFunds):
        await payout_service.request_payout(session, hubber.id, 6000)
