# renthubber/services/wallet.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..domain.errors import InsufficientFunds, NotFound, ValidationFailed
from ..domain.money import fmt_eur, pct_of
from ..domain.periods import utcnow
from ..models import TxSource, TxType, User, Wallet, WalletTransaction, WalletType

log = logging.getLogger(__name__)

_BALANCE_COLUMN = {
    WalletType.renter: "balance_cents",
    WalletType.referral: "referral_balance_cents",
    WalletType.hubber: "hubber_balance_cents",
}


@dataclass(frozen=True)
class UsableCredit:
    referral_cents: int
    general_cents: int

    @property
    def total_cents(self) -> int:
        return self.referral_cents + self.general_cents


async def get_wallet(session: AsyncSession, user_id: int) -> Wallet:
    w = (await session.execute(select(Wallet).where(Wallet.user_id == user_id))).scalars().first()
    if w:
        return w
    if not await session.get(User, user_id):
        raise NotFound(f"User {user_id} not found")
    w = Wallet(user_id=user_id)
    session.add(w)
    await session.flush()
    return w


async def get_balance(session: AsyncSession, user_id: int, wallet_type: WalletType = WalletType.renter) -> int:
    w = await get_wallet(session, user_id)
    return int(getattr(w, _BALANCE_COLUMN[wallet_type]) or 0)


async def list_transactions(
    session: AsyncSession,
    user_id: int,
    wallet_type: WalletType | None = None,
    limit: int = 100,
) -> list[WalletTransaction]:
    stmt = (
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .limit(limit)
    )
    if wallet_type is not None:
        stmt = stmt.where(WalletTransaction.wallet_type == wallet_type)
    return list((await session.execute(stmt)).scalars().all())


async def _move(
    session: AsyncSession,
    user_id: int,
    wallet_type: WalletType,
    amount_cents: int,
    tx_type: TxType,
    source: TxSource,
    description: str,
    booking_id: int | None,
) -> WalletTransaction:
    if amount_cents <= 0:
        raise ValidationFailed("amount must be positive")

    w = await get_wallet(session, user_id)
    col = _BALANCE_COLUMN[wallet_type]
    current = int(getattr(w, col) or 0)

    if tx_type == TxType.debit:
        if amount_cents > current:
            raise InsufficientFunds(
                f"{wallet_type.value} balance {fmt_eur(current)} is below {fmt_eur(amount_cents)}"
            )
        signed = -amount_cents
    else:
        signed = amount_cents

    setattr(w, col, current + signed)
    w.updated_at = utcnow()

    tx = WalletTransaction(
        user_id=user_id,
        wallet_type=wallet_type,
        type=tx_type,
        source=source,
        amount_cents=signed,
        balance_after_cents=current + signed,
        description=description[:255],
        related_booking_id=booking_id,
    )
    session.add(tx)
    await session.flush()
    return tx


async def credit(
    session: AsyncSession,
    user_id: int,
    amount_cents: int,
    *,
    wallet_type: WalletType = WalletType.renter,
    source: TxSource = TxSource.adjustment,
    description: str = "",
    booking_id: int | None = None,
) -> WalletTransaction:
    return await _move(session, user_id, wallet_type, amount_cents, TxType.credit, source, description, booking_id)


async def debit(
    session: AsyncSession,
    user_id: int,
    amount_cents: int,
    *,
    wallet_type: WalletType = WalletType.renter,
    source: TxSource = TxSource.adjustment,
    description: str = "",
    booking_id: int | None = None,
) -> WalletTransaction:
    return await _move(session, user_id, wallet_type, amount_cents, TxType.debit, source, description, booking_id)


async def topup(session: AsyncSession, user_id: int, amount_cents: int) -> WalletTransaction:
    return await credit(session, user_id, amount_cents, source=TxSource.topup, description="Wallet top-up")


def usable_credit(wallet: Wallet, renter_fee_cents: int, total_cents: int) -> UsableCredit:
    """
    Credit a renter can spend on one booking.

    Referral credit only covers commissions: at most REFERRAL_MAX_FEE_SHARE of
    the renter fee. General credit covers whatever of the total is left.
    """
    referral_cap = pct_of(renter_fee_cents, settings.REFERRAL_MAX_FEE_SHARE * 100)
    referral = max(min(int(wallet.referral_balance_cents or 0), referral_cap, total_cents), 0)
    general = max(min(int(wallet.balance_cents or 0), total_cents - referral), 0)
    return UsableCredit(referral_cents=referral, general_cents=general)


async def charge_for_booking(
    session: AsyncSession,
    user_id: int,
    booking_id: int,
    credit_used: UsableCredit,
    booking_number: str,
) -> None:
    if credit_used.referral_cents > 0:
        await debit(
            session,
            user_id,
            credit_used.referral_cents,
            wallet_type=WalletType.referral,
            source=TxSource.booking_payment,
            description=f"Referral credit used for booking {booking_number}",
            booking_id=booking_id,
        )
    if credit_used.general_cents > 0:
        await debit(
            session,
            user_id,
            credit_used.general_cents,
            source=TxSource.booking_payment,
            description=f"Wallet payment for booking {booking_number}",
            booking_id=booking_id,
        )


async def refund_to_renter(
    session: AsyncSession, user_id: int, amount_cents: int, *, booking_id: int, description: str
) -> WalletTransaction | None:
    if amount_cents <= 0:
        return None
    return await credit(
        session,
        user_id,
        amount_cents,
        source=TxSource.booking_refund,
        description=description,
        booking_id=booking_id,
    )


async def credit_hubber_for_booking(
    session: AsyncSession, hubber_id: int, amount_cents: int, *, booking_id: int, booking_number: str
) -> WalletTransaction | None:
    if amount_cents <= 0:
        return None
    return await credit(
        session,
        hubber_id,
        amount_cents,
        wallet_type=WalletType.hubber,
        source=TxSource.booking_earning,
        description=f"Earnings for booking {booking_number}",
        booking_id=booking_id,
    )


async def credit_referral_bonus(
    session: AsyncSession, user_id: int, amount_cents: int | None = None, *, description: str = "Referral bonus"
) -> WalletTransaction:
    return await credit(
        session,
        user_id,
        settings.REFERRAL_BONUS_CENTS if amount_cents is None else amount_cents,
        wallet_type=WalletType.referral,
        source=TxSource.referral_bonus,
        description=description,
    )


async def admin_adjust(
    session: AsyncSession,
    user_id: int,
    amount_cents: int,
    *,
    reason: str,
    wallet_type: WalletType = WalletType.renter,
    admin_id: int | None = None,
    is_credit: bool = True,
) -> WalletTransaction:
    if not (reason or "").strip():
        raise ValidationFailed("A reason is required for manual adjustments")
    desc = f"Admin adjustment: {reason.strip()}"
    move = credit if is_credit else debit
    tx = await move(
        session,
        user_id,
        amount_cents,
        wallet_type=wallet_type,
        source=TxSource.adjustment,
        description=desc,
    )
    log.info(
        "admin %s %s %s cents on %s wallet of user %s",
        admin_id,
        "credited" if is_credit else "debited",
        amount_cents,
        wallet_type.value,
        user_id,
    )
    return tx


async def admin_credit(session: AsyncSession, user_id: int, amount_cents: int, **kwargs) -> WalletTransaction:
    return await admin_adjust(session, user_id, amount_cents, is_credit=True, **kwargs)


async def admin_debit(session: AsyncSession, user_id: int, amount_cents: int, **kwargs) -> WalletTransaction:
    return await admin_adjust(session, user_id, amount_cents, is_credit=False, **kwargs)
