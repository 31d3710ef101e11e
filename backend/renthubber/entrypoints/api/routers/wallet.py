# renthubber/entrypoints/api/routers/wallet.py
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....models import WalletType
from ....schemas import (
    InvoiceOut,
    MonthEarningsOut,
    OverrideOut,
    PayoutCreate,
    PayoutOut,
    PromoApply,
    TopupRequest,
    WalletOut,
    WalletTxOut,
    YearEarningsOut,
)
from ....services import earnings as earnings_service
from ....services import fees as fee_service
from ....services import invoices as invoice_service
from ....services import payouts as payout_service
from ....services import wallet as wallet_service
from ..deps import get_session, require_api_key

router = APIRouter(tags=["wallet"])


@router.get("/users/{user_id}/wallet", response_model=WalletOut)
async def get_wallet(user_id: int, session: AsyncSession = Depends(get_session)) -> WalletOut:
    w = await wallet_service.get_wallet(session, user_id)
    await session.commit()
    return WalletOut(
        user_id=user_id,
        balance_cents=w.balance_cents,
        referral_balance_cents=w.referral_balance_cents,
        hubber_balance_cents=w.hubber_balance_cents,
    )


@router.get("/users/{user_id}/wallet/transactions", response_model=list[WalletTxOut])
async def wallet_transactions(
    user_id: int,
    wallet_type: WalletType | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> list[WalletTxOut]:
    rows = await wallet_service.list_transactions(session, user_id, wallet_type, limit)
    return [WalletTxOut.model_validate(t) for t in rows]


# Top-ups are confirmed server-side once the payment has settled
@router.post("/users/{user_id}/wallet/topup", response_model=WalletTxOut, dependencies=[Depends(require_api_key)])
async def topup(user_id: int, body: TopupRequest, session: AsyncSession = Depends(get_session)) -> WalletTxOut:
    tx = await wallet_service.topup(session, user_id, body.amount_cents)
    await session.commit()
    return WalletTxOut.model_validate(tx)


@router.get("/users/{user_id}/earnings/{year}", response_model=YearEarningsOut)
async def earnings_year(user_id: int, year: int, session: AsyncSession = Depends(get_session)) -> YearEarningsOut:
    res = await earnings_service.hubber_earnings_by_year(session, user_id, year)
    return YearEarningsOut(**asdict(res))


@router.get("/users/{user_id}/earnings/{year}/{month}", response_model=MonthEarningsOut)
async def earnings_month(
    user_id: int, year: int, month: int, session: AsyncSession = Depends(get_session)
) -> MonthEarningsOut:
    res = await earnings_service.hubber_earnings_by_month(session, user_id, year, month)
    return MonthEarningsOut(**asdict(res))


@router.post("/payouts", response_model=PayoutOut, status_code=201)
async def request_payout(body: PayoutCreate, session: AsyncSession = Depends(get_session)) -> PayoutOut:
    p = await payout_service.request_payout(session, body.hubber_id, body.amount_cents)
    await session.commit()
    return PayoutOut.model_validate(p)


@router.get("/users/{user_id}/payouts", response_model=list[PayoutOut])
async def user_payouts(user_id: int, session: AsyncSession = Depends(get_session)) -> list[PayoutOut]:
    return [PayoutOut.model_validate(p) for p in await payout_service.list_payouts(session, hubber_id=user_id)]


@router.get("/users/{user_id}/invoices", response_model=list[InvoiceOut])
async def user_invoices(user_id: int, session: AsyncSession = Depends(get_session)) -> list[InvoiceOut]:
    return [InvoiceOut.model_validate(i) for i in await invoice_service.list_invoices(session, recipient_id=user_id)]


@router.get("/users/{user_id}/fee-override", response_model=OverrideOut | None)
async def current_override(user_id: int, session: AsyncSession = Depends(get_session)) -> OverrideOut | None:
    ov = await fee_service.active_override(session, user_id)
    return OverrideOut.model_validate(ov) if ov else None


@router.post("/users/{user_id}/promo", response_model=OverrideOut, status_code=201)
async def apply_promo(user_id: int, body: PromoApply, session: AsyncSession = Depends(get_session)) -> OverrideOut:
    ov = await fee_service.apply_promo(session, user_id, body.code)
    await session.commit()
    return OverrideOut.model_validate(ov)
