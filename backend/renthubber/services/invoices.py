# renthubber/services/invoices.py
from __future__ import annotations

import json
import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..domain.money import from_cents
from ..domain.periods import utcnow
from ..models import Booking, Invoice, InvoiceStatus, InvoiceType

log = logging.getLogger(__name__)


def split_vat(total_cents: int, vat_rate: float) -> tuple[int, int]:
    """(taxable, vat) of a VAT-inclusive amount."""
    taxable = int(
        (Decimal(int(total_cents)) / (1 + Decimal(str(vat_rate)) / 100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    return taxable, int(total_cents) - taxable


async def next_invoice_number(session: AsyncSession, now: datetime | None = None) -> str:
    year = (now or utcnow()).year
    prefix = f"RH-{year}-"
    last = (
        await session.execute(select(func.max(Invoice.number)).where(Invoice.number.like(f"{prefix}%")))
    ).scalar_one_or_none()
    seq = int(last.rsplit("-", 1)[-1]) + 1 if last else 1
    return f"{prefix}{seq:05d}"


async def _already_issued(session: AsyncSession, booking_id: int, invoice_type: InvoiceType) -> bool:
    row = (
        await session.execute(
            select(Invoice.id).where(Invoice.booking_id == booking_id).where(Invoice.invoice_type == invoice_type)
        )
    ).first()
    return row is not None


async def _issue(
    session: AsyncSession,
    *,
    booking: Booking,
    invoice_type: InvoiceType,
    recipient_id: int,
    lines: list[tuple[str, int]],
    now: datetime,
) -> Invoice | None:
    total = sum(amount for _, amount in lines)
    if total <= 0 or await _already_issued(session, booking.id, invoice_type):
        return None

    vat_rate = float(settings.INVOICE_VAT_RATE)
    subtotal, vat = split_vat(total, vat_rate)
    items = [
        {"description": desc, "amount": from_cents(amount), "vat_rate": vat_rate}
        for desc, amount in lines
        if amount > 0
    ]

    inv = Invoice(
        number=await next_invoice_number(session, now),
        invoice_type=invoice_type,
        recipient_id=recipient_id,
        booking_id=booking.id,
        subtotal_cents=subtotal,
        vat_rate=vat_rate,
        vat_cents=vat,
        total_cents=total,
        description=f"RentHubber service fees, booking {booking.number}",
        line_items_json=json.dumps(items),
        status=InvoiceStatus.issued,
        created_at=now,
    )
    session.add(inv)
    await session.flush()
    return inv


async def issue_commission_invoices(
    session: AsyncSession, booking: Booking, *, now: datetime | None = None
) -> list[Invoice]:
    """
    Commission invoices for a completed booking.

    Renter: service fee (variable + fixed). Hubber: platform commission.
    Amounts are VAT-inclusive; zero amounts and already invoiced parties are skipped.
    """
    now = now or utcnow()
    out: list[Invoice] = []

    if settings.INVOICE_RENTER_ON_CHECKOUT:
        renter_variable = booking.renter_fee_cents - booking.renter_fixed_fee_cents
        inv = await _issue(
            session,
            booking=booking,
            invoice_type=InvoiceType.renter,
            recipient_id=booking.renter_id,
            lines=[
                (f"Service fee {booking.renter_fee_pct:g}%", renter_variable),
                ("Fixed service fee", booking.renter_fixed_fee_cents),
            ],
            now=now,
        )
        if inv:
            out.append(inv)

    if settings.INVOICE_HUBBER_ON_CHECKOUT:
        hubber_variable = booking.hubber_fee_cents - booking.hubber_fixed_fee_cents
        inv = await _issue(
            session,
            booking=booking,
            invoice_type=InvoiceType.hubber,
            recipient_id=booking.hubber_id,
            lines=[
                (f"Platform commission {booking.hubber_fee_pct:g}%", hubber_variable),
                ("Fixed platform fee", booking.hubber_fixed_fee_cents),
            ],
            now=now,
        )
        if inv:
            out.append(inv)

    if out:
        log.info("booking %s: issued %s", booking.id, ", ".join(i.number for i in out))
    return out


async def list_invoices(session: AsyncSession, *, recipient_id: int | None = None, limit: int = 100) -> list[Invoice]:
    stmt = select(Invoice).order_by(Invoice.id.desc()).limit(limit)
    if recipient_id is not None:
        stmt = stmt.where(Invoice.recipient_id == recipient_id)
    return list((await session.execute(stmt)).scalars().all())
