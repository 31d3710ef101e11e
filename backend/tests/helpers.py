# tests/helpers.py
from __future__ import annotations

import itertools
from datetime import datetime, timedelta
from typing import Any

from renthubber.adapters.clients.payments import GatewayRefund, PaymentGatewayError, PaymentIntent

# Fixed clock for service tests: bookings start a few days after NOW
NOW = datetime(2026, 3, 2, 9, 0, 0)


def day(offset: int, hour: int = 10) -> datetime:
    return (NOW + timedelta(days=offset)).replace(hour=hour, minute=0, second=0)


class FakeGateway:
    """Records every call; `fail=True` makes both operations raise."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.intents: list[dict[str, Any]] = []
        self.refunds: list[dict[str, Any]] = []
        self._ids = itertools.count(1)

    async def create_payment_intent(self, amount_cents: int, metadata: dict[str, Any] | None = None) -> PaymentIntent:
        if self.fail:
            raise PaymentGatewayError("card declined")
        pi = PaymentIntent(id=f"pi_test_{next(self._ids)}", amount_cents=amount_cents, status="requires_capture")
        self.intents.append({"id": pi.id, "amount_cents": amount_cents, "metadata": metadata or {}})
        return pi

    async def refund(
        self,
        payment_intent_id: str,
        amount_cents: int,
        reason: str = "requested_by_customer",
        metadata: dict[str, Any] | None = None,
    ) -> GatewayRefund:
        if self.fail:
            raise PaymentGatewayError("gateway down")
        self.refunds.append({"payment_intent_id": payment_intent_id, "amount_cents": amount_cents})
        return GatewayRefund(
            id=f"re_test_{next(self._ids)}", payment_intent_id=payment_intent_id, amount_cents=amount_cents, status="succeeded"
        )
