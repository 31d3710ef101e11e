# renthubber/adapters/clients/payments.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from ...config import settings
from .http_resilience import resilient_request

log = logging.getLogger(__name__)


class PaymentGatewayError(RuntimeError):
    pass


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    amount_cents: int
    status: str


@dataclass(frozen=True)
class GatewayRefund:
    id: str
    payment_intent_id: str
    amount_cents: int
    status: str


class PaymentGateway(Protocol):
    async def create_payment_intent(
        self, amount_cents: int, metadata: dict[str, Any] | None = None
    ) -> PaymentIntent:
        ...

    async def refund(
        self,
        payment_intent_id: str,
        amount_cents: int,
        reason: str = "requested_by_customer",
        metadata: dict[str, Any] | None = None,
    ) -> GatewayRefund:
        ...


def _flatten_metadata(metadata: dict[str, Any] | None) -> dict[str, str]:
    return {f"metadata[{k}]": str(v) for k, v in (metadata or {}).items() if v is not None}


class HttpPaymentGateway:
    """Stripe-style form API (payment_intents / refunds)."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        currency: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = (base_url or settings.PAYMENTS_BASE_URL).rstrip("/")
        self.currency = currency or settings.PAYMENTS_CURRENCY
        self._transport = transport

    async def _post(self, path: str, form: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await resilient_request(
                "POST",
                f"{self.base_url}{path}",
                data=form,
                auth=(self.api_key, ""),
                transport=self._transport,
            )
        except httpx.HTTPStatusError as e:
            body = e.response.text[:300]
            raise PaymentGatewayError(f"{path} rejected: HTTP {e.response.status_code}: {body}") from e
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"{path} unreachable: {e}") from e
        return resp.json()

    async def create_payment_intent(
        self, amount_cents: int, metadata: dict[str, Any] | None = None
    ) -> PaymentIntent:
        if amount_cents <= 0:
            raise PaymentGatewayError("amount must be positive")
        form = {
            "amount": int(amount_cents),
            "currency": self.currency,
            "automatic_payment_methods[enabled]": "true",
            **_flatten_metadata(metadata),
        }
        js = await self._post("/payment_intents", form)
        return PaymentIntent(id=js["id"], amount_cents=int(js.get("amount", amount_cents)), status=js.get("status", ""))

    async def refund(
        self,
        payment_intent_id: str,
        amount_cents: int,
        reason: str = "requested_by_customer",
        metadata: dict[str, Any] | None = None,
    ) -> GatewayRefund:
        if amount_cents <= 0:
            raise PaymentGatewayError("refund amount must be positive")
        form = {
            "payment_intent": payment_intent_id,
            "amount": int(amount_cents),
            "reason": reason,
            **_flatten_metadata(metadata),
        }
        js = await self._post("/refunds", form)
        log.info("gateway refund %s on %s: %s cents", js.get("id"), payment_intent_id, amount_cents)
        return GatewayRefund(
            id=js["id"],
            payment_intent_id=payment_intent_id,
            amount_cents=int(js.get("amount", amount_cents)),
            status=js.get("status", ""),
        )


class NullPaymentGateway:
    """
    No gateway configured.

    Card charges must arrive with a client-confirmed payment intent and card
    refunds stay queued for admins.
    """

    async def create_payment_intent(
        self, amount_cents: int, metadata: dict[str, Any] | None = None
    ) -> PaymentIntent:
        raise PaymentGatewayError("payment gateway not configured")

    async def refund(
        self,
        payment_intent_id: str,
        amount_cents: int,
        reason: str = "requested_by_customer",
        metadata: dict[str, Any] | None = None,
    ) -> GatewayRefund:
        raise PaymentGatewayError("payment gateway not configured")


def build_payment_gateway() -> PaymentGateway:
    if settings.PAYMENTS_API_KEY:
        return HttpPaymentGateway(api_key=settings.PAYMENTS_API_KEY)
    return NullPaymentGateway()
