# renthubber/integrations/webhook.py
from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any

import httpx

from ..adapters.clients.http_resilience import resilient_request
from .base import EventSink, SinkDeliveryResult

SIGNATURE_HEADER = "X-RentHubber-Signature"
TIMESTAMP_HEADER = "X-RentHubber-Timestamp"


def sign_body(secret: str, timestamp: str, body: bytes) -> str:
    """HMAC-SHA256 over `<timestamp>.<body>`, hex encoded."""
    msg = timestamp.encode("utf-8") + b"." + body
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()


class WebhookSink(EventSink):
    def __init__(
        self,
        url: str,
        secret: str | None = None,
        timeout_s: float = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.secret = secret
        self.timeout_s = timeout_s
        self._transport = transport

    async def deliver(self, event_type: str, payload: dict[str, Any]) -> SinkDeliveryResult:
        body = json.dumps({"type": event_type, "data": payload}, default=str).encode("utf-8")
        ts = str(int(time.time()))
        headers = {"Content-Type": "application/json", TIMESTAMP_HEADER: ts}
        if self.secret:
            headers[SIGNATURE_HEADER] = sign_body(self.secret, ts, body)

        try:
            # the outbox owns retries; one attempt per dispatch
            await resilient_request(
                "POST",
                self.url,
                content=body,
                headers=headers,
                timeout_s=self.timeout_s,
                max_retries=0,
                transport=self._transport,
            )
        except httpx.HTTPStatusError as e:
            return SinkDeliveryResult(ok=False, error=f"HTTP {e.response.status_code}: {e.response.text[:500]}")
        except httpx.HTTPError as e:
            return SinkDeliveryResult(ok=False, error=str(e) or e.__class__.__name__)
        return SinkDeliveryResult(ok=True)
