# renthubber/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import httpx

from ...config import settings

log = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class CircuitOpenError(httpx.HTTPError):
    pass


@dataclass
class _CircuitState:
    fails: int = 0
    opened_at: float | None = None


# one breaker per host: a dead payment API must not block calendar fetches
_CIRCUITS: dict[str, _CircuitState] = {}
_RATE_LOCK = asyncio.Lock()
_LAST_TS = 0.0


def _circuit(host: str) -> _CircuitState:
    return _CIRCUITS.setdefault(host, _CircuitState())


def _circuit_is_open(host: str, now: float) -> bool:
    c = _circuit(host)
    if c.opened_at is None:
        return False
    if (now - c.opened_at) < float(settings.HTTP_CIRCUIT_RESET_S):
        return True
    # half-open: let one call through
    c.opened_at = None
    c.fails = 0
    return False


def _circuit_on_success(host: str) -> None:
    c = _circuit(host)
    c.fails = 0
    c.opened_at = None


def _circuit_on_failure(host: str) -> None:
    c = _circuit(host)
    c.fails += 1
    if c.fails >= int(settings.HTTP_CIRCUIT_FAIL_THRESHOLD) and c.opened_at is None:
        c.opened_at = time.time()
        log.warning("circuit opened for %s after %s failures", host, c.fails)


def reset_circuits() -> None:
    _CIRCUITS.clear()


async def _rate_limit() -> None:
    """Very simple per-process limiter."""
    global _LAST_TS
    rps = float(settings.HTTP_RATE_LIMIT_RPS)
    if rps <= 0:
        return
    min_gap = 1.0 / rps
    async with _RATE_LOCK:
        now = time.time()
        wait = (_LAST_TS + min_gap) - now
        if wait > 0:
            await asyncio.sleep(wait)
        _LAST_TS = time.time()


async def resilient_request(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json: Any | None = None,
    data: Any | None = None,
    content: bytes | None = None,
    auth: tuple[str, str] | None = None,
    timeout_s: float | None = None,
    max_retries: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.Response:
    """
    One outbound call with rate limiting, retries and a per-host breaker.

    Retries on timeouts, network errors and 429/5xx. Other 4xx responses are
    raised straight away (HTTPStatusError) and do not count against the
    breaker: the remote side answered, the request was wrong.
    """
    host = urlsplit(url).netloc
    if _circuit_is_open(host, time.time()):
        raise CircuitOpenError(f"circuit_open: refusing external call to {host}")

    await _rate_limit()

    timeout = httpx.Timeout(float(timeout_s or settings.HTTP_TIMEOUT_S))
    retries = int(settings.HTTP_MAX_RETRIES if max_retries is None else max_retries)
    backoff = float(settings.HTTP_BACKOFF_BASE_S)

    last_exc: Exception | None = None
    for attempt in range(retries + 1):
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True) as client:
                resp = await client.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=json,
                    data=data,
                    content=content,
                    auth=auth,
                )

            if resp.status_code in RETRYABLE_STATUS:
                raise httpx.HTTPStatusError("retryable_status", request=resp.request, response=resp)

            if resp.is_error:
                _circuit_on_success(host)
                resp.raise_for_status()

            _circuit_on_success(host)
            return resp
        except httpx.HTTPStatusError as e:
            if e.response.status_code not in RETRYABLE_STATUS:
                raise
            last_exc = e
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            last_exc = e

        _circuit_on_failure(host)
        if attempt >= retries:
            break
        await asyncio.sleep(min(5.0, backoff * (2**attempt)))

    assert last_exc is not None
    log.warning("%s %s failed after %s attempts: %s", method, host, retries + 1, last_exc)
    raise last_exc
