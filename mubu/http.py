"""Shared HTTP client settings: bounded timeouts and retries on transient errors."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 8.0
DEFAULT_RETRIES = 2
USER_AGENT = "MUBU-PriceComparison/1.0"


def is_transient(exc: BaseException) -> bool:
    """Network errors and 5xx responses are worth retrying; 4xx are not."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


def create_client(
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
    **kwargs: Any,
) -> httpx.AsyncClient:
    headers = {"User-Agent": USER_AGENT, **kwargs.pop("headers", {})}
    return httpx.AsyncClient(
        timeout=timeout, transport=transport, headers=headers, **kwargs
    )


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    retries: int = DEFAULT_RETRIES,
    **kwargs: Any,
) -> Any:
    """Send a request and decode the JSON body.

    Retries up to *retries* extra times with exponential backoff. Once
    retries are exhausted the last error is raised unchanged.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=0.5, max=4),
        retry=retry_if_exception(is_transient),
        reraise=True,
    ):
        with attempt:
            n = attempt.retry_state.attempt_number
            if n > 1:
                logger.info("Retrying %s %s (attempt %d)", method, url, n)
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
