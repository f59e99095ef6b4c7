"""JSON-over-HTTP helper shared by the marketplace clients."""
import logging
from typing import Any

import httpx

from marketos.marketplaces.base import MarketplaceError

logger = logging.getLogger(__name__)

# 429 and 5xx are worth another attempt; other 4xx (bad key, bad request) are not.
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


async def request_json(
    http: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    retries: int = 2,
    **kwargs,
) -> Any:
    """Send a request and return the decoded JSON body.

    Transport errors and retryable status codes are retried up to ``retries``
    more times, immediately. The remote calls are read-only so repeating them
    is safe.

    Raises:
        MarketplaceError: on a non-2xx response or when retries run out.
    """
    attempt = 0
    while True:
        try:
            resp = await http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            if attempt >= retries:
                raise MarketplaceError(f"{method} {url} failed: {exc}") from exc
            attempt += 1
            logger.info("Retrying %s %s after error: %s", method, url, exc)
            continue

        if resp.status_code in _RETRYABLE_STATUS and attempt < retries:
            attempt += 1
            logger.info("Retrying %s %s after HTTP %s", method, url, resp.status_code)
            continue
        if resp.status_code >= 400:
            raise MarketplaceError(
                f"HTTP {resp.status_code} {resp.text[:500]}",
                status_code=resp.status_code,
            )
        return resp.json()
