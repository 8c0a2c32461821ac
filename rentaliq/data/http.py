"""Shared request helper: one GET, with httpx failures mapped onto source errors."""

import logging
from typing import Any

import httpx

from rentaliq.errors import RateLimited, SourceUnavailable

logger = logging.getLogger(__name__)


async def get_json(
    client: httpx.AsyncClient,
    source: str,
    url: str,
    params: dict | None = None,
    headers: dict | None = None,
) -> Any:
    """GET `url` and decode its JSON body.

    Raises RateLimited on HTTP 429 and SourceUnavailable on timeouts,
    transport errors, other non-2xx statuses and unparseable bodies.
    """
    try:
        resp = await client.get(url, params=params or {}, headers=headers or {})
        resp.raise_for_status()
    except httpx.TimeoutException as e:
        raise SourceUnavailable(source, "timeout") from e
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        if status == 429:
            logger.warning("%s rate limited (429)", source)
            raise RateLimited(source) from e
        raise SourceUnavailable(source, f"HTTP {status}") from e
    except httpx.RequestError as e:
        raise SourceUnavailable(source, f"request failed: {e.__class__.__name__}") from e

    try:
        return resp.json()
    except ValueError as e:
        raise SourceUnavailable(source, "unparseable response body") from e
