"""Async HTTP fetcher for frame targets.

Uses httpx.AsyncClient which is meant to be long-lived and reused.
A single shared client is managed by the module; see ``get_http_client``
and ``close_http_client`` for lifecycle hooks.  The image acquirer shares
the same client.

Nothing here retries: a failed fetch is terminal for its job and the
client is expected to re-submit.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from app.core.config import settings
from app.core.errors import RemoteFetchError
from app.models.frames.job import FrameMethod

logger = logging.getLogger(__name__)

# Module-level shared client
_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Return the shared AsyncClient.  Creates one if missing."""
    global _http_client  # noqa: PLW0603
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout),
            follow_redirects=True,
            verify=settings.http_verify_ssl,
            headers={"User-Agent": "FrameProxyBot/1.0"},
        )
    return _http_client


async def close_http_client() -> None:
    """Close the shared AsyncClient gracefully."""
    global _http_client  # noqa: PLW0603
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
        _http_client = None
        logger.info("HTTP client closed.")


async def fetch_frame(
    url: str,
    method: FrameMethod,
    payload: dict[str, Any] | None = None,
) -> str:
    """Request *url* with *method* and return the response body as text.

    POST requests carry the JSON-encoded *payload* as their body.

    The whole exchange, body included, must finish within
    ``settings.http_timeout`` seconds.

    Raises:
        RemoteFetchError: on timeout, transport failure or a non-2xx status.
    """
    client = get_http_client()
    kwargs: dict[str, Any] = {"headers": {"content-type": "application/json"}}
    if method is FrameMethod.POST and payload is not None:
        kwargs["json"] = payload

    try:
        async with asyncio.timeout(settings.http_timeout):
            response = await client.request(method.value, url, **kwargs)
    except httpx.InvalidURL as exc:
        raise RemoteFetchError(f"Invalid URL '{url}': {exc}") from exc
    except (httpx.TimeoutException, TimeoutError) as exc:
        raise RemoteFetchError(f"Timed out fetching '{url}'") from exc
    except httpx.RequestError as exc:
        raise RemoteFetchError(f"Request error for '{url}': {exc}") from exc

    if not response.is_success:
        raise RemoteFetchError(
            f"Target '{url}' answered with status {response.status_code}"
        )
    return response.text
