"""Image acquisition: probe first, then download.

A probe (HEAD) checks status, type and declared size so oversized or
disallowed images are rejected before any body is transferred.  Only a
successful probe leads to ``fetch_image``.  Each of the two requests must
finish, body included, within ``settings.http_timeout`` seconds.
"""

from __future__ import annotations

import asyncio
import logging

import httpx
from pydantic import BaseModel

from app.core.config import settings
from app.core.errors import ImageUnavailableError
from app.workers.fetcher import get_http_client

logger = logging.getLogger(__name__)


class ImageProbe(BaseModel):
    mime_type: str
    size: int


class AcquiredImage(BaseModel):
    content: bytes
    mime_type: str


def _mime_type(response: httpx.Response) -> str:
    raw = response.headers.get("content-type", "")
    return raw.split(";", 1)[0].strip().lower()


def _check_mime_type(url: str, mime_type: str) -> None:
    if mime_type not in settings.allowed_image_types:
        raise ImageUnavailableError(f"Image at '{url}' has disallowed type '{mime_type}'")


def _check_size(url: str, size: int) -> None:
    if size > settings.max_image_size:
        raise ImageUnavailableError(
            f"Image at '{url}' is too large ({size} > {settings.max_image_size} bytes)"
        )


def _check_status(url: str, response: httpx.Response) -> None:
    if response.status_code != 200:
        raise ImageUnavailableError(
            f"Image host answered {response.status_code} for '{url}'"
        )


async def probe_image(url: str) -> ImageProbe:
    """HEAD *url* and validate its declared type and size.

    Raises:
        ImageUnavailableError: on any network failure, a non-200 status, a
            type outside the whitelist, or a missing or oversized
            ``content-length``.
    """
    logger.debug("Probing image %s", url)
    client = get_http_client()
    try:
        async with asyncio.timeout(settings.http_timeout):
            response = await client.head(url)
    except (httpx.TimeoutException, TimeoutError) as exc:
        raise ImageUnavailableError(f"Timed out probing image '{url}'") from exc
    except httpx.HTTPError as exc:
        raise ImageUnavailableError(f"Request error probing image '{url}': {exc}") from exc
    _check_status(url, response)

    mime_type = _mime_type(response)
    _check_mime_type(url, mime_type)

    raw_length = response.headers.get("content-length", "").strip()
    if not raw_length.isdigit():
        raise ImageUnavailableError(f"Image at '{url}' has no usable content-length")
    size = int(raw_length)
    _check_size(url, size)
    return ImageProbe(mime_type=mime_type, size=size)


async def fetch_image(url: str, probe: ImageProbe) -> AcquiredImage:
    """Download the bytes behind a successfully probed image URL.

    The body is streamed and abandoned as soon as it grows past the size
    limit, since the probe only saw declared headers.
    """
    logger.debug("Fetching image %s (%d bytes declared)", url, probe.size)
    client = get_http_client()
    content = bytearray()
    try:
        async with asyncio.timeout(settings.http_timeout):
            async with client.stream("GET", url) as response:
                _check_status(url, response)
                mime_type = _mime_type(response) or probe.mime_type
                _check_mime_type(url, mime_type)
                async for chunk in response.aiter_bytes():
                    content.extend(chunk)
                    _check_size(url, len(content))
    except (httpx.TimeoutException, TimeoutError) as exc:
        raise ImageUnavailableError(f"Timed out fetching image '{url}'") from exc
    except httpx.HTTPError as exc:
        raise ImageUnavailableError(f"Request error fetching image '{url}': {exc}") from exc
    return AcquiredImage(content=bytes(content), mime_type=mime_type)
