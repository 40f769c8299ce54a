"""Rendering fallback: snapshot a frame page with headless Chromium.

Only used when a GET frame references no usable image.  The browser is
launched lazily on the first render and shared afterwards; each render
gets its own context so pages never see each other's state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from app.core.config import settings
from app.core.errors import RenderError

logger = logging.getLogger(__name__)

RENDER_MIME_TYPE = "image/png"


class PageRenderer:
    """Owns one Playwright browser and renders pages to PNG bytes."""

    def __init__(self, width: int, height: int, timeout_ms: int) -> None:
        self.width = width
        self.height = height
        self.timeout_ms = timeout_ms
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._start_lock = asyncio.Lock()

    async def start(self) -> None:
        async with self._start_lock:
            if self._browser is not None:
                return
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=["--disable-gpu", "--no-sandbox", "--disable-dev-shm-usage"],
            )
            logger.info("Renderer browser started.")

    async def stop(self) -> None:
        """Close the browser and Playwright driver.  Safe to call repeatedly."""
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.info("Renderer browser stopped.")

    async def render(self, url: str) -> bytes:
        """Load *url* and return a viewport screenshot as PNG bytes.

        Raises:
            RenderError: the browser could not start, navigate or capture
                within ``timeout_ms``, which bounds the whole render.
        """
        try:
            async with asyncio.timeout(self.timeout_ms / 1000):
                return await self._render(url)
        except TimeoutError as exc:
            raise RenderError(f"Timed out rendering '{url}' after {self.timeout_ms} ms") from exc
        except PlaywrightError as exc:
            raise RenderError(f"Could not render '{url}': {exc}") from exc

    async def _render(self, url: str) -> bytes:
        await self.start()
        context = await self._browser.new_context(
            viewport={"width": self.width, "height": self.height},
        )
        try:
            page = await context.new_page()
            await page.goto(url, wait_until="load", timeout=self.timeout_ms)
            return await page.screenshot(type="png", timeout=self.timeout_ms)
        finally:
            await context.close()


# Module-level shared renderer
_renderer: Optional[PageRenderer] = None


def get_renderer() -> PageRenderer:
    """Return the shared PageRenderer.  Creates one if missing."""
    global _renderer  # noqa: PLW0603
    if _renderer is None:
        _renderer = PageRenderer(
            width=settings.render_width,
            height=settings.render_height,
            timeout_ms=settings.render_timeout_ms,
        )
    return _renderer


async def close_renderer() -> None:
    """Stop the shared renderer's browser if one was launched."""
    global _renderer  # noqa: PLW0603
    if _renderer is not None:
        await _renderer.stop()
        _renderer = None
