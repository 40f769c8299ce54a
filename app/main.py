from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api.router import router
from app.core.config import settings
from app.services.frames.resolver import FrameResolver
from app.services.frames.service import FrameService
from app.services.media.cache import MediaCache
from app.workers.fetcher import close_http_client
from app.workers.renderer import close_renderer, get_renderer


def _configure_logging() -> None:
    """Configure the ``app`` logger namespace.

    ``logging.basicConfig`` is a no-op when the root logger already has
    handlers (e.g. when uvicorn sets up its own handlers before our lifespan
    runs).  Configuring the ``app`` namespace directly, with
    ``propagate = False``, ensures all application logs reach stdout
    regardless of uvicorn's root-logger setup.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    app_log = logging.getLogger("app")
    app_log.setLevel(level)
    if not app_log.handlers:
        app_log.addHandler(handler)
    app_log.propagate = False


_configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # ── Startup ──────────────────────────────────────────────────────
    cache = MediaCache.from_settings(settings)
    cache.ensure_dirs()
    cache.start_sweeper()
    renderer = get_renderer() if settings.render_enabled else None
    service = FrameService(FrameResolver(cache, renderer))
    service.start()
    app.state.frame_service = service
    yield
    # ── Shutdown ─────────────────────────────────────────────────────
    await service.stop()
    await cache.stop_sweeper()
    await close_renderer()
    await close_http_client()


app = FastAPI(
    title="Frame Proxy",
    description="Async service that resolves frames and proxies their images.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)
app.mount(
    settings.ephemeral_url_prefix,
    StaticFiles(directory=settings.ephemeral_dir, check_dir=False),
    name="ephemeral-images",
)
app.mount(
    settings.index_url_prefix,
    StaticFiles(directory=settings.index_dir, check_dir=False),
    name="index-images",
)


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "ok"}
