from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

import app.workers.fetcher as fetcher_module
from app.core.config import settings
from app.main import app
from app.services.media.cache import MediaCache

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeRenderer:
    """Stands in for the Playwright renderer."""

    def __init__(self, content: bytes = PNG_BYTES, error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.calls: list[str] = []

    async def render(self, url: str) -> bytes:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.content


@pytest.fixture(autouse=True)
def media_dirs(tmp_path, monkeypatch):
    """Point both cache tiers at a temp dir and keep the browser out of tests."""
    monkeypatch.setattr(settings, "ephemeral_dir", str(tmp_path / "public"))
    monkeypatch.setattr(settings, "index_dir", str(tmp_path / "index"))
    monkeypatch.setattr(settings, "render_enabled", False)
    return tmp_path


@pytest.fixture(autouse=True)
def reset_http_client():
    """Each test gets a fresh shared httpx client bound to its own loop."""
    fetcher_module._http_client = None
    yield
    fetcher_module._http_client = None


@pytest.fixture
def media_cache(media_dirs) -> MediaCache:
    cache = MediaCache.from_settings(settings)
    cache.ensure_dirs()
    return cache


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def client():
    """TestClient running the real lifespan against temp cache dirs."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
async def slow_origin():
    """Local HTTP origin that answers promptly but sends its body one byte
    every 0.3 s.  Yields the origin's base URL."""
    handlers: set[asyncio.Task] = set()

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        handlers.add(asyncio.current_task())
        try:
            await reader.readuntil(b"\r\n\r\n")
            writer.write(
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: image/png\r\n"
                b"Content-Length: 10\r\n\r\n"
            )
            for _ in range(10):
                writer.write(b"x")
                await writer.drain()
                await asyncio.sleep(0.3)
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    yield f"http://127.0.0.1:{port}"
    for task in handlers:
        task.cancel()
    server.close()
    await server.wait_closed()
