from __future__ import annotations

import asyncio
import time
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from app.core.errors import StorageError
from app.models.media.image import created_at_from_id
from app.repositories.media.repository import MAX_KEY_LENGTH, index_key, sanitize_source_url
from app.services.media.cache import extension_for

_PNG = b"\x89PNG\r\n\x1a\nfake"
_SOURCE = "https://frames.example.com/frame?id=7"


def _ephemeral(media_dirs: Path) -> Path:
    return media_dirs / "public"


def _index(media_dirs: Path) -> Path:
    return media_dirs / "index"


class TestStore:
    async def test_png_round_trip(self, media_cache, media_dirs):
        before_ms = time.time() * 1000
        image = await media_cache.store(_PNG, "image/png")
        after_ms = time.time() * 1000

        assert image.public_url.startswith("https://localhost/public/")
        assert image.public_url.endswith(".png")
        assert image.public_url.endswith(f"/{image.id}.png")
        created_ms = int(image.id.split("-", 1)[0])
        assert before_ms - 1 <= created_ms <= after_ms + 1
        assert image.created_at == created_at_from_id(image.id)
        assert (_ephemeral(media_dirs) / f"{image.id}.png").read_bytes() == _PNG
        assert image.index_url is None
        assert list(_index(media_dirs).iterdir()) == []

    async def test_extension_follows_mime_type(self, media_cache):
        image = await media_cache.store(b"jpeg", "image/jpeg")
        assert image.public_url.endswith(".jpeg")

    async def test_ids_are_unique(self, media_cache):
        first = await media_cache.store(_PNG, "image/png")
        second = await media_cache.store(_PNG, "image/png")
        assert first.id != second.id
        assert first.public_url != second.public_url

    async def test_indexed_copy_keyed_by_sanitized_source(self, media_cache, media_dirs):
        image = await media_cache.store(_PNG, "image/png", source_url=_SOURCE, indexed=True)

        key = "httpsframesexamplecomframeid7"
        assert sanitize_source_url(_SOURCE) == key
        assert (_index(media_dirs) / f"{key}.png").read_bytes() == _PNG
        assert image.index_url == f"https://localhost/index/{key}.png"

    async def test_indexed_copy_last_write_wins(self, media_cache, media_dirs):
        await media_cache.store(_PNG, "image/png", source_url=_SOURCE, indexed=True)
        await media_cache.store(b"newer", "image/gif", source_url=_SOURCE, indexed=True)

        files = list(_index(media_dirs).iterdir())
        assert [f.name for f in files] == ["httpsframesexamplecomframeid7.gif"]
        assert files[0].read_bytes() == b"newer"

    async def test_long_source_url_gets_bounded_key(self, media_cache, media_dirs):
        first = "https://frames.example.com/" + "a" * 300
        second = first + "b"

        await media_cache.store(_PNG, "image/png", source_url=first, indexed=True)
        await media_cache.store(b"other", "image/png", source_url=second, indexed=True)

        names = sorted(f.name for f in _index(media_dirs).iterdir())
        assert names == sorted([f"{index_key(first)}.png", f"{index_key(second)}.png"])
        assert len(index_key(first)) == MAX_KEY_LENGTH
        assert all(len(name) < 255 for name in names)
        assert (_index(media_dirs) / f"{index_key(first)}.png").read_bytes() == _PNG

    def test_short_source_url_key_is_sanitized_form(self):
        assert index_key(_SOURCE) == sanitize_source_url(_SOURCE)

    async def test_index_failure_removes_ephemeral_copy(self, media_cache, media_dirs):
        with patch.object(media_cache._index, "replace", side_effect=OSError("name too long")):
            with pytest.raises(StorageError, match="name too long"):
                await media_cache.store(_PNG, "image/png", source_url=_SOURCE, indexed=True)

        assert list(_ephemeral(media_dirs).iterdir()) == []

    async def test_indexed_requires_source_url(self, media_cache):
        with pytest.raises(ValueError):
            await media_cache.store(_PNG, "image/png", indexed=True)

    async def test_write_failure_raises_storage_error(self, media_cache):
        with patch.object(media_cache._ephemeral, "write", side_effect=OSError("disk full")):
            with pytest.raises(StorageError, match="disk full"):
                await media_cache.store(_PNG, "image/png")


class TestSweep:
    async def test_ttl_boundary(self, media_cache, media_dirs):
        now_ms = int(time.time() * 1000)
        ttl = media_cache.ttl_ms
        root = _ephemeral(media_dirs)
        expired = root / f"{now_ms - ttl - 1}-expired.png"
        fresh = root / f"{now_ms - ttl + 1}-fresh.png"
        keep = root / ".gitkeep"
        for path in (expired, fresh, keep):
            path.write_bytes(b"x")

        removed = await media_cache.sweep_expired(now_ms=now_ms)

        assert removed == 1
        assert not expired.exists()
        assert fresh.exists()
        assert keep.exists()

    async def test_index_tier_is_never_swept(self, media_cache, media_dirs):
        image = await media_cache.store(_PNG, "image/png", source_url=_SOURCE, indexed=True)
        far_future = int(time.time() * 1000) + media_cache.ttl_ms * 10

        assert await media_cache.sweep_expired(now_ms=far_future) == 1
        assert not (_ephemeral(media_dirs) / f"{image.id}.png").exists()
        assert len(list(_index(media_dirs).iterdir())) == 1

    async def test_overlapping_sweep_is_skipped(self, media_cache):
        async with media_cache._sweep_lock:
            assert await media_cache.sweep_expired() is None

    async def test_sweeper_fires_on_interval(self, media_cache):
        media_cache.sweep_interval = 0.01
        with patch.object(media_cache, "sweep_expired", new_callable=AsyncMock) as mock_sweep:
            media_cache.start_sweeper()
            await asyncio.sleep(0.1)
            await media_cache.stop_sweeper()
        assert mock_sweep.await_count >= 2

    async def test_sweeper_survives_sweep_errors(self, media_cache):
        media_cache.sweep_interval = 0.01
        with patch.object(
            media_cache, "sweep_expired", new_callable=AsyncMock, side_effect=OSError("gone")
        ) as mock_sweep:
            media_cache.start_sweeper()
            await asyncio.sleep(0.1)
            await media_cache.stop_sweeper()
        assert mock_sweep.await_count >= 2


def test_created_at_from_id_rejects_garbage():
    with pytest.raises(ValueError):
        created_at_from_id(".gitkeep")


@pytest.mark.parametrize(
    "mime_type, ext",
    [("image/png", "png"), ("image/jpeg", "jpeg"), ("image/webp", "webp"), ("image/GIF", "gif")],
)
def test_extension_for(mime_type, ext):
    assert extension_for(mime_type) == ext
