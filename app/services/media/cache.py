"""Two-tier media cache with periodic TTL eviction.

Images land in the ephemeral tier under a generated id and, for GET
frames, are also copied into the index tier keyed by their source URL.
A background sweeper removes ephemeral files older than the TTL; the
index tier is only ever cleaned up by an operator.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
import uuid
from typing import Optional

from app.core.config import Settings
from app.core.errors import StorageError
from app.models.media.image import CachedImage, created_at_from_id
from app.repositories.media.repository import (
    EphemeralImageRepository,
    IndexImageRepository,
)

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def extension_for(mime_type: str) -> str:
    """Return the file extension for *mime_type* (its subtype, ``image/png`` -> ``png``)."""
    return mime_type.split("/", 1)[-1].split(";", 1)[0].strip().lower()


class MediaCache:
    """Owns both image tiers and the eviction sweeper."""

    def __init__(
        self,
        ephemeral: EphemeralImageRepository,
        index: IndexImageRepository,
        *,
        public_base_url: str,
        ephemeral_url_prefix: str,
        index_url_prefix: str,
        namespace: uuid.UUID,
        ttl_ms: int,
        sweep_interval: float,
    ) -> None:
        self._ephemeral = ephemeral
        self._index = index
        self._public_base_url = public_base_url.rstrip("/")
        self._ephemeral_url_prefix = ephemeral_url_prefix
        self._index_url_prefix = index_url_prefix
        self._namespace = namespace
        self.ttl_ms = ttl_ms
        self.sweep_interval = sweep_interval

        self._sweep_lock = asyncio.Lock()
        self._sweeper_task: Optional[asyncio.Task[None]] = None
        self._sweep_tasks: set[asyncio.Task[Optional[int]]] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> MediaCache:
        return cls(
            EphemeralImageRepository.from_settings(settings),
            IndexImageRepository.from_settings(settings),
            public_base_url=settings.public_base_url,
            ephemeral_url_prefix=settings.ephemeral_url_prefix,
            index_url_prefix=settings.index_url_prefix,
            namespace=uuid.UUID(settings.image_id_namespace),
            ttl_ms=settings.image_ttl_ms,
            sweep_interval=settings.sweep_interval_seconds,
        )

    def ensure_dirs(self) -> None:
        self._ephemeral.ensure_root()
        self._index.ensure_root()

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def new_image_id(self) -> str:
        """Return ``<epochMillis>-<uuid5(namespace, seed)>`` for a random seed."""
        created_ms = _now_ms()
        seed = f"{created_ms}-{secrets.token_hex(16)}"
        return f"{created_ms}-{uuid.uuid5(self._namespace, seed)}"

    def _public_url(self, prefix: str, filename: str) -> str:
        return f"{self._public_base_url}{prefix}/{filename}"

    async def store(
        self,
        content: bytes,
        mime_type: str,
        source_url: str | None = None,
        indexed: bool = False,
    ) -> CachedImage:
        """Persist *content* and return the cached artifact.

        With *indexed* set, the bytes are also written to the index tier
        under the index key of *source_url*, replacing any previous entry.
        If that second write fails, the ephemeral copy is removed again.

        Raises:
            StorageError: a file could not be written.
        """
        if indexed and not source_url:
            raise ValueError("Indexed images need a source_url")

        image_id = self.new_image_id()
        ext = extension_for(mime_type)
        filename = f"{image_id}.{ext}"
        index_url = None
        try:
            await asyncio.to_thread(self._ephemeral.write, filename, content)
        except OSError as exc:
            logger.error("Failed to store image %s: %s", filename, exc)
            raise StorageError(f"Could not store image {filename}: {exc}") from exc

        if indexed:
            try:
                path = await asyncio.to_thread(self._index.replace, source_url, ext, content)
            except OSError as exc:
                logger.error("Failed to index image %s for %s: %s", filename, source_url, exc)
                await asyncio.to_thread(self._ephemeral.delete, filename)
                raise StorageError(f"Could not index image {filename}: {exc}") from exc
            index_url = self._public_url(self._index_url_prefix, path.name)

        logger.info("Stored image %s (%d bytes, indexed=%s)", filename, len(content), indexed)
        return CachedImage(
            id=image_id,
            mime_type=mime_type,
            size=len(content),
            created_at=created_at_from_id(image_id),
            public_url=self._public_url(self._ephemeral_url_prefix, filename),
            index_url=index_url,
        )

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    async def sweep_expired(self, now_ms: int | None = None) -> int | None:
        """Remove ephemeral images older than the TTL.

        Returns the number of files removed, or ``None`` when another sweep
        is still running and this one was skipped.
        """
        if self._sweep_lock.locked():
            logger.debug("Sweep already running; skipping tick.")
            return None
        async with self._sweep_lock:
            logger.info("Checking for expired images...")
            now = _now_ms() if now_ms is None else now_ms
            removed = await asyncio.to_thread(self._ephemeral.sweep, now, self.ttl_ms)
            logger.info("Expired image sweep done; %d removed.", removed)
            return removed

    async def _sweep_tick(self) -> Optional[int]:
        try:
            return await self.sweep_expired()
        except OSError as exc:
            logger.error("Expired image sweep failed: %s", exc)
            return None

    async def _run_sweeper(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            task = asyncio.create_task(self._sweep_tick())
            self._sweep_tasks.add(task)
            task.add_done_callback(self._sweep_tasks.discard)

    def start_sweeper(self) -> None:
        if self._sweeper_task is None or self._sweeper_task.done():
            self._sweeper_task = asyncio.create_task(self._run_sweeper())
            logger.info("Image sweeper started (every %.1fs).", self.sweep_interval)

    async def stop_sweeper(self) -> None:
        tasks = list(self._sweep_tasks)
        if self._sweeper_task is not None:
            tasks.append(self._sweeper_task)
            self._sweeper_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Image sweeper stopped.")
