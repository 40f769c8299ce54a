from __future__ import annotations

import logging
from typing import Any

from app.core.errors import FrameError
from app.models.frames.job import FrameJob, FrameMethod
from app.models.frames.result import FrameResult
from app.services.frames.queue import FrameQueue
from app.services.frames.resolver import FrameResolver

logger = logging.getLogger(__name__)


class FrameService:
    """Entry points the HTTP layer uses to resolve frames.

    POST frames are resolved directly; GET frames go through the queue.
    Pipeline errors come back as ``FrameFailure`` results, never raised.
    """

    def __init__(self, resolver: FrameResolver, queue: FrameQueue | None = None) -> None:
        self._resolver = resolver
        self._queue = queue if queue is not None else FrameQueue(resolver)

    @property
    def queue(self) -> FrameQueue:
        return self._queue

    async def resolve_sync(
        self,
        target_url: str,
        method: FrameMethod,
        payload: dict[str, Any] | None = None,
    ) -> FrameResult:
        """Resolve a frame immediately, bypassing the queue."""
        job = FrameJob(target_url=target_url, method=method, payload=payload)
        logger.info("Resolving %s frame %s directly", method.value, target_url)
        try:
            return await self._resolver.resolve(job)
        except FrameError as exc:
            logger.warning("Direct %s for %s failed: %s", method.value, target_url, exc)
            return exc.to_failure()

    def submit(self, target_url: str, method: FrameMethod = FrameMethod.GET) -> str:
        """Queue a frame for resolution and return its nonce."""
        return self._queue.submit(FrameJob(target_url=target_url, method=method))

    async def await_result(self, nonce: str) -> FrameResult:
        return await self._queue.await_result(nonce)

    def start(self) -> None:
        self._queue.start()

    async def stop(self) -> None:
        await self._queue.stop()
