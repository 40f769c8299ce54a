"""FIFO job queue with per-nonce completion futures.

``submit`` registers a one-shot future for the job's nonce before the job
is queued, so a result can never be published before someone could wait
for it.  A single worker task drains the queue; only one job is ever in
flight, which keeps results in submission order and limits the load we
put on remote origins.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from app.core.errors import ErrorKind, FrameError
from app.models.frames.job import FrameJob
from app.models.frames.result import FrameFailure, FrameResult
from app.services.frames.resolver import FrameResolver

logger = logging.getLogger(__name__)


class FrameQueue:
    def __init__(self, resolver: FrameResolver) -> None:
        self._resolver = resolver
        self._jobs: asyncio.Queue[FrameJob] = asyncio.Queue()
        self._pending: dict[str, asyncio.Future[FrameResult]] = {}
        self._worker: Optional[asyncio.Task[None]] = None

    def __len__(self) -> int:
        return self._jobs.qsize()

    def submit(self, job: FrameJob) -> str:
        """Append *job* to the queue and return its nonce immediately."""
        if job.nonce in self._pending:
            raise ValueError(f"Duplicate job nonce {job.nonce}")
        self._pending[job.nonce] = asyncio.get_running_loop().create_future()
        self._jobs.put_nowait(job)
        logger.info("Queued job %s for %s (depth=%d)", job.nonce, job.target_url, len(self))
        return job.nonce

    async def await_result(self, nonce: str) -> FrameResult:
        """Wait for the result of the job submitted as *nonce*.

        The result can be read once; the slot is released afterwards, or
        when the waiter is cancelled.

        Raises:
            KeyError: *nonce* is unknown or its result was already read.
        """
        future = self._pending[nonce]
        try:
            return await future
        finally:
            self._pending.pop(nonce, None)

    async def _process(self, job: FrameJob) -> FrameResult:
        try:
            return await self._resolver.resolve(job)
        except FrameError as exc:
            logger.warning("Job %s for %s failed: %s", job.nonce, job.target_url, exc)
            return exc.to_failure()
        except Exception as exc:
            logger.exception("Unexpected error resolving job %s: %s", job.nonce, exc)
            return FrameFailure(reason="Unknown error", error=ErrorKind.INTERNAL)

    def _complete(self, nonce: str, result: FrameResult) -> None:
        future = self._pending.get(nonce)
        if future is None or future.done():
            logger.debug("Dropping result for job %s; nobody is waiting.", nonce)
            return
        future.set_result(result)

    async def _run(self) -> None:
        while True:
            job = await self._jobs.get()
            try:
                result = await self._process(job)
                self._complete(job.nonce, result)
                logger.info("Job %s done (%s)", job.nonce, result.kind)
            finally:
                self._jobs.task_done()

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._jobs.join()

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
            logger.info("Frame queue worker started.")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Frame queue worker stopped.")
