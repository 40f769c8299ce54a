"""Frame resolution pipeline.

One call to :meth:`FrameResolver.resolve` walks a job through::

    VALIDATING -> FETCHING -> CLASSIFYING -> TX_READY
                                          -> PARSING_FRAME -> EXTRACTING_IMAGE
                                             -> PROBING -> ACQUIRING | RENDERING
                                             -> PERSISTING -> DONE

Validation, fetch and classification errors end the job by raising a
:class:`~app.core.errors.FrameError`.  Anything that goes wrong after the
frame itself has been parsed only costs the frame its image.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Protocol

from bs4 import Tag

from app.core.errors import (
    ImageUnavailableError,
    InvalidInputError,
    UnrecognizedContentError,
)
from app.models.frames.job import FrameJob, FrameMethod
from app.models.frames.result import FrameDocument, TransactionPayload
from app.services.frames.parser import parse_frame_head, select_frame_image
from app.services.frames.validators import (
    is_transaction_payload,
    is_valid_target_url,
    is_valid_untrusted_payload,
)
from app.services.media.cache import MediaCache
from app.workers.fetcher import fetch_frame
from app.workers.images import AcquiredImage, fetch_image, probe_image
from app.workers.renderer import RENDER_MIME_TYPE

logger = logging.getLogger(__name__)


class FrameState(str, Enum):
    VALIDATING = "validating"
    FETCHING = "fetching"
    CLASSIFYING = "classifying"
    TX_READY = "tx_ready"
    PARSING_FRAME = "parsing_frame"
    EXTRACTING_IMAGE = "extracting_image"
    PROBING = "probing"
    ACQUIRING = "acquiring"
    RENDERING = "rendering"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class Renderer(Protocol):
    async def render(self, url: str) -> bytes: ...


_NOT_JSON = object()


def _decode_json(body: str) -> object:
    try:
        return json.loads(body)
    except ValueError:
        return _NOT_JSON


class FrameResolver:
    """Turns a :class:`FrameJob` into a frame result.

    *renderer* is optional; without one, GET frames lacking an image are
    returned imageless just like POST frames.
    """

    def __init__(self, cache: MediaCache, renderer: Renderer | None = None) -> None:
        self._cache = cache
        self._renderer = renderer

    @staticmethod
    def _enter(job: FrameJob, state: FrameState) -> None:
        logger.debug("Job %s -> %s", job.nonce, state.value)

    async def resolve(self, job: FrameJob) -> TransactionPayload | FrameDocument:
        """Resolve *job* to a transaction payload or a frame document.

        Raises:
            InvalidInputError: bad target URL or untrusted payload.
            RemoteFetchError: the target could not be fetched.
            UnrecognizedContentError: the target answered non-transaction JSON.
            InvalidFrameContentError: the target's HTML has no usable head.
        """
        try:
            return await self._resolve(job)
        except Exception:
            self._enter(job, FrameState.FAILED)
            raise

    async def _resolve(self, job: FrameJob) -> TransactionPayload | FrameDocument:
        self._enter(job, FrameState.VALIDATING)
        if not is_valid_target_url(job.target_url):
            raise InvalidInputError(f"Invalid URL: {job.target_url!r}")
        if job.payload is not None and not is_valid_untrusted_payload(job.payload):
            raise InvalidInputError("Invalid payload.")

        self._enter(job, FrameState.FETCHING)
        body = await fetch_frame(job.target_url, job.method, job.payload)

        self._enter(job, FrameState.CLASSIFYING)
        decoded = _decode_json(body)
        if decoded is not _NOT_JSON:
            if isinstance(decoded, dict) and is_transaction_payload(decoded):
                self._enter(job, FrameState.TX_READY)
                return TransactionPayload(data=decoded)
            raise UnrecognizedContentError(
                f"Target {job.target_url} answered JSON that is not a transaction."
            )

        self._enter(job, FrameState.PARSING_FRAME)
        head = parse_frame_head(body)

        image_url = await self._resolve_image(job, head)
        self._enter(job, FrameState.DONE)
        return FrameDocument(html=body, image_url=image_url)

    async def _resolve_image(self, job: FrameJob, head: list[Tag]) -> str | None:
        """Acquire, render and persist the frame image.  Never raises for image failures."""
        self._enter(job, FrameState.EXTRACTING_IMAGE)
        candidate = select_frame_image(head)
        try:
            image = await self._acquire(job, candidate)
            if image is None:
                return None
            self._enter(job, FrameState.PERSISTING)
            cached = await self._cache.store(
                image.content,
                image.mime_type,
                source_url=job.target_url,
                indexed=job.method is FrameMethod.GET,
            )
        except ImageUnavailableError as exc:
            logger.warning("No image for %s: %s", job.target_url, exc)
            return None
        return cached.public_url

    async def _acquire(self, job: FrameJob, candidate: str | None) -> AcquiredImage | None:
        if candidate is not None:
            self._enter(job, FrameState.PROBING)
            probe = await probe_image(candidate)
            self._enter(job, FrameState.ACQUIRING)
            return await fetch_image(candidate, probe)

        if job.method is not FrameMethod.GET or self._renderer is None:
            return None

        self._enter(job, FrameState.RENDERING)
        content = await self._renderer.render(job.target_url)
        return AcquiredImage(content=content, mime_type=RENDER_MIME_TYPE)
