from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from app.core.errors import ErrorKind
from app.models.common import ErrorResponse
from app.models.frames.job import FrameMethod
from app.models.frames.result import FrameFailure, FrameResult, TransactionPayload
from app.models.frames.schemas import FramePostRequest, FrameResponse
from app.services.frames.service import FrameService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/frames", tags=["frames"])

_FAILURE_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.UNRECOGNIZED_CONTENT: 502,
    ErrorKind.INVALID_FRAME_CONTENT: 502,
    ErrorKind.REMOTE_FETCH: 503,
}

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------


def _get_service(request: Request) -> FrameService:
    """FastAPI dependency returning the ``FrameService`` built at startup."""
    return request.app.state.frame_service


def _to_response(result: FrameResult) -> FrameResponse:
    """Map a resolver outcome to the API shape, raising for failures."""
    if isinstance(result, FrameFailure):
        status = _FAILURE_STATUS.get(result.error)
        if status is None:
            raise HTTPException(status_code=503, detail="Unknown error")
        raise HTTPException(status_code=status, detail=result.reason)
    if isinstance(result, TransactionPayload):
        return FrameResponse(content=result.data)
    if result.image_url is None:
        return FrameResponse(content=result.html)
    return FrameResponse(content=result.html, image=result.image_url)


# ---------------------------------------------------------------------------
# GET /frames
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=FrameResponse,
    response_model_exclude_unset=True,
    responses=_ERROR_RESPONSES,
    summary="Resolve a frame through the job queue",
)
async def get_frame(
    url: str,
    service: FrameService = Depends(_get_service),
) -> FrameResponse:
    """Fetch the frame at *url* and proxy its image.

    Jobs are resolved one at a time in arrival order; the request waits
    until its own job is done.

    - **200**: frame or transaction payload resolved
    - **400**: invalid target URL
    - **502**: target answered content that is not a frame
    - **503**: target unreachable, or an unexpected error
    """
    logger.info("Frame proxy request received (GET): %s", url)
    try:
        nonce = service.submit(url, FrameMethod.GET)
        result = await service.await_result(nonce)
    except Exception as exc:
        logger.error("GET /frames unexpected error for %s: %s", url, exc)
        raise HTTPException(status_code=503, detail="Unknown error")
    return _to_response(result)


# ---------------------------------------------------------------------------
# POST /frames
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=FrameResponse,
    response_model_exclude_unset=True,
    responses=_ERROR_RESPONSES,
    summary="Resolve a frame action directly",
)
async def post_frame(
    request: FramePostRequest,
    service: FrameService = Depends(_get_service),
) -> FrameResponse:
    """POST the untrusted *payload* to *target* and return its response.

    Bypasses the queue.  No rendering fallback is attempted.

    - **200**: frame or transaction payload resolved
    - **400**: invalid target URL or payload
    - **422**: malformed request body
    - **502**: target answered content that is not a frame
    - **503**: target unreachable, or an unexpected error
    """
    logger.info("Frame proxy request received (POST): %s", request.target)
    try:
        result = await service.resolve_sync(
            request.target, FrameMethod.POST, request.payload
        )
    except Exception as exc:
        logger.error("POST /frames unexpected error for %s: %s", request.target, exc)
        raise HTTPException(status_code=503, detail="Unknown error")
    return _to_response(result)
