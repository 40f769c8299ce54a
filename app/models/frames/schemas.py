from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class FramePostRequest(BaseModel):
    """Request body for POST /frames."""

    target: str
    payload: dict[str, Any] | None = None


class FrameResponse(BaseModel):
    """API response shape for a resolved frame.

    ``content`` is the raw frame HTML or the transaction object; ``image``
    points into the media cache and is omitted when no image was resolved.
    """

    content: str | dict[str, Any]
    image: str | None = None
