from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class FrameMethod(str, Enum):
    GET = "GET"
    POST = "POST"


class FrameJob(BaseModel):
    """A unit of resolution work.

    Created by the request boundary, owned by the queue until dequeued and
    consumed exactly once by the resolver.
    """

    nonce: str = Field(default_factory=lambda: uuid4().hex)
    target_url: str
    method: FrameMethod = FrameMethod.GET
    payload: dict[str, Any] | None = None
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
