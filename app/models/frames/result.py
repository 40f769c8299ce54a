from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from app.core.errors import ErrorKind


class TransactionPayload(BaseModel):
    """The target answered with a transaction-intent object."""

    kind: Literal["transaction"] = "transaction"
    data: dict[str, Any]


class FrameDocument(BaseModel):
    """The target answered with an HTML frame.

    ``image_url`` is set only when an image was acquired (or rendered) and
    persisted in the media cache.
    """

    kind: Literal["frame"] = "frame"
    html: str
    image_url: str | None = None


class FrameFailure(BaseModel):
    kind: Literal["failure"] = "failure"
    reason: str
    error: ErrorKind


FrameResult = Annotated[
    Union[TransactionPayload, FrameDocument, FrameFailure],
    Field(discriminator="kind"),
]
