"""Error kinds raised by the frame resolution pipeline.

Every failure a job can meet is a :class:`FrameError` subclass carrying
its :class:`ErrorKind`.  Terminal errors (validation, fetch,
classification) end the job; :class:`ImageUnavailableError` and its
subclasses only ever degrade a frame to "no image".
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from app.models.frames.result import FrameFailure


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    REMOTE_FETCH = "remote_fetch"
    UNRECOGNIZED_CONTENT = "unrecognized_content"
    INVALID_FRAME_CONTENT = "invalid_frame_content"
    IMAGE_UNAVAILABLE = "image_unavailable"
    STORAGE = "storage"
    INTERNAL = "internal"


class FrameError(Exception):
    """Base class for frame resolution failures."""

    kind: ClassVar[ErrorKind] = ErrorKind.INTERNAL

    def to_failure(self) -> FrameFailure:
        from app.models.frames.result import FrameFailure

        return FrameFailure(reason=str(self), error=self.kind)


class InvalidInputError(FrameError):
    """Target URL or untrusted payload is malformed."""

    kind = ErrorKind.INVALID_INPUT


class RemoteFetchError(FrameError):
    """Non-2xx status, timeout or transport failure contacting a remote host."""

    kind = ErrorKind.REMOTE_FETCH


class UnrecognizedContentError(FrameError):
    """Target answered with JSON that is not a transaction payload."""

    kind = ErrorKind.UNRECOGNIZED_CONTENT


class InvalidFrameContentError(FrameError):
    """Target answered with a body that cannot be parsed as a frame document."""

    kind = ErrorKind.INVALID_FRAME_CONTENT


class ImageUnavailableError(FrameError):
    """Image probe, download or render failed.  Never fails a job."""

    kind = ErrorKind.IMAGE_UNAVAILABLE


class RenderError(ImageUnavailableError):
    """The rendering fallback could not produce a snapshot."""


class StorageError(ImageUnavailableError):
    """Writing an image to the media cache failed."""

    kind = ErrorKind.STORAGE
