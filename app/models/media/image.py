from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel


class CachedImage(BaseModel):
    """A persisted image artifact.

    ``id`` is ``<creationEpochMillis>-<uuid5>``; its prefix is the creation
    instant and is what the eviction sweep reads back.
    """

    id: str
    mime_type: str
    size: int
    created_at: datetime
    public_url: str
    index_url: str | None = None


def created_at_from_id(image_id: str) -> datetime:
    """Return the creation instant encoded in an image id.

    Raises:
        ValueError: when the id has no integer millisecond prefix.
    """
    prefix = image_id.split("-", 1)[0]
    if not prefix.isdigit():
        raise ValueError(f"Image id has no timestamp prefix: {image_id!r}")
    return datetime.fromtimestamp(int(prefix) / 1000, tz=timezone.utc)
