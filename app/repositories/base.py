"""Abstract base class for all file-backed repositories.

Every storage tier in this project extends ``BaseRepository``.  A
repository owns one directory; all methods are blocking and are meant to
be run off the event loop (``asyncio.to_thread``) by the service layer.

Extending for a new tier:
    1. Add the directory setting to ``Settings``.
    2. Subclass ``BaseRepository`` and set ``ROOT_SETTING`` to its name.
    3. Call ``ensure_root()`` in the app lifespan (``main.py``).

Example::

    class ThumbnailRepository(BaseRepository):
        ROOT_SETTING = "thumbnail_dir"
"""

from __future__ import annotations

import logging
from abc import ABC
from pathlib import Path
from typing import ClassVar, TypeVar

from app.core.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="BaseRepository")


class BaseRepository(ABC):
    """Base class that wires a repository to its directory.

    Subclasses declare:
    - ``ROOT_SETTING`` - the ``Settings`` field holding the directory path.
    """

    ROOT_SETTING: ClassVar[str]

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def from_settings(cls: type[T], settings: Settings) -> T:
        """Instantiate the repository on the configured directory.

        Usage::

            repo = EphemeralImageRepository.from_settings(settings)
        """
        return cls(Path(getattr(settings, cls.ROOT_SETTING)))

    # ------------------------------------------------------------------
    # Directory management
    # ------------------------------------------------------------------

    def ensure_root(self) -> None:
        """Create the repository directory.  Called once at startup."""
        self._root.mkdir(parents=True, exist_ok=True)

    def write(self, filename: str, content: bytes) -> Path:
        """Write *content* to a new file under the root and return its path."""
        path = self._root / filename
        path.write_bytes(content)
        return path

    def delete(self, filename: str) -> None:
        """Remove *filename* from the root if it exists."""
        (self._root / filename).unlink(missing_ok=True)
