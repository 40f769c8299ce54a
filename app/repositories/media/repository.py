from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path

from app.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")

# Leaves room for the extension under the usual 255-byte filename limit.
MAX_KEY_LENGTH = 200
_DIGEST_LENGTH = 40


def sanitize_source_url(url: str) -> str:
    """Reduce *url* to its ASCII alphanumeric characters."""
    return _NON_ALNUM_RE.sub("", url)


def index_key(source_url: str) -> str:
    """Return the index filename stem for *source_url*.

    Short URLs map to their sanitized form.  Longer ones are cut down and
    suffixed with a SHA-1 of the full URL, so distinct URLs sharing a long
    prefix still get distinct keys.
    """
    key = sanitize_source_url(source_url)
    if len(key) <= MAX_KEY_LENGTH:
        return key
    digest = hashlib.sha1(source_url.encode("utf-8")).hexdigest()
    return key[: MAX_KEY_LENGTH - _DIGEST_LENGTH] + digest


class EphemeralImageRepository(BaseRepository):
    """TTL-evicted tier: one file per stored image, named ``<id>.<ext>``."""

    ROOT_SETTING = "ephemeral_dir"

    def sweep(self, now_ms: int, ttl_ms: int) -> int:
        """Delete files whose id timestamp is older than *ttl_ms*.

        Files without a numeric id prefix (``.gitkeep`` and friends) are
        left alone.  Returns the number of files removed.
        """
        removed = 0
        for entry in self._root.iterdir():
            if not entry.is_file():
                continue
            prefix = entry.name.split("-", 1)[0]
            if not prefix.isdigit():
                continue
            if now_ms - int(prefix) > ttl_ms:
                entry.unlink(missing_ok=True)
                removed += 1
        return removed


class IndexImageRepository(BaseRepository):
    """Long-lived tier keyed by sanitized source URL (see :func:`index_key`).  Never swept.

    A new write for the same source URL replaces the previous file.
    """

    ROOT_SETTING = "index_dir"

    def replace(self, source_url: str, ext: str, content: bytes) -> Path:
        """Store *content* for *source_url*, dropping any earlier entry.

        Earlier entries are removed whatever their extension, so a source
        URL never maps to more than one file.
        """
        key = index_key(source_url)
        for stale in self._root.glob(f"{key}.*"):
            stale.unlink(missing_ok=True)
        return self.write(f"{key}.{ext}", content)
