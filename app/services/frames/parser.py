"""Frame document parsing and image selection.

The parser only looks at the direct children of ``<head>``; frame
metadata is never nested deeper than that.
"""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup, ParserRejectedMarkup, Tag

from app.core.errors import InvalidFrameContentError
from app.services.frames.validators import is_valid_target_url

logger = logging.getLogger(__name__)

PRIMARY_IMAGE_KEYS = frozenset({"fc:frame:image", "of:image"})
FALLBACK_IMAGE_KEYS = frozenset({"og:image"})

_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
# Doctype and other ``<!...>`` declarations, including malformed ones.
# Comments go first so a ``>`` inside one cannot end the match early.
_DECLARATION_RE = re.compile(r"<![^>]*>")
_IMAGE_FILE_RE = re.compile(r".+?\.(?:jpe?g|png|gif)(?=$|[?#])", re.IGNORECASE)


def parse_frame_head(html: str) -> list[Tag]:
    """Parse *html* and return the element children of its ``<head>``.

    Raises:
        InvalidFrameContentError: the markup was rejected or has no head.
    """
    cleaned = _DECLARATION_RE.sub("", _COMMENT_RE.sub("", html))
    try:
        soup = BeautifulSoup(cleaned, "html.parser")
    except ParserRejectedMarkup as exc:
        raise InvalidFrameContentError(f"Frame content could not be parsed: {exc}") from exc

    head = soup.head
    if head is None:
        raise InvalidFrameContentError("Frame content has no <head> element.")
    return [node for node in head.children if isinstance(node, Tag)]


def _meta_keys(tag: Tag) -> set[str]:
    keys = set()
    for attr in ("property", "name"):
        value = tag.get(attr)
        if isinstance(value, str):
            keys.add(value)
    return keys


def select_frame_image(head_children: list[Tag]) -> str | None:
    """Pick the frame image URL from head ``<meta>`` tags.

    The first primary tag wins outright.  Without one, the first fallback
    tag is used.  The chosen URL must be a valid target URL ending in an
    image file name; any query string or fragment after it is dropped.
    Returns ``None`` when no usable image is referenced.
    """
    fallback: Tag | None = None
    selected: Tag | None = None
    for node in head_children:
        if node.name != "meta":
            continue
        keys = _meta_keys(node)
        if keys & PRIMARY_IMAGE_KEYS:
            selected = node
            break
        if fallback is None and keys & FALLBACK_IMAGE_KEYS:
            fallback = node
    if selected is None:
        selected = fallback
    if selected is None:
        return None

    content = selected.get("content")
    if not is_valid_target_url(content):
        logger.debug("Frame image reference rejected: %r", content)
        return None
    match = _IMAGE_FILE_RE.match(content)
    if match is None:
        logger.debug("Frame image reference has no image file suffix: %s", content)
        return None
    return match.group(0)
