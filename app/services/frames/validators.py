"""Pure predicates over target URLs and untrusted JSON.

None of these functions touch the network or raise; malformed input is
simply reported as invalid.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

_TARGET_URL_RE = re.compile(
    r"https?://."
    r"[-a-zA-Z0-9@:%._+~#=]{2,256}"
    r"\.[a-z]{2,6}\b"
    r"[-a-zA-Z0-9@:%_+.~#?&/=]*"
)

UNTRUSTED_DATA_KEY = "untrustedData"
UNTRUSTED_DATA_FIELDS = ("fid", "url", "buttonIndex")


def is_valid_target_url(url: Any) -> bool:
    """Return True if *url* is an absolute http(s) URL with a dotted host."""
    if not isinstance(url, str):
        return False
    return _TARGET_URL_RE.fullmatch(url) is not None


def is_valid_untrusted_payload(payload: Any) -> bool:
    """Return True if *payload* carries ``untrustedData`` with all required fields."""
    if not isinstance(payload, Mapping):
        return False
    untrusted = payload.get(UNTRUSTED_DATA_KEY)
    if not isinstance(untrusted, Mapping):
        return False
    return all(field in untrusted for field in UNTRUSTED_DATA_FIELDS)


def is_transaction_payload(value: Any) -> bool:
    """Return True if *value* is (or decodes to) a transaction-intent object.

    Strings and bytes are parsed as JSON first.  A transaction needs a
    ``chainId``, a ``method`` and a ``params`` object naming the recipient
    under ``to``.
    """
    if isinstance(value, (str, bytes, bytearray)):
        try:
            value = json.loads(value)
        except ValueError:
            return False
    if not isinstance(value, Mapping):
        return False
    if "chainId" not in value or "method" not in value:
        return False
    params = value.get("params")
    return isinstance(params, Mapping) and "to" in params
