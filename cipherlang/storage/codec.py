"""Share-token codec: base64 over the UTF-8 JSON of one language record.

Base64 survives channels that mangle raw JSON or non-ASCII text (SMS, mail,
clipboards). Whitespace inserted by such channels is ignored on decode.
"""

from __future__ import annotations

import base64
import json
import re
from typing import Any

_WHITESPACE_RE = re.compile(r"\s+")


def encode_token(record: dict[str, Any]) -> str:
    raw = json.dumps(record, ensure_ascii=False).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_token(token: str) -> dict[str, Any]:
    """Raise ``ValueError`` when the token is not base64/UTF-8/JSON object."""
    compact = _WHITESPACE_RE.sub("", token or "")
    if not compact:
        raise ValueError("empty token")
    raw = base64.b64decode(compact.encode("ascii", errors="strict"), validate=True)
    loaded = json.loads(raw.decode("utf-8"))
    if not isinstance(loaded, dict):
        raise ValueError("token does not hold a record")
    return loaded
