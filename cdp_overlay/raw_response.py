"""
Serialize a response into the base64 raw HTTP message accepted by
``Network.continueInterceptedRequest(rawResponse=...)``.

Layout::

    <code> <reason>\\n
    <name>: <value>\\n            (every header except status/content-encoding/content-length)
    Content-length: <len>\\n
    \\n
    <body bytes>
"""

import base64
from http import HTTPStatus
from typing import Any, Dict, Mapping, Optional

# Synthetic ("status"), meaningless after decoding ("content-encoding") or recomputed.
EXCLUDED_HEADERS = frozenset({"status", "content-encoding", "content-length"})

HEADER_ENCODING = "utf-8"


def reason_phrase(code: int) -> str:
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return "Unknown"


def normalize_headers(headers: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Ordered mapping of lowercase header name -> string value.

    Later duplicates (differing only in case) are joined onto the first with a newline,
    the same way Chrome reports repeated headers.
    """
    out: Dict[str, str] = {}
    for name, value in (headers or {}).items():
        key = str(name).lower()
        value = str(value)
        out[key] = f"{out[key]}\n{value}" if key in out else value
    return out


def status_from_headers(headers: Mapping[str, str], fallback: int) -> int:
    """Numeric status from a ``status`` pseudo-header, else ``fallback``."""
    raw = headers.get("status", "")
    try:
        return int(str(raw).strip().split()[0])
    except (IndexError, ValueError):
        return fallback


def build_raw_response(status: int, headers: Mapping[str, str], body: bytes) -> str:
    """Return the full message (status line, filtered headers, body) as base64 text."""
    lines = [f"{status} {reason_phrase(status)}"]
    for name, value in headers.items():
        if name.lower() in EXCLUDED_HEADERS:
            continue
        # Chrome folds repeated headers (Set-Cookie) into one newline-separated value.
        for part in value.split("\n"):
            lines.append(f"{name}: {part}")
    lines.append(f"Content-length: {len(body)}")

    head = ("\n".join(lines) + "\n\n").encode(HEADER_ENCODING)
    return base64.b64encode(head + body).decode("ascii")
