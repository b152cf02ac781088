"""
URL -> filesystem path mapping.

Every resource URL maps to ``<output_root>/<host>/<seg1>/.../<leaf>``. Segments that
would not fit a filesystem name are shortened deterministically so the same URL
always lands on the same file, across calls and across runs.
"""

import base64
import hashlib
import os
from pathlib import Path
from typing import List
from urllib.parse import urlsplit


# --------------------------------------------------------------------------------------
# Name shortening
# --------------------------------------------------------------------------------------
NAME_MAX = 255
NAME_MARGIN = 4
NAME_LIMIT = NAME_MAX - NAME_MARGIN  # 251: room left for the ".md5" sidecar suffix

SHORTEN_MARKER = "-TLDR-"
CHECKSUM_SUFFIX = ".md5"
INDEX_NAME = "index.html"


def _name_digest(name: str) -> str:
    """URL-safe base64 of the md5 of the full original segment (never contains '/')."""
    return base64.urlsafe_b64encode(hashlib.md5(name.encode("utf-8")).digest()).decode("ascii")


def shorten_name(name: str) -> str:
    """Return ``name`` unchanged if it fits, else prefix + marker + digest + extension."""
    if len(name) < NAME_LIMIT:
        return name

    ext = os.path.splitext(name)[1]
    suffix = SHORTEN_MARKER + _name_digest(name) + ext
    if len(suffix) > NAME_LIMIT:
        # A pathological "extension" would eat the whole budget; drop it.
        suffix = SHORTEN_MARKER + _name_digest(name)

    prefix = name[: NAME_LIMIT - len(suffix)]
    return prefix + suffix


# --------------------------------------------------------------------------------------
# URL mapping
# --------------------------------------------------------------------------------------
def _segments(pathname: str) -> List[str]:
    """Split a URL path into non-empty segments, resolving '.' and '..' like a browser would."""
    out: List[str] = []
    for seg in pathname.split("/"):
        if not seg or seg == ".":
            continue
        if seg == "..":
            if out:
                out.pop()
            continue
        out.append(seg)
    return out


def map_url(url: str, output_root: Path) -> Path:
    """Map a resource URL to the path of its body file under ``output_root``.

    The query string and fragment are ignored. A root path ("/" or empty) is stored
    as ``index.html``. The function is pure: it never touches the filesystem.
    """
    parts = urlsplit(url)
    host = parts.hostname or ""
    if not host:
        raise ValueError(f"URL has no host: {url!r}")

    pathname = parts.path
    if pathname in ("", "/"):
        pathname = "/" + INDEX_NAME

    segments = _segments(pathname) or [INDEX_NAME]
    return Path(output_root, shorten_name(host), *(shorten_name(s) for s in segments))


def checksum_path(body_path: Path) -> Path:
    """Sidecar location for a body file: same name with ``.md5`` appended."""
    return body_path.with_name(body_path.name + CHECKSUM_SUFFIX)
