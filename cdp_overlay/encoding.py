"""Turn the body string returned by the control channel into bytes."""

import base64
import binascii
import codecs
from typing import Optional

# Labels browsers decode as windows-1252 (WHATWG Encoding Standard), which Python
# would otherwise resolve to the stricter latin-1 / ascii codecs.
WINDOWS_1252_LABELS = frozenset({
    "ansi_x3.4-1968", "ascii", "cp1252", "cp819", "csisolatin1", "ibm819",
    "iso-8859-1", "iso-ir-100", "iso8859-1", "iso88591", "iso_8859-1",
    "iso_8859-1:1987", "l1", "latin1", "latin-1", "us-ascii", "windows-1252", "x-cp1252",
})


class EncodingError(Exception):
    """The response body cannot be turned into bytes."""


def resolve_charset(label: str) -> Optional[str]:
    """Python codec name for a charset label, or None when Python has no such codec."""
    charset = label.strip().strip("\"'").lower()
    if charset in WINDOWS_1252_LABELS:
        return "cp1252"
    try:
        codecs.lookup(charset)
    except LookupError:
        return None
    return charset


def charset_from_content_type(content_type: Optional[str]) -> Optional[str]:
    """Charset of a ``text/*`` content type, or None when absent or unknown to Python."""
    if not content_type or not content_type.strip().lower().startswith("text"):
        return None

    for param in content_type.split(";")[1:]:
        key, sep, value = param.partition("=")
        if not sep or key.strip().lower() != "charset":
            continue
        return resolve_charset(value)
    return None


def decode_body(body: str, base64_encoded: bool, charset: Optional[str]) -> bytes:
    if base64_encoded:
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncodingError(f"Invalid base64 response body: {e}") from e

    codec = resolve_charset(charset) if charset else None
    if not codec:
        raise EncodingError("Non-base64 response body with no encoding specified is not supported")

    try:
        return body.encode(codec)
    except UnicodeEncodeError as e:
        raise EncodingError(f"Response body does not fit charset {charset}: {e}") from e
