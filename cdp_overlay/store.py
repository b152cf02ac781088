"""
On-disk stores for resource bodies and their checksum sidecars.

Both stores are plain synchronous objects rooted at an explicit output directory.
Callers running inside the event loop push them onto a worker thread.
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional

from cdp_overlay.paths import checksum_path, map_url

log = logging.getLogger(__name__)


class StorageError(Exception):
    """A disk operation on a stored resource failed."""

    def __init__(self, url: str, operation: str, cause: BaseException) -> None:
        super().__init__(f"{operation} failed for {url}: {cause}")
        self.url = url
        self.operation = operation
        self.cause = cause


def content_hash(data: bytes) -> bytes:
    """16-byte md5 digest used as the saved/compared checksum."""
    return hashlib.md5(data).digest()


def ensure_parent_dir(p: Path) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)


# --------------------------------------------------------------------------------------
# Resource bodies
# --------------------------------------------------------------------------------------
class ResourceStore:
    """Body files at the mapped path of each URL."""

    def __init__(self, output_root: Path) -> None:
        self.output_root = Path(output_root)

    def path_for(self, url: str) -> Path:
        return map_url(url, self.output_root)

    def exists(self, url: str) -> bool:
        try:
            return self.path_for(url).is_file()
        except OSError as e:
            raise StorageError(url, "check body", e) from e

    def read(self, url: str) -> bytes:
        try:
            return self.path_for(url).read_bytes()
        except OSError as e:
            raise StorageError(url, "read body", e) from e

    def write(self, url: str, body: bytes) -> Path:
        """Write ``body`` to the mapped path, creating parent directories as needed."""
        path = self.path_for(url)
        try:
            ensure_parent_dir(path)
            path.write_bytes(body)
        except OSError as e:
            raise StorageError(url, "write body", e) from e
        log.debug("Wrote %d bytes to %s", len(body), path)
        return path


# --------------------------------------------------------------------------------------
# Checksum sidecars
# --------------------------------------------------------------------------------------
class ChecksumStore:
    """``<body>.md5`` files holding the digest of a body as of its last save."""

    def __init__(self, output_root: Path) -> None:
        self.output_root = Path(output_root)

    def path_for(self, url: str) -> Path:
        return checksum_path(map_url(url, self.output_root))

    def read_saved(self, url: str) -> Optional[bytes]:
        """Saved digest, or None when no sidecar exists."""
        try:
            return self.path_for(url).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(url, "read checksum", e) from e

    def write_saved(self, url: str, body: bytes) -> bytes:
        digest = content_hash(body)
        path = self.path_for(url)
        try:
            ensure_parent_dir(path)
            path.write_bytes(digest)
        except OSError as e:
            raise StorageError(url, "write checksum", e) from e
        return digest

    def checksum_of_body(self, url: str) -> Optional[bytes]:
        """Digest of the body as it is on disk now (possibly hand-edited), or None if missing."""
        try:
            data = map_url(url, self.output_root).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(url, "checksum body", e) from e
        return content_hash(data)
