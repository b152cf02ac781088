"""
Three-way decision between server content, last saved snapshot and local file.

For every intercepted (url, server_body) pair the engine picks one of:

  ABSENT   - nothing stored yet: save body + checksum, serve the server body
  REPLACE  - server body still matches the saved checksum: serve the local file,
             which may carry hand edits
  REFRESH  - server changed but the local file is unedited: serve the server body
             and make it the new saved snapshot (STALE instead when refreshing
             is disabled: served, nothing written)
  CONFLICT - server changed and the local file was edited: serve the server body,
             keep the local edits on disk, warn

Checks run in that order and the first match wins. A storage failure at any point
falls back to serving the server body (state FAILED).
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from cdp_overlay.store import ChecksumStore, ResourceStore, StorageError, content_hash

log = logging.getLogger(__name__)


class SyncState(str, Enum):
    ABSENT = "absent"
    REPLACE = "replace"
    REFRESH = "refresh"
    STALE = "stale"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncResult:
    state: SyncState
    body: bytes
    error: Optional[StorageError] = None

    @property
    def substituted(self) -> bool:
        """True when the local copy is served instead of the server body."""
        return self.state is SyncState.REPLACE and self.error is None


class SyncEngine:
    """Classifies intercepted responses against the stores rooted at ``output_root``."""

    def __init__(
        self,
        output_root: Path,
        refresh_unedited: bool = True,
        serialize_per_path: bool = True,
    ) -> None:
        self.resources = ResourceStore(output_root)
        self.checksums = ChecksumStore(output_root)
        self.refresh_unedited = refresh_unedited
        self.serialize_per_path = serialize_per_path
        self._locks: "weakref.WeakValueDictionary[Path, asyncio.Lock]" = weakref.WeakValueDictionary()

    # ----------------------------------------------------------------------------------
    # Async entry point
    # ----------------------------------------------------------------------------------
    async def resolve(self, url: str, server_body: bytes) -> SyncResult:
        """Classify and act on one response without blocking the event loop."""
        if not self.serialize_per_path:
            return await asyncio.to_thread(self.resolve_blocking, url, server_body)

        async with self._lock_for(url):
            return await asyncio.to_thread(self.resolve_blocking, url, server_body)

    def _lock_for(self, url: str) -> asyncio.Lock:
        key = self.resources.path_for(url)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    # ----------------------------------------------------------------------------------
    # Decision logic (runs on a worker thread)
    # ----------------------------------------------------------------------------------
    def resolve_blocking(self, url: str, server_body: bytes) -> SyncResult:
        try:
            has_local = self.resources.exists(url)
        except StorageError as e:
            log.error("Cannot check for local copy: %s", e)
            return SyncResult(SyncState.FAILED, server_body, e)
        if not has_local:
            return self._create(url, server_body)

        try:
            saved = self.checksums.read_saved(url)
        except StorageError as e:
            log.error("Cannot read saved checksum: %s", e)
            return SyncResult(SyncState.FAILED, server_body, e)

        if saved is not None and content_hash(server_body) == saved:
            return self._replace(url, server_body)

        try:
            on_disk = self.checksums.checksum_of_body(url)
        except StorageError as e:
            log.error("Cannot checksum local copy: %s", e)
            return SyncResult(SyncState.FAILED, server_body, e)

        if saved is not None and on_disk == saved:
            return self._refresh(url, server_body)

        if saved is None:
            log.warning("No saved checksum for %s, treating local copy as edited", url)
        log.warning("Response for %s is different than original, ignoring local edits", url)
        return SyncResult(SyncState.CONFLICT, server_body)

    def save(self, url: str, body: bytes) -> None:
        """Write body first, then its checksum."""
        self.resources.write(url, body)
        self.checksums.write_saved(url, body)

    def _create(self, url: str, server_body: bytes) -> SyncResult:
        log.info("Create local copy %s", url)
        try:
            self.save(url, server_body)
        except StorageError as e:
            log.error("Failed to save server response: %s", e)
            return SyncResult(SyncState.FAILED, server_body, e)
        return SyncResult(SyncState.ABSENT, server_body)

    def _replace(self, url: str, server_body: bytes) -> SyncResult:
        log.info("Replacing %s with local copy", url)
        try:
            local = self.resources.read(url)
        except StorageError as e:
            log.error("Failed to read saved response: %s", e)
            return SyncResult(SyncState.REPLACE, server_body, e)
        return SyncResult(SyncState.REPLACE, local)

    def _refresh(self, url: str, server_body: bytes) -> SyncResult:
        if not self.refresh_unedited:
            log.info("Server changed %s, local copy left as is", url)
            return SyncResult(SyncState.STALE, server_body)

        log.info("Refreshing local copy %s", url)
        try:
            self.save(url, server_body)
        except StorageError as e:
            log.error("Failed to refresh local copy: %s", e)
            return SyncResult(SyncState.REFRESH, server_body, e)
        return SyncResult(SyncState.REFRESH, server_body)
