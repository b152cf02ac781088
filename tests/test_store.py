"""Tests for the resource and checksum stores."""

import hashlib
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cdp_overlay.store import ChecksumStore, ResourceStore, StorageError, content_hash

URL = "https://example.com/css/site.css"


def test_content_hash_is_md5_digest() -> None:
    assert content_hash(b"hello") == hashlib.md5(b"hello").digest()
    assert len(content_hash(b"")) == 16


def test_resource_write_creates_dirs_and_reads_back(tmp_path: Path) -> None:
    store = ResourceStore(tmp_path)
    assert store.exists(URL) is False
    path = store.write(URL, b"body{}")
    assert path == tmp_path / "example.com" / "css" / "site.css"
    assert store.exists(URL) is True
    assert store.read(URL) == b"body{}"


def test_resource_write_is_idempotent_on_existing_dirs(tmp_path: Path) -> None:
    store = ResourceStore(tmp_path)
    store.write(URL, b"one")
    store.write("https://example.com/css/other.css", b"two")
    assert store.read(URL) == b"one"


def test_resource_read_missing_raises_storage_error(tmp_path: Path) -> None:
    with pytest.raises(StorageError) as exc:
        ResourceStore(tmp_path).read(URL)
    assert exc.value.url == URL
    assert exc.value.operation == "read body"


def test_resource_write_fails_when_parent_is_a_file(tmp_path: Path) -> None:
    """A file where a directory is needed surfaces as StorageError, not OSError."""
    (tmp_path / "example.com").write_text("not a dir")
    with pytest.raises(StorageError):
        ResourceStore(tmp_path).write(URL, b"x")


def test_saved_checksum_round_trip(tmp_path: Path) -> None:
    """Saving a checksum then reading it yields content_hash(body)."""
    checksums = ChecksumStore(tmp_path)
    assert checksums.read_saved(URL) is None
    digest = checksums.write_saved(URL, b"abc")
    assert digest == content_hash(b"abc")
    assert checksums.read_saved(URL) == content_hash(b"abc")
    assert (tmp_path / "example.com" / "css" / "site.css.md5").read_bytes() == content_hash(b"abc")


def test_checksum_of_body_follows_hand_edits(tmp_path: Path) -> None:
    resources = ResourceStore(tmp_path)
    checksums = ChecksumStore(tmp_path)
    assert checksums.checksum_of_body(URL) is None

    path = resources.write(URL, b"original")
    checksums.write_saved(URL, b"original")
    assert checksums.checksum_of_body(URL) == checksums.read_saved(URL)

    path.write_bytes(b"EDITED")
    assert checksums.checksum_of_body(URL) == content_hash(b"EDITED")
    assert checksums.read_saved(URL) == content_hash(b"original")


def test_resource_exists_wraps_os_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """A permission error while probing for a body surfaces as StorageError."""
    store = ResourceStore(tmp_path)
    locked = MagicMock(spec=Path)
    locked.is_file.side_effect = PermissionError(13, "Permission denied")
    monkeypatch.setattr(store, "path_for", lambda url: locked)
    with pytest.raises(StorageError) as exc:
        store.exists(URL)
    assert exc.value.operation == "check body"
    assert isinstance(exc.value.cause, PermissionError)
