"""Unit tests for local filesystem blob substrate behavior."""

from __future__ import annotations

from pathlib import Path

import pytest

import resources.substrates.filesystem.filesystem_substrate as filesystem_substrate_module
from resources.substrates.filesystem import (
    FilesystemSubstrateSettings,
    LocalFilesystemBlobSubstrate,
)

_KEY = "01HZX3J8Q6V7W8X9Y0Z1A2B3C4"


def _substrate(tmp_path: Path) -> LocalFilesystemBlobSubstrate:
    """Create one substrate rooted in test temp directory."""
    settings = FilesystemSubstrateSettings(root_dir=str(tmp_path))
    return LocalFilesystemBlobSubstrate(settings=settings)


def test_resolve_path_fans_out_by_trailing_key_characters(tmp_path: Path) -> None:
    """Path layout shards by the random tail of the key."""
    substrate = _substrate(tmp_path)

    path = substrate.resolve_path(key=_KEY.lower())

    assert path == tmp_path.resolve() / "C4" / f"{_KEY}.bin"


def test_write_read_delete_cycle(tmp_path: Path) -> None:
    """Write, read, and delete should roundtrip one blob cleanly."""
    substrate = _substrate(tmp_path)

    path = substrate.write_blob(key=_KEY, content=b"hello")

    assert path.exists()
    assert substrate.read_blob(key=_KEY) == b"hello"
    assert substrate.delete_blob(key=_KEY) is True
    assert substrate.delete_blob(key=_KEY) is False


def test_read_missing_blob_raises_file_not_found(tmp_path: Path) -> None:
    """Reading an absent key surfaces ``FileNotFoundError``."""
    with pytest.raises(FileNotFoundError):
        _substrate(tmp_path).read_blob(key=_KEY)


def test_write_failure_cleans_temp_files(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Temp files should be cleaned even when atomic replace fails."""
    substrate = _substrate(tmp_path)

    def _raise_replace(*args: object, **kwargs: object) -> object:
        del args, kwargs
        raise OSError("replace failed")

    monkeypatch.setattr(filesystem_substrate_module.os, "replace", _raise_replace)

    with pytest.raises(OSError, match="replace failed"):
        substrate.write_blob(key=_KEY, content=b"payload")

    assert list((tmp_path / "C4").glob(".codetmp-*.tmp")) == []


def test_write_fails_when_root_is_file(tmp_path: Path) -> None:
    """Root path configured as a file must raise explicit OS error."""
    root_file = tmp_path / "root-file"
    root_file.write_text("not-a-dir", encoding="utf-8")
    substrate = LocalFilesystemBlobSubstrate(
        settings=FilesystemSubstrateSettings(root_dir=str(root_file))
    )

    with pytest.raises(OSError, match="not a directory"):
        substrate.write_blob(key=_KEY, content=b"payload")


def test_health_reports_file_root_as_not_ready(tmp_path: Path) -> None:
    """A root path that is a regular file is not ready."""
    root_file = tmp_path / "root-file"
    root_file.write_text("x", encoding="utf-8")
    substrate = LocalFilesystemBlobSubstrate(
        settings=FilesystemSubstrateSettings(root_dir=str(root_file))
    )

    assert substrate.health().ready is False
    assert _substrate(tmp_path / "fresh").health().ready is True


@pytest.mark.parametrize("key", ["../../etc/passwd", "abc", "I" * 26, ""])
def test_invalid_keys_are_rejected(tmp_path: Path, key: str) -> None:
    """Keys must be canonical ULIDs so paths cannot escape the root."""
    with pytest.raises(ValueError):
        _substrate(tmp_path).resolve_path(key=key)
