"""Filesystem-backed blob substrate with atomic safe-write semantics."""

from __future__ import annotations

import os
from pathlib import Path
from tempfile import NamedTemporaryFile

from resources.substrates.filesystem.config import FilesystemSubstrateSettings
from resources.substrates.filesystem.substrate import (
    FilesystemBlobSubstrate,
    FilesystemHealthStatus,
)
from resources.substrates.filesystem.validation import normalize_blob_key

_PAYLOAD_SUFFIX = ".bin"


class LocalFilesystemBlobSubstrate(FilesystemBlobSubstrate):
    """Persist/retrieve blobs on local disk under ULID-keyed paths."""

    def __init__(self, *, settings: FilesystemSubstrateSettings) -> None:
        self._settings = settings
        self._root = settings.root_path()

    def health(self) -> FilesystemHealthStatus:
        """Return filesystem substrate readiness for root dir access."""
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return FilesystemHealthStatus(
                ready=False,
                detail=f"filesystem probe failed: {type(exc).__name__}",
            )
        if not self._root.is_dir():
            return FilesystemHealthStatus(
                ready=False,
                detail=f"root path is not a directory: {self._root}",
            )
        if not os.access(self._root, os.W_OK):
            return FilesystemHealthStatus(
                ready=False,
                detail=f"root path is not writable: {self._root}",
            )
        return FilesystemHealthStatus(ready=True, detail="ok")

    def resolve_path(self, *, key: str) -> Path:
        """Resolve the deterministic path for one key.

        ULIDs lead with a timestamp, so fan-out uses the two trailing
        (random) characters.
        """
        normalized = normalize_blob_key(key)
        return self._root / normalized[-2:] / f"{normalized}{_PAYLOAD_SUFFIX}"

    def write_blob(self, *, key: str, content: bytes) -> Path:
        """Write one blob atomically and return the resolved final path."""
        path = self.resolve_path(key=key)

        if not self._root.exists():
            self._root.mkdir(parents=True, exist_ok=True)
        if not self._root.is_dir():
            raise OSError(f"filesystem substrate root is not a directory: {self._root}")
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path: Path | None = None
        try:
            with NamedTemporaryFile(
                mode="wb",
                prefix=f".{self._settings.temp_prefix}-",
                suffix=".tmp",
                dir=path.parent,
                delete=False,
            ) as handle:
                tmp_path = Path(handle.name)
                handle.write(content)
                handle.flush()
                if self._settings.fsync_writes:
                    os.fsync(handle.fileno())

            os.replace(tmp_path, path)
            return path
        finally:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink(missing_ok=True)

    def read_blob(self, *, key: str) -> bytes:
        """Read one blob by key."""
        return self.resolve_path(key=key).read_bytes()

    def delete_blob(self, *, key: str) -> bool:
        """Delete one blob path and return whether a file existed."""
        path = self.resolve_path(key=key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True
