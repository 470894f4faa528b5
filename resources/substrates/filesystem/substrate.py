"""Transport-agnostic protocol for filesystem blob substrate operations."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict


class FilesystemHealthStatus(BaseModel):
    """Filesystem blob substrate readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    detail: str


class FilesystemBlobSubstrate(Protocol):
    """Protocol for key-addressed filesystem blob persistence operations."""

    def health(self) -> FilesystemHealthStatus:
        """Probe local filesystem substrate readiness."""

    def resolve_path(self, *, key: str) -> Path:
        """Resolve one deterministic file path for a blob key."""

    def write_blob(self, *, key: str, content: bytes) -> Path:
        """Write one blob atomically and return resolved final path."""

    def read_blob(self, *, key: str) -> bytes:
        """Read one blob by key."""

    def delete_blob(self, *, key: str) -> bool:
        """Delete one blob and return whether a file existed."""
