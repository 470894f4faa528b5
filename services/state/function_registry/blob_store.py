"""Code blob store composing SQL metadata with filesystem payloads.

A blob's staged flag lives in the ``code_blobs`` row; its bytes live in the
filesystem substrate under the blob's ULID. Payloads are written before rows
and removed before rows, except for conditional (staged-only) deletes where
the row decides.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from packages.registry_shared.config import RegistrySettings
from packages.registry_shared.ids import (
    generate_ulid_bytes,
    parse_ulid_or_none,
    ulid_bytes_to_str,
)
from packages.registry_shared.logging import get_logger
from resources.substrates.filesystem import (
    FilesystemBlobSubstrate,
    FilesystemHealthStatus,
    LocalFilesystemBlobSubstrate,
    resolve_filesystem_substrate_settings,
)
from services.state.function_registry.data import (
    FunctionRegistryRuntime,
    SqlCodeBlobRepository,
)
from services.state.function_registry.domain import CodeBlob, CodeContent
from services.state.function_registry.interfaces import CodeBlobRepository

_LOGGER = get_logger(__name__)


def utc_now() -> datetime:
    """Return the current timezone-aware UTC time."""
    return datetime.now(UTC)


class CodeBlobStore:
    """Stage, claim, read and delete code payloads by blob id."""

    def __init__(
        self,
        *,
        repository: CodeBlobRepository,
        payloads: FilesystemBlobSubstrate,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repository = repository
        self._payloads = payloads
        self._clock = clock

    def stage(self, *, content: bytes, filename: str, mimetype: str) -> CodeBlob:
        """Persist one upload as a staged blob and return its record."""
        blob_id = generate_ulid_bytes()
        key = ulid_bytes_to_str(blob_id)
        self._payloads.write_blob(key=key, content=content)
        try:
            return self._repository.insert_blob(
                blob_id=blob_id,
                filename=filename,
                mimetype=mimetype,
                size_bytes=len(content),
                uploaded_at=self._clock(),
            )
        except Exception:
            self._discard_payload(key)
            raise

    def claim(self, blob_id: str) -> bool:
        """Flip one blob from staged to claimed; first caller wins.

        Malformed, missing and already-claimed ids all return ``False``.
        """
        key = parse_ulid_or_none(blob_id)
        if key is None:
            return False
        return self._repository.claim_blob(blob_id=key)

    def get(self, blob_id: str) -> CodeBlob | None:
        """Return blob metadata, or ``None`` for unknown or malformed ids."""
        key = parse_ulid_or_none(blob_id)
        if key is None:
            return None
        return self._repository.get_blob(blob_id=key)

    def read(self, blob_id: str) -> CodeContent | None:
        """Return blob metadata with payload bytes.

        Raises ``FileNotFoundError`` when the row exists but the payload does not.
        """
        blob = self.get(blob_id)
        if blob is None:
            return None
        return CodeContent(blob=blob, content=self._payloads.read_blob(key=blob.blob_id))

    def delete(self, blob_id: str) -> bool:
        """Delete one blob regardless of state; missing blobs report ``False``."""
        key = parse_ulid_or_none(blob_id)
        if key is None:
            return False
        removed_payload = self._payloads.delete_blob(key=ulid_bytes_to_str(key))
        removed_row = self._repository.delete_blob(blob_id=key)
        return removed_row or removed_payload

    def delete_if_staged(self, blob_id: str) -> bool:
        """Delete one blob only while it is still staged.

        The payload is removed only after the conditional row delete succeeds,
        so a blob claimed concurrently keeps its bytes.
        """
        key = parse_ulid_or_none(blob_id)
        if key is None:
            return False
        if not self._repository.delete_staged_blob(blob_id=key):
            return False
        self._discard_payload(ulid_bytes_to_str(key))
        return True

    def list_expired_staged(self, *, cutoff: datetime) -> list[CodeBlob]:
        """List staged blobs uploaded before ``cutoff``."""
        return self._repository.list_staged_before(cutoff=cutoff)

    def health(self) -> FilesystemHealthStatus:
        """Return payload substrate readiness."""
        return self._payloads.health()

    def _discard_payload(self, key: str) -> None:
        """Best-effort payload removal after its row is gone or never landed."""
        try:
            self._payloads.delete_blob(key=key)
        except OSError as exc:
            _LOGGER.warning(
                "Failed to remove code payload: blob_id=%s exception_type=%s",
                key,
                type(exc).__name__,
                exc_info=exc,
            )


def build_code_blob_store(
    *,
    settings: RegistrySettings,
    runtime: FunctionRegistryRuntime | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> CodeBlobStore:
    """Build the default SQL + filesystem code blob store from settings."""
    resolved_runtime = (
        FunctionRegistryRuntime.from_settings(settings) if runtime is None else runtime
    )
    return CodeBlobStore(
        repository=SqlCodeBlobRepository(resolved_runtime.schema_sessions),
        payloads=LocalFilesystemBlobSubstrate(
            settings=resolve_filesystem_substrate_settings(settings)
        ),
        clock=clock,
    )
