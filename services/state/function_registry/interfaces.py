"""Transport-neutral protocol interfaces used by Function Registry Service."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from services.state.function_registry.domain import CodeBlob, FunctionVersionRow


class CodeBlobRepository(Protocol):
    """Protocol for code blob metadata persistence and the claim transition."""

    def insert_blob(
        self,
        *,
        blob_id: bytes,
        filename: str,
        mimetype: str,
        size_bytes: int,
        uploaded_at: datetime,
    ) -> CodeBlob:
        """Insert one staged blob row."""

    def get_blob(self, *, blob_id: bytes) -> CodeBlob | None:
        """Read one blob row by id."""

    def claim_blob(self, *, blob_id: bytes) -> bool:
        """Atomically flip one blob from staged to claimed."""

    def delete_blob(self, *, blob_id: bytes) -> bool:
        """Delete one blob row regardless of state."""

    def delete_staged_blob(self, *, blob_id: bytes) -> bool:
        """Delete one blob row only while it is still staged."""

    def list_staged_before(self, *, cutoff: datetime) -> list[CodeBlob]:
        """List staged blobs uploaded before ``cutoff``."""


class FunctionVersionRepository(Protocol):
    """Protocol for function version row persistence operations."""

    def insert_row(
        self,
        *,
        function_id: str,
        version: str,
        type: str,
        owner: str,
        blob_id: str,
        outputs: Sequence[str],
        now: datetime,
    ) -> FunctionVersionRow:
        """Insert one row for ``(function_id, version, type, owner)``."""

    def version_exists(self, *, function_id: str, version: str, owner: str) -> bool:
        """Return whether any row exists for one logical function version."""

    def list_rows(
        self,
        *,
        function_id: str,
        owner: str,
        version: str | None = None,
        type: str | None = None,
    ) -> list[FunctionVersionRow]:
        """List rows for one function in insertion order."""

    def update_row(
        self,
        *,
        record_id: str,
        outputs: Sequence[str],
        updated_at: datetime,
        blob_id: str | None = None,
    ) -> FunctionVersionRow | None:
        """Rewrite one row and return its new state."""

    def delete_row(self, *, record_id: str) -> bool:
        """Delete one row by record id."""

    def find_latest(
        self, *, offset: int, limit: int, id_partial: str | None = None
    ) -> tuple[list[FunctionVersionRow], int]:
        """Return one page of latest representatives and the function total."""
