"""Repository for code blob metadata and the staged-flag claim protocol."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, insert, select, update

from packages.registry_shared.ids import ulid_bytes_to_str
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from services.state.function_registry.domain import CodeBlob
from services.state.function_registry.interfaces import CodeBlobRepository

from .schema import code_blobs


class SqlCodeBlobRepository(CodeBlobRepository):
    """SQL repository over the ``code_blobs`` table."""

    def __init__(self, sessions: ServiceSchemaSessionProvider) -> None:
        self._sessions = sessions

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
        values = {
            "id": blob_id,
            "filename": filename,
            "mimetype": mimetype,
            "size_bytes": size_bytes,
            "staged": True,
            "uploaded_at": uploaded_at,
        }
        with self._sessions.session() as session:
            session.execute(insert(code_blobs).values(**values))
        return _to_blob(values)

    def get_blob(self, *, blob_id: bytes) -> CodeBlob | None:
        """Read one blob row by id."""
        with self._sessions.session() as session:
            row = (
                session.execute(select(code_blobs).where(code_blobs.c.id == blob_id))
                .mappings()
                .one_or_none()
            )
            return None if row is None else _to_blob(row)

    def claim_blob(self, *, blob_id: bytes) -> bool:
        """Flip ``staged`` to false iff it is currently true.

        The conditional UPDATE is the only synchronization point; exactly one
        concurrent caller observes ``rowcount == 1``.
        """
        with self._sessions.session() as session:
            result = session.execute(
                update(code_blobs)
                .where(code_blobs.c.id == blob_id, code_blobs.c.staged.is_(True))
                .values(staged=False)
            )
            return int(result.rowcount or 0) == 1

    def delete_blob(self, *, blob_id: bytes) -> bool:
        """Delete one blob row regardless of state."""
        with self._sessions.session() as session:
            result = session.execute(delete(code_blobs).where(code_blobs.c.id == blob_id))
            return int(result.rowcount or 0) > 0

    def delete_staged_blob(self, *, blob_id: bytes) -> bool:
        """Delete one blob row only while it is still staged."""
        with self._sessions.session() as session:
            result = session.execute(
                delete(code_blobs).where(
                    code_blobs.c.id == blob_id, code_blobs.c.staged.is_(True)
                )
            )
            return int(result.rowcount or 0) == 1

    def list_staged_before(self, *, cutoff: datetime) -> list[CodeBlob]:
        """List staged blobs uploaded strictly before ``cutoff``."""
        with self._sessions.session() as session:
            rows = (
                session.execute(
                    select(code_blobs)
                    .where(
                        code_blobs.c.staged.is_(True),
                        code_blobs.c.uploaded_at < cutoff,
                    )
                    .order_by(code_blobs.c.uploaded_at, code_blobs.c.id)
                )
                .mappings()
                .all()
            )
            return [_to_blob(row) for row in rows]


def _to_blob(row: Any) -> CodeBlob:
    """Map one SQL row to a strict domain blob record."""
    return CodeBlob(
        blob_id=ulid_bytes_to_str(bytes(row["id"])),
        filename=str(row["filename"]),
        mimetype=str(row["mimetype"]),
        size_bytes=int(row["size_bytes"]),
        staged=bool(row["staged"]),
        uploaded_at=row_dt(row, "uploaded_at"),
    )


def row_dt(row: Any, column: str) -> datetime:
    """Read and normalize one timezone-aware datetime field from SQL row."""
    value = row[column]
    if not isinstance(value, datetime):
        raise ValueError(f"expected datetime column for {column}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
