"""Repository for normalized one-row-per-type function version metadata."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import delete, distinct, func, insert, select, update

from packages.registry_shared.ids import (
    generate_ulid_bytes,
    ulid_bytes_to_str,
    ulid_str_to_bytes,
)
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from services.state.function_registry.domain import FunctionVersionRow
from services.state.function_registry.interfaces import FunctionVersionRepository

from .blob_repository import row_dt
from .schema import function_versions


class SqlFunctionVersionRepository(FunctionVersionRepository):
    """SQL repository over the ``function_versions`` table."""

    def __init__(self, sessions: ServiceSchemaSessionProvider) -> None:
        self._sessions = sessions

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
        """Insert one row; the identity unique constraint rejects duplicates."""
        values = {
            "id": generate_ulid_bytes(),
            "function_id": function_id,
            "version": version,
            "type": type,
            "owner": owner,
            "blob_id": ulid_str_to_bytes(blob_id),
            "outputs": list(outputs),
            "created_at": now,
            "updated_at": now,
        }
        with self._sessions.session() as session:
            session.execute(insert(function_versions).values(**values))
        return _to_row(values)

    def version_exists(self, *, function_id: str, version: str, owner: str) -> bool:
        """Return whether any row exists for one logical function version."""
        with self._sessions.session() as session:
            found = session.execute(
                select(function_versions.c.id)
                .where(
                    function_versions.c.function_id == function_id,
                    function_versions.c.version == version,
                    function_versions.c.owner == owner,
                )
                .limit(1)
            ).first()
            return found is not None

    def list_rows(
        self,
        *,
        function_id: str,
        owner: str,
        version: str | None = None,
        type: str | None = None,
    ) -> list[FunctionVersionRow]:
        """List rows for one function, narrowed by version and type, oldest first."""
        stmt = select(function_versions).where(
            function_versions.c.function_id == function_id,
            function_versions.c.owner == owner,
        )
        if version is not None:
            stmt = stmt.where(function_versions.c.version == version)
        if type is not None:
            stmt = stmt.where(function_versions.c.type == type)
        with self._sessions.session() as session:
            rows = (
                session.execute(stmt.order_by(function_versions.c.id)).mappings().all()
            )
            return [_to_row(row) for row in rows]

    def update_row(
        self,
        *,
        record_id: str,
        outputs: Sequence[str],
        updated_at: datetime,
        blob_id: str | None = None,
    ) -> FunctionVersionRow | None:
        """Rewrite outputs (and optionally blob) of one row and return it."""
        values: dict[str, Any] = {"outputs": list(outputs), "updated_at": updated_at}
        if blob_id is not None:
            values["blob_id"] = ulid_str_to_bytes(blob_id)
        key = ulid_str_to_bytes(record_id)
        with self._sessions.session() as session:
            session.execute(
                update(function_versions)
                .where(function_versions.c.id == key)
                .values(**values)
            )
            row = (
                session.execute(
                    select(function_versions).where(function_versions.c.id == key)
                )
                .mappings()
                .one_or_none()
            )
            return None if row is None else _to_row(row)

    def delete_row(self, *, record_id: str) -> bool:
        """Delete one row by record id."""
        with self._sessions.session() as session:
            result = session.execute(
                delete(function_versions).where(
                    function_versions.c.id == ulid_str_to_bytes(record_id)
                )
            )
            return int(result.rowcount or 0) > 0

    def find_latest(
        self, *, offset: int, limit: int, id_partial: str | None = None
    ) -> tuple[list[FunctionVersionRow], int]:
        """Return latest-per-``(function_id, type)`` rows for one page and the total.

        Without a search term the page is taken over distinct function ids so
        every function arrives whole. With a search term the page is taken
        over the grouped representatives themselves.
        """
        ranked = select(
            function_versions,
            func.row_number()
            .over(
                partition_by=(function_versions.c.function_id, function_versions.c.type),
                order_by=function_versions.c.id.desc(),
            )
            .label("rn"),
        ).subquery("ranked")
        representatives = (
            select(*[ranked.c[name] for name in function_versions.c.keys()])
            .where(ranked.c.rn == 1)
            .order_by(ranked.c.function_id, ranked.c.type)
        )
        total_stmt = select(func.count(distinct(function_versions.c.function_id)))

        with self._sessions.session() as session:
            if id_partial is None:
                page_ids = list(
                    session.execute(
                        select(function_versions.c.function_id)
                        .distinct()
                        .order_by(function_versions.c.function_id)
                        .offset(offset)
                        .limit(limit)
                    ).scalars()
                )
                if not page_ids:
                    rows = []
                else:
                    rows = (
                        session.execute(
                            representatives.where(ranked.c.function_id.in_(page_ids))
                        )
                        .mappings()
                        .all()
                    )
            else:
                rows = (
                    session.execute(
                        representatives.where(
                            ranked.c.function_id.icontains(id_partial, autoescape=True)
                        )
                        .offset(offset)
                        .limit(limit)
                    )
                    .mappings()
                    .all()
                )
                total_stmt = total_stmt.where(
                    function_versions.c.function_id.icontains(
                        id_partial, autoescape=True
                    )
                )
            total = int(session.execute(total_stmt).scalar_one())
            return [_to_row(row) for row in rows], total


def _to_row(row: Any) -> FunctionVersionRow:
    """Map one SQL row to a strict domain row."""
    return FunctionVersionRow(
        record_id=ulid_bytes_to_str(bytes(row["id"])),
        function_id=str(row["function_id"]),
        version=str(row["version"]),
        type=str(row["type"]),
        owner=str(row["owner"]),
        blob_id=ulid_bytes_to_str(bytes(row["blob_id"])),
        outputs=tuple(str(item) for item in row["outputs"]),
        created_at=row_dt(row, "created_at"),
        updated_at=row_dt(row, "updated_at"),
    )
