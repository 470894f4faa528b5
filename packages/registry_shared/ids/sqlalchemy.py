"""SQLAlchemy helpers for ULID-backed keys."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, LargeBinary
from sqlalchemy.dialects.postgresql import BYTEA

ULID_BYTES_LENGTH = 16

ULID_BINARY = LargeBinary(ULID_BYTES_LENGTH).with_variant(BYTEA(), "postgresql")


def ulid_column(name: str, *, primary_key: bool = False) -> Column[bytes]:
    """Return a 16-byte ULID column with a strict length check.

    Postgres stores the value as ``bytea``; other dialects use their generic
    binary type so the same table definitions run against SQLite in tests.
    """
    return Column(
        name,
        ULID_BINARY,
        ulid_length_check(name, f"ck_{name}_ulid_16"),
        primary_key=primary_key,
        nullable=False,
    )


def ulid_length_check(column_name: str, constraint_name: str) -> CheckConstraint:
    """Return a CHECK constraint enforcing fixed 16-byte ULID storage."""
    return CheckConstraint(
        f"length({column_name}) = {ULID_BYTES_LENGTH}",
        name=constraint_name,
    )
