"""Tests for database exception normalization into shared error taxonomy."""

from __future__ import annotations

import pytest
from sqlalchemy import Column, Integer, MetaData, Table, create_engine, insert
from sqlalchemy.exc import IntegrityError

from packages.registry_shared.errors import codes
from resources.substrates.postgres.errors import normalize_postgres_error


def test_normalize_unique_violation_maps_to_conflict() -> None:
    """Unique key failures should map to conflict/already-exists semantics."""

    class UniqueViolation(Exception):
        """Synthetic unique-violation exception."""

    error = normalize_postgres_error(
        UniqueViolation("duplicate key value violates unique constraint")
    )
    assert error.category.value == "conflict"
    assert error.code == codes.ALREADY_EXISTS


def test_normalize_sqlite_unique_failure_maps_to_conflict() -> None:
    """SQLite unique constraint failures normalize like Postgres ones."""
    metadata = MetaData()
    table = Table("items", metadata, Column("id", Integer, primary_key=True))
    engine = create_engine("sqlite+pysqlite:///:memory:")
    metadata.create_all(engine)

    with pytest.raises(IntegrityError) as caught:
        with engine.begin() as connection:
            connection.execute(insert(table).values(id=1))
            connection.execute(insert(table).values(id=1))

    error = normalize_postgres_error(caught.value)
    assert error.category.value == "conflict"
    assert error.metadata["exception_type"] == "IntegrityError"


def test_normalize_operational_errors_map_to_retryable_dependency() -> None:
    """Operational/timeout failures should be retryable dependency errors."""

    class OperationalError(Exception):
        """Synthetic operational exception."""

    error = normalize_postgres_error(OperationalError("connection timeout"))
    assert error.category.value == "dependency"
    assert error.retryable is True


def test_normalize_programming_errors_map_to_non_retryable_dependency() -> None:
    """Interface/programming failures should be non-retryable dependency errors."""

    class ProgrammingError(Exception):
        """Synthetic programming exception."""

    error = normalize_postgres_error(ProgrammingError("bad SQL"))
    assert error.category.value == "dependency"
    assert error.retryable is False


def test_normalize_unknown_exception_maps_to_internal() -> None:
    """Unexpected failures should map to internal/unexpected semantics."""
    error = normalize_postgres_error(RuntimeError("boom"))
    assert error.category.value == "internal"
    assert error.code == codes.UNEXPECTED_EXCEPTION
