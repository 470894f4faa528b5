"""Pre-migration bootstrap for service-owned Postgres schemas."""

from __future__ import annotations

from sqlalchemy import Connection, text


def provision_service_schema(connection: Connection, schema: str) -> bool:
    """Create one service schema when the dialect supports schemas.

    Returns True when a ``CREATE SCHEMA`` statement was issued.
    """
    if connection.dialect.name != "postgresql":
        return False
    if not schema.replace("_", "").isalnum():
        raise ValueError("postgres schema must be alphanumeric/underscore")
    connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
    return True
