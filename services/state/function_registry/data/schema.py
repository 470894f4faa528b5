"""SQLAlchemy table definitions owned by the Function Registry Service.

Tables are declared without a schema; on Postgres the session provider scopes
``search_path`` to the service schema.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from packages.registry_shared.ids import ulid_column

metadata = MetaData()

code_blobs = Table(
    "code_blobs",
    metadata,
    ulid_column("id", primary_key=True),
    Column("filename", String(512), nullable=False),
    Column("mimetype", String(256), nullable=False),
    Column("size_bytes", BigInteger, nullable=False),
    Column("staged", Boolean, nullable=False, default=True),
    Column("uploaded_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("size_bytes >= 0", name="ck_code_blobs_size_nonnegative"),
    Index("ix_code_blobs_staged_uploaded_at", "staged", "uploaded_at"),
)

function_versions = Table(
    "function_versions",
    metadata,
    ulid_column("id", primary_key=True),
    Column("function_id", String(256), nullable=False),
    Column("version", String(128), nullable=False),
    Column("type", String(128), nullable=False),
    Column("owner", String(256), nullable=False),
    ulid_column("blob_id"),
    Column("outputs", JSON().with_variant(JSONB(), "postgresql"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint(
        "function_id",
        "version",
        "type",
        "owner",
        name="uq_function_versions_identity",
    ),
    UniqueConstraint("blob_id", name="uq_function_versions_blob_id"),
    Index("ix_function_versions_function_type", "function_id", "type"),
)
