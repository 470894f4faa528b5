"""create function registry tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from packages.registry_shared.ids.sqlalchemy import ULID_BINARY

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _ulid(name: str, *, primary_key: bool = False) -> sa.Column:
    """Return one 16-byte ULID column with its length check."""
    return sa.Column(
        name,
        ULID_BINARY,
        sa.CheckConstraint(f"length({name}) = 16", name=f"ck_{name}_ulid_16"),
        primary_key=primary_key,
        nullable=False,
    )


def upgrade() -> None:
    """Create code blob and function version tables."""
    op.create_table(
        "code_blobs",
        _ulid("id", primary_key=True),
        sa.Column("filename", sa.String(length=512), nullable=False),
        sa.Column("mimetype", sa.String(length=256), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("staged", sa.Boolean(), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("size_bytes >= 0", name="ck_code_blobs_size_nonnegative"),
    )
    op.create_index(
        "ix_code_blobs_staged_uploaded_at", "code_blobs", ["staged", "uploaded_at"]
    )

    op.create_table(
        "function_versions",
        _ulid("id", primary_key=True),
        sa.Column("function_id", sa.String(length=256), nullable=False),
        sa.Column("version", sa.String(length=128), nullable=False),
        sa.Column("type", sa.String(length=128), nullable=False),
        sa.Column("owner", sa.String(length=256), nullable=False),
        _ulid("blob_id"),
        sa.Column(
            "outputs",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "function_id",
            "version",
            "type",
            "owner",
            name="uq_function_versions_identity",
        ),
        sa.UniqueConstraint("blob_id", name="uq_function_versions_blob_id"),
    )
    op.create_index(
        "ix_function_versions_function_type",
        "function_versions",
        ["function_id", "type"],
    )


def downgrade() -> None:
    """Drop code blob and function version tables."""
    op.drop_index("ix_function_versions_function_type", table_name="function_versions")
    op.drop_table("function_versions")
    op.drop_index("ix_code_blobs_staged_uploaded_at", table_name="code_blobs")
    op.drop_table("code_blobs")
