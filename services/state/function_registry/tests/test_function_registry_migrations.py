"""Tests for Function Registry Alembic migrations on SQLite."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from services.state import function_registry

_ALEMBIC_INI = Path(function_registry.__file__).parent / "migrations" / "alembic.ini"


def _config(url: str) -> Config:
    config = Config(str(_ALEMBIC_INI))
    config.set_main_option("sqlalchemy.url", url)
    return config


def test_upgrade_creates_tables_and_downgrade_drops_them(tmp_path: Path) -> None:
    """Upgrading to head creates both tables; downgrading to base drops them."""
    url = f"sqlite+pysqlite:///{tmp_path / 'migrated.db'}"
    engine = create_engine(url)

    command.upgrade(_config(url), "head")
    tables = set(inspect(engine).get_table_names())
    unique_names = {
        item["name"] for item in inspect(engine).get_unique_constraints("function_versions")
    }

    command.downgrade(_config(url), "base")
    remaining = set(inspect(engine).get_table_names())
    engine.dispose()

    assert {"code_blobs", "function_versions", "alembic_version"} <= tables
    assert {"uq_function_versions_identity", "uq_function_versions_blob_id"} <= unique_names
    assert "function_versions" not in remaining
    assert "code_blobs" not in remaining
