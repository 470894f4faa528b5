"""SQLAlchemy engine construction for the Postgres substrate."""

from __future__ import annotations

from sqlalchemy import Engine, create_engine

from resources.substrates.postgres.config import PostgresSettings


def create_postgres_engine(config: PostgresSettings) -> Engine:
    """Construct a configured SQLAlchemy engine using psycopg.

    SQLite URLs are accepted for local single-node use; pool sizing and
    libpq connect options do not apply to them.
    """
    if config.is_sqlite:
        return create_engine(
            config.url,
            connect_args={
                "check_same_thread": False,
                "timeout": config.connect_timeout_seconds,
            },
        )
    return create_engine(
        config.url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout_seconds,
        pool_pre_ping=config.pool_pre_ping,
        connect_args={
            "connect_timeout": int(config.connect_timeout_seconds),
            "sslmode": config.sslmode,
        },
    )
