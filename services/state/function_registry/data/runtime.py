"""Function Registry owned database runtime wiring."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from packages.registry_shared.config import RegistrySettings
from resources.substrates.postgres import (
    ServiceSchemaSessionProvider,
    create_postgres_engine,
    create_session_factory,
    ping,
    resolve_postgres_settings,
)
from services.state.function_registry.component import SERVICE_COMPONENT_ID


@dataclass(frozen=True)
class FunctionRegistryRuntime:
    """Concrete service-owned handle for schema-scoped database access."""

    engine: Engine
    session_factory: sessionmaker[Session]
    schema_sessions: ServiceSchemaSessionProvider

    @classmethod
    def from_settings(cls, settings: RegistrySettings) -> "FunctionRegistryRuntime":
        """Build the DB runtime from typed application settings."""
        return cls.from_engine(
            create_postgres_engine(resolve_postgres_settings(settings))
        )

    @classmethod
    def from_engine(cls, engine: Engine) -> "FunctionRegistryRuntime":
        """Build the DB runtime around an existing engine."""
        session_factory = create_session_factory(engine)
        return cls(
            engine=engine,
            session_factory=session_factory,
            schema_sessions=ServiceSchemaSessionProvider(
                session_factory=session_factory,
                schema=function_registry_schema(),
            ),
        )

    def is_healthy(self, *, timeout_seconds: float = 1.0) -> bool:
        """Return ``True`` when the backing database answers a bounded ping."""
        return ping(self.engine, timeout_seconds=timeout_seconds)


def function_registry_schema() -> str:
    """Resolve the service schema name from component identity."""
    return SERVICE_COMPONENT_ID.removeprefix("service_")
