"""Shared fixtures for Function Registry tests on SQLite and a temp code root."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import Engine, create_engine

from packages.registry_shared.envelope import EnvelopeKind, EnvelopeMeta, new_meta
from resources.substrates.filesystem import (
    FilesystemSubstrateSettings,
    LocalFilesystemBlobSubstrate,
)
from services.state.function_registry.blob_store import CodeBlobStore
from services.state.function_registry.config import FunctionRegistrySettings
from services.state.function_registry.data import (
    FunctionRegistryRuntime,
    SqlCodeBlobRepository,
    SqlFunctionVersionRepository,
    metadata,
)
from services.state.function_registry.implementation import (
    DefaultFunctionRegistryService,
)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


def make_meta() -> EnvelopeMeta:
    """Return valid envelope metadata for registry test requests."""
    return new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="operator")


@pytest.fixture
def engine(tmp_path: Path) -> Iterator[Engine]:
    """File-backed SQLite engine with registry tables created."""
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'registry.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def runtime(engine: Engine) -> FunctionRegistryRuntime:
    """Registry runtime bound to the test engine."""
    return FunctionRegistryRuntime.from_engine(engine)


@pytest.fixture
def code_root(tmp_path: Path) -> Path:
    """Filesystem root holding code payloads."""
    return tmp_path / "code"


@pytest.fixture
def payloads(code_root: Path) -> LocalFilesystemBlobSubstrate:
    """Filesystem substrate rooted at ``code_root``."""
    return LocalFilesystemBlobSubstrate(
        settings=FilesystemSubstrateSettings(root_dir=str(code_root), fsync_writes=False)
    )


@pytest.fixture
def clock() -> FakeClock:
    """Deterministic clock shared by the blob store and the service."""
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def blob_store(
    runtime: FunctionRegistryRuntime,
    payloads: LocalFilesystemBlobSubstrate,
    clock: FakeClock,
) -> CodeBlobStore:
    """Code blob store over SQLite metadata and temp payload files."""
    return CodeBlobStore(
        repository=SqlCodeBlobRepository(runtime.schema_sessions),
        payloads=payloads,
        clock=clock,
    )


@pytest.fixture
def function_repository(runtime: FunctionRegistryRuntime) -> SqlFunctionVersionRepository:
    """Function version repository over SQLite."""
    return SqlFunctionVersionRepository(runtime.schema_sessions)


@pytest.fixture
def registry_settings() -> FunctionRegistrySettings:
    """Registry settings with a small size cap and listing limit."""
    return FunctionRegistrySettings(max_code_size_bytes=64, max_list_limit=50)


@pytest.fixture
def service(
    registry_settings: FunctionRegistrySettings,
    function_repository: SqlFunctionVersionRepository,
    blob_store: CodeBlobStore,
    clock: FakeClock,
) -> DefaultFunctionRegistryService:
    """Registry service wired to real SQLite and filesystem dependencies."""
    return DefaultFunctionRegistryService(
        settings=registry_settings,
        repository=function_repository,
        blob_store=blob_store,
        clock=clock,
    )


@pytest.fixture
def stage(service: DefaultFunctionRegistryService) -> Callable[..., str]:
    """Stage one code upload and return its blob id."""

    def _stage(content: bytes = b"print('hi')\n", filename: str = "main.py") -> str:
        result = service.stage_code(
            meta=make_meta(), content=content, filename=filename, mimetype="text/x-python"
        )
        assert result.ok is True
        assert result.payload is not None
        return result.payload.value.blob_id

    return _stage


@pytest.fixture
def meta() -> EnvelopeMeta:
    """Valid envelope metadata for one test."""
    return make_meta()
