"""CLI tests for function registry Typer commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import create_engine
from typer.testing import CliRunner

from actors.cli import main as cli_main
from packages.registry_shared.config import RegistrySettings
from packages.registry_shared.errors import ErrorCategory, ErrorDetail
from services.state.function_registry import DefaultFunctionRegistryService
from services.state.function_registry.data import FunctionRegistryRuntime, metadata


@pytest.fixture
def service(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> DefaultFunctionRegistryService:
    """Install one SQLite-backed registry behind every CLI command."""
    monkeypatch.setenv("FUNCREG_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("FUNCREG_LOGGING__LEVEL", "WARNING")
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'cli.db'}")
    metadata.create_all(engine)
    settings = RegistrySettings(
        components={"substrate": {"filesystem": {"root_dir": str(tmp_path / "code")}}}
    )
    registry = DefaultFunctionRegistryService.from_settings(
        settings, runtime=FunctionRegistryRuntime.from_engine(engine)
    )
    monkeypatch.setattr(cli_main, "_build_service", lambda _settings: registry)
    return registry


def _stage(runner: CliRunner, tmp_path: Path, name: str = "main.py") -> str:
    source = tmp_path / name
    source.write_text("print('hi')\n")
    result = runner.invoke(cli_main.app, ["--json", "code", "stage", str(source)])
    assert result.exit_code == 0, result.stderr
    return json.loads(result.stdout)["blob_id"]


def test_stage_and_get_round_trip_through_cli(service: Any, tmp_path: Path) -> None:
    """Staged files can be printed back by blob id."""
    runner = CliRunner()
    blob_id = _stage(runner, tmp_path)

    result = runner.invoke(cli_main.app, ["code", "get", blob_id])

    assert result.exit_code == 0
    assert result.stdout == "print('hi')\n\n"


def test_create_show_and_list(service: Any, tmp_path: Path) -> None:
    """Functions created from staged code render in show and list output."""
    runner = CliRunner()
    blob_id = _stage(runner, tmp_path)

    created = runner.invoke(
        cli_main.app,
        [
            "function", "create", "alice", "resize", "1.0",
            "--output", "image", "--type", f"python={blob_id}",
        ],
    )
    shown = runner.invoke(cli_main.app, ["function", "show", "alice", "resize"])
    listed = runner.invoke(cli_main.app, ["function", "list", "--search", "RES"])

    assert created.exit_code == 0, created.stderr
    assert shown.exit_code == 0
    assert "resize@1.0" in shown.stdout
    assert f"python: {blob_id}" in shown.stdout
    assert "Functions 1-1 of 1" in listed.stdout


def test_not_found_maps_to_exit_code_3(service: Any) -> None:
    """Domain errors exit with code 3 and report on stderr."""
    runner = CliRunner()

    result = runner.invoke(cli_main.app, ["function", "show", "alice", "missing"])

    assert result.exit_code == 3
    assert "RESOURCE_NOT_FOUND" in result.stderr


def test_malformed_type_option_is_a_usage_error(service: Any) -> None:
    """``--type`` values must be ``TYPE=BLOB_ID``."""
    runner = CliRunner()

    result = runner.invoke(
        cli_main.app,
        ["function", "create", "alice", "f", "1.0", "--output", "o", "--type", "python"],
    )

    assert result.exit_code == 2
    assert "TYPE=BLOB_ID" in result.stderr


def test_delete_reports_row_count(service: Any, tmp_path: Path) -> None:
    """Delete prints how many rows went away."""
    runner = CliRunner()
    blob_id = _stage(runner, tmp_path)
    runner.invoke(
        cli_main.app,
        ["function", "create", "alice", "f", "1.0", "--output", "o", "--type", f"a={blob_id}"],
    )

    result = runner.invoke(cli_main.app, ["function", "delete", "alice", "f"])

    assert result.exit_code == 0
    assert "deleted 1 row(s)" in result.stdout


def test_gc_sweep_and_health(service: Any) -> None:
    """Sweep and health commands render their reports."""
    runner = CliRunner()

    swept = runner.invoke(cli_main.app, ["--json", "gc", "sweep"])
    health = runner.invoke(cli_main.app, ["health"])

    assert swept.exit_code == 0
    assert json.loads(swept.stdout)["deleted_ids"] == []
    assert health.exit_code == 0
    assert "Registry: healthy" in health.stdout


def test_dependency_errors_map_to_exit_code_4() -> None:
    """Dependency and internal failures exit with code 4."""
    envelope = type(
        "_Failed",
        (),
        {
            "errors": [
                ErrorDetail(
                    code="DEPENDENCY_FAILURE",
                    message="down",
                    category=ErrorCategory.DEPENDENCY,
                )
            ]
        },
    )()

    assert cli_main._exit_code_for(envelope) == cli_main.DEPENDENCY_ERROR_EXIT_CODE


def test_serialize_handles_models_bytes_and_enums() -> None:
    """Serialization flattens pydantic models, bytes and enums."""
    detail = ErrorDetail(code="X", message="m", category=ErrorCategory.CONFLICT)

    assert cli_main._serialize(b"abc") == "abc"
    assert cli_main._serialize(detail)["category"] == "conflict"
    assert cli_main._serialize((1, "a")) == [1, "a"]
