"""Function registry operator CLI implemented with Typer."""

from __future__ import annotations

import dataclasses
import json
import sys
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import typer
from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig

from packages.registry_shared.config import RegistrySettings, load_settings
from packages.registry_shared.envelope import Envelope, EnvelopeKind, new_meta
from packages.registry_shared.errors import ErrorCategory
from packages.registry_shared.logging import configure_logging
from services.state import function_registry
from services.state.function_registry import DefaultFunctionRegistryService
from services.state.function_registry.collector import PeriodicCodeCollector
from services.state.function_registry.config import resolve_function_registry_settings

SUCCESS_EXIT_CODE = 0
DOMAIN_ERROR_EXIT_CODE = 3
DEPENDENCY_ERROR_EXIT_CODE = 4

_ALEMBIC_INI = Path(function_registry.__file__).parent / "migrations" / "alembic.ini"


@dataclass(frozen=True)
class CliConfig:
    """Global CLI runtime options propagated to service calls."""

    settings: RegistrySettings
    principal: str
    source: str
    as_json: bool
    trace_id: str | None
    parent_id: str | None


def _serialize(value: Any) -> Any:
    """Convert result objects to JSON-serializable structures."""

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (datetime, date, Path)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _serialize(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {str(key): _serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_serialize(item) for item in value]
    if hasattr(value, "model_dump"):
        return _serialize(value.model_dump(mode="python"))
    return str(value)


def _emit_output(result: Any, as_json: bool) -> None:
    """Render command output in requested format."""

    data = _serialize(result)
    if as_json:
        typer.echo(json.dumps(data, sort_keys=True, separators=(",", ":")))
        return
    rendered = _render_human(data)
    if rendered is not None:
        typer.echo(rendered)
        return
    if data is None:
        typer.echo("ok")
        return
    typer.echo(str(data))


def _emit_errors(envelope: Envelope[Any], as_json: bool) -> None:
    """Render envelope errors to stderr."""

    if as_json:
        typer.echo(
            json.dumps({"errors": _serialize(list(envelope.errors))}, sort_keys=True),
            err=True,
        )
        return
    for error in envelope.errors:
        typer.echo(f"error: {error.message} [{error.code}]", err=True)


def _render_human(data: Any) -> str | None:
    """Return human-oriented rendering for recognized response shapes."""
    if isinstance(data, dict):
        if "items" in data and "total" in data:
            return _render_listing(data)
        if "types" in data and "version" in data:
            return _render_function(data)
        if "versions" in data:
            return "\n".join(f"- {version}" for version in data["versions"])
        if "deleted_ids" in data:
            return _render_sweep(data)
        if "service_ready" in data:
            return _render_health(data)
    if isinstance(data, (dict, list)):
        return json.dumps(data, indent=2, sort_keys=True)
    return None


def _render_function(data: dict[str, Any]) -> str:
    """Render one function version or listing item."""
    lines = [f"{data.get('function_id', '')}@{data.get('version', '')}"]
    lines.append(f"  outputs: {', '.join(data.get('outputs', []))}")
    for ref in data.get("types", []):
        lines.append(f"  {ref.get('type', '')}: {ref.get('blob_id', '')}")
    lines.append(f"  updated: {data.get('updated_at', '')}")
    return "\n".join(lines)


def _render_listing(data: dict[str, Any]) -> str:
    """Render one page of grouped functions."""
    items = data.get("items", [])
    if len(items) == 0:
        return "No functions found."
    offset = int(data.get("offset", 0))
    header = f"Functions {offset + 1}-{offset + len(items)} of {data.get('total', 0)}"
    return "\n".join([header, *(_render_function(item) for item in items)])


def _render_sweep(data: dict[str, Any]) -> str:
    """Render one garbage-collection report."""
    deleted = data.get("deleted_ids", [])
    lines = [
        f"Swept staged code older than {data.get('cutoff', '')}: "
        f"{len(deleted)} of {data.get('examined', 0)} deleted"
    ]
    lines.extend(f"- {blob_id}" for blob_id in deleted)
    return "\n".join(lines)


def _render_health(data: dict[str, Any]) -> str:
    """Render registry readiness."""
    lines = [f"Registry: {_status_label(bool(data.get('service_ready')))}"]
    lines.append(f"  Metadata: {_status_label(bool(data.get('metadata_ready')))}")
    lines.append(
        f"  Code store: {_status_label(bool(data.get('blob_store_ready')))}"
        f" ({data.get('detail', '')})"
    )
    return "\n".join(lines)


def _status_label(ready: bool) -> str:
    """Return status label for one readiness value."""
    return "healthy" if ready else "degraded"


def _exit_code_for(envelope: Envelope[Any]) -> int:
    """Map the first envelope error category onto a process exit code."""
    if envelope.errors[0].category in (ErrorCategory.DEPENDENCY, ErrorCategory.INTERNAL):
        return DEPENDENCY_ERROR_EXIT_CODE
    return DOMAIN_ERROR_EXIT_CODE


def _build_service(settings: RegistrySettings) -> DefaultFunctionRegistryService:
    """Return one registry service built from resolved settings."""
    return DefaultFunctionRegistryService.from_settings(settings)


def _run_command(
    cfg: CliConfig,
    invoke: Callable[..., Envelope[Any]],
    *,
    render: Callable[[Any], Any] | None = None,
) -> None:
    """Execute one service call and map outputs/errors to process semantics."""
    meta = new_meta(
        kind=EnvelopeKind.COMMAND,
        source=cfg.source,
        principal=cfg.principal,
        trace_id=cfg.trace_id,
        parent_id=cfg.parent_id or "",
    )
    envelope = invoke(_build_service(cfg.settings), meta)
    if not envelope.ok:
        _emit_errors(envelope, cfg.as_json)
        raise typer.Exit(code=_exit_code_for(envelope))

    value = None if envelope.payload is None else envelope.payload.value
    if render is not None:
        value = render(value)
    if value is not None:
        _emit_output(value, cfg.as_json)
    raise typer.Exit(code=SUCCESS_EXIT_CODE)


def _parse_type_specs(values: list[str]) -> list[dict[str, str]]:
    """Parse repeated ``TYPE=BLOB_ID`` options."""
    specs: list[dict[str, str]] = []
    for value in values:
        type_name, separator, blob_id = value.partition("=")
        if not separator or type_name.strip() == "" or blob_id.strip() == "":
            raise typer.BadParameter(
                f"expected TYPE=BLOB_ID, got {value!r}", param_hint="--type"
            )
        specs.append({"type": type_name.strip(), "blob_id": blob_id.strip()})
    return specs


def _require_config(ctx: typer.Context) -> CliConfig:
    """Return required CLI config from Typer context."""

    config = ctx.obj
    if not isinstance(config, CliConfig):
        raise RuntimeError("CLI configuration not initialized")
    return config


app = typer.Typer(no_args_is_help=True, help="Function registry command-line interface")
code_app = typer.Typer(help="Staged code commands")
function_app = typer.Typer(help="Function version commands")
gc_app = typer.Typer(help="Staged code garbage collection")
db_app = typer.Typer(help="Metadata schema commands")


@app.callback()
def main(
    ctx: typer.Context,
    principal: str = typer.Option("operator", help="Envelope principal"),
    source: str = typer.Option("cli", help="Envelope source"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
    trace_id: str | None = typer.Option(None, help="Optional trace id"),
    parent_id: str | None = typer.Option(None, help="Optional parent envelope id"),
) -> None:
    """Load settings, configure logging and store global options."""

    settings = load_settings()
    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        service=settings.logging.service,
        environment=settings.logging.environment,
        stream=sys.stderr,
    )
    ctx.obj = CliConfig(
        settings=settings,
        principal=principal,
        source=source,
        as_json=as_json,
        trace_id=trace_id,
        parent_id=parent_id,
    )


@code_app.command("stage")
def code_stage(
    ctx: typer.Context,
    path: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Code file to upload"
    ),
    mimetype: str = typer.Option("", help="Declared content type"),
) -> None:
    """Stage one code file and print its blob id."""
    cfg = _require_config(ctx)
    content = path.read_bytes()
    _run_command(
        cfg,
        lambda service, meta: service.stage_code(
            meta=meta, content=content, filename=path.name, mimetype=mimetype
        ),
    )


@code_app.command("get")
def code_get(
    ctx: typer.Context,
    blob_id: str = typer.Argument(..., help="Blob id"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write bytes here"),
) -> None:
    """Print or save one code payload."""
    cfg = _require_config(ctx)

    def _render(code: Any) -> Any:
        if output is None:
            return code if cfg.as_json else code.content
        output.write_bytes(code.content)
        return code.blob

    _run_command(
        cfg,
        lambda service, meta: service.get_code(meta=meta, blob_id=blob_id),
        render=_render,
    )


def _function_spec_command(
    ctx: typer.Context,
    *,
    operation: str,
    owner: str,
    function_id: str,
    version: str,
    outputs: list[str],
    types: list[str],
) -> None:
    cfg = _require_config(ctx)
    specs = _parse_type_specs(types)
    _run_command(
        cfg,
        lambda service, meta: getattr(service, operation)(
            meta=meta,
            owner=owner,
            function_id=function_id,
            version=version,
            outputs=outputs,
            types=specs,
        ),
    )


@function_app.command("create")
def function_create(
    ctx: typer.Context,
    owner: str = typer.Argument(..., help="Owning principal"),
    function_id: str = typer.Argument(..., help="Function id"),
    version: str = typer.Argument(..., help="Version label"),
    outputs: list[str] = typer.Option(..., "--output", help="Output name (repeatable)"),
    types: list[str] = typer.Option(..., "--type", help="TYPE=BLOB_ID (repeatable)"),
) -> None:
    """Create one function version from staged code."""
    _function_spec_command(
        ctx,
        operation="create_function",
        owner=owner,
        function_id=function_id,
        version=version,
        outputs=outputs,
        types=types,
    )


@function_app.command("update")
def function_update(
    ctx: typer.Context,
    owner: str = typer.Argument(..., help="Owning principal"),
    function_id: str = typer.Argument(..., help="Function id"),
    version: str = typer.Argument(..., help="Version label"),
    outputs: list[str] = typer.Option(..., "--output", help="Output name (repeatable)"),
    types: list[str] = typer.Option(..., "--type", help="TYPE=BLOB_ID (repeatable)"),
) -> None:
    """Replace the types and outputs of one function version."""
    _function_spec_command(
        ctx,
        operation="update_function",
        owner=owner,
        function_id=function_id,
        version=version,
        outputs=outputs,
        types=types,
    )


@function_app.command("show")
def function_show(
    ctx: typer.Context,
    owner: str = typer.Argument(..., help="Owning principal"),
    function_id: str = typer.Argument(..., help="Function id"),
    version: str | None = typer.Option(None, help="Version label; latest if omitted"),
    type_name: str | None = typer.Option(None, "--type", help="Single type"),
) -> None:
    """Show one function version."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda service, meta: service.get_function(
            meta=meta,
            owner=owner,
            function_id=function_id,
            version=version,
            type=type_name,
        ),
    )


@function_app.command("versions")
def function_versions(
    ctx: typer.Context,
    owner: str = typer.Argument(..., help="Owning principal"),
    function_id: str = typer.Argument(..., help="Function id"),
) -> None:
    """List versions of one function."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda service, meta: service.get_function_versions(
            meta=meta, owner=owner, function_id=function_id
        ),
    )


@function_app.command("list")
def function_list(
    ctx: typer.Context,
    search: str | None = typer.Option(None, help="Case-insensitive id substring"),
    offset: int = typer.Option(0, min=0, help="Functions to skip"),
    limit: int = typer.Option(20, min=1, help="Functions per page"),
) -> None:
    """List the latest representative of every function."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda service, meta: service.find_functions(
            meta=meta, offset=offset, limit=limit, id_partial=search
        ),
    )


@function_app.command("delete")
def function_delete(
    ctx: typer.Context,
    owner: str = typer.Argument(..., help="Owning principal"),
    function_id: str = typer.Argument(..., help="Function id"),
    version: str | None = typer.Option(None, help="Limit to one version"),
    type_name: str | None = typer.Option(None, "--type", help="Limit to one type"),
) -> None:
    """Delete a function, one version or one type together with its code."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda service, meta: service.delete_function(
            meta=meta,
            owner=owner,
            function_id=function_id,
            version=version,
            type=type_name,
        ),
        render=lambda result: (
            result if cfg.as_json else f"deleted {result.deleted_count} row(s)"
        ),
    )


@gc_app.command("sweep")
def gc_sweep(ctx: typer.Context) -> None:
    """Run one garbage-collection sweep."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda service, meta: service.sweep_staged_code(meta=meta))


@gc_app.command("run")
def gc_run(
    ctx: typer.Context,
    interval: float | None = typer.Option(
        None, min=0.001, help="Seconds between sweeps; defaults to gc_interval_seconds"
    ),
) -> None:
    """Sweep staged code periodically until interrupted."""
    cfg = _require_config(ctx)
    service = _build_service(cfg.settings)
    interval_seconds = (
        resolve_function_registry_settings(cfg.settings).gc_interval_seconds
        if interval is None
        else interval
    )
    runner = PeriodicCodeCollector(
        collector=service.collector, interval_seconds=interval_seconds
    )
    runner.start()
    typer.echo(f"collector running every {interval_seconds:g}s", err=True)
    try:
        runner.wait()
    except KeyboardInterrupt:
        runner.stop(timeout=interval_seconds)
    raise typer.Exit(code=SUCCESS_EXIT_CODE)


@app.command("health")
def health(ctx: typer.Context) -> None:
    """Report registry readiness."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda service, meta: service.health(meta=meta))


@db_app.command("upgrade")
def db_upgrade(
    revision: str = typer.Argument("head", help="Target revision"),
    url: str | None = typer.Option(None, help="Database URL; defaults to settings"),
) -> None:
    """Apply registry schema migrations."""
    config = AlembicConfig(str(_ALEMBIC_INI))
    if url is not None:
        config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    alembic_command.upgrade(config, revision)


app.add_typer(code_app, name="code")
app.add_typer(function_app, name="function")
app.add_typer(gc_app, name="gc")
app.add_typer(db_app, name="db")


if __name__ == "__main__":
    app()
