"""Behavior tests for staging and reading code payloads."""

from __future__ import annotations

from packages.registry_shared.errors import ErrorCategory, codes
from services.state.function_registry import DefaultFunctionRegistryService
from services.state.function_registry import codes as registry_codes


def test_stage_then_get_returns_bytes_and_metadata(service, code_root, meta) -> None:
    """Staged code is readable with its metadata and lands under a sharded path."""
    staged = service.stage_code(
        meta=meta, content=b"def main():\n    pass\n", filename="main.py", mimetype=""
    )

    assert staged.ok is True
    assert staged.payload is not None
    blob = staged.payload.value
    assert blob.staged is True
    assert blob.size_bytes == 21
    assert blob.mimetype == "application/octet-stream"
    assert (code_root / blob.blob_id[-2:] / f"{blob.blob_id}.bin").is_file()

    fetched = service.get_code(meta=meta, blob_id=blob.blob_id.lower())

    assert fetched.ok is True
    assert fetched.payload is not None
    assert fetched.payload.value.content == b"def main():\n    pass\n"
    assert fetched.payload.value.blob == blob


def test_stage_rejects_empty_and_oversized_content(service, code_root, meta) -> None:
    """Empty uploads and uploads over the size cap are rejected."""
    empty = service.stage_code(meta=meta, content=b"", filename="main.py")
    too_large = service.stage_code(meta=meta, content=b"x" * 65, filename="main.py")
    at_cap = service.stage_code(meta=meta, content=b"x" * 64, filename="main.py")

    assert empty.errors[0].code == registry_codes.CODE_NOT_PROVIDED
    assert too_large.errors[0].code == registry_codes.CODE_TOO_LARGE
    assert too_large.errors[0].category == ErrorCategory.VALIDATION
    assert at_cap.ok is True
    assert len(list(code_root.rglob("*.bin"))) == 1


def test_stage_requires_filename(service, meta) -> None:
    """A blank filename fails request validation."""
    result = service.stage_code(meta=meta, content=b"x", filename="   ")

    assert result.errors[0].code == codes.INVALID_ARGUMENT


def test_get_code_for_unknown_or_malformed_id_is_not_found(service, meta) -> None:
    """Unknown and malformed ids both read as not found."""
    for blob_id in ("01HZZZZZZZZZZZZZZZZZZZZZZZ", "nope"):
        result = service.get_code(meta=meta, blob_id=blob_id)
        assert result.errors[0].category == ErrorCategory.NOT_FOUND


def test_get_code_with_missing_payload_is_not_found(service, stage, code_root, meta) -> None:
    """A row whose payload file vanished reads as not found."""
    blob_id = stage()
    (code_root / blob_id[-2:] / f"{blob_id}.bin").unlink()

    result = service.get_code(meta=meta, blob_id=blob_id)

    assert result.errors[0].category == ErrorCategory.NOT_FOUND


def test_health_reports_ready(service, meta) -> None:
    """Health is ready with a reachable database and writable code root."""
    result = service.health(meta=meta)

    assert result.ok is True
    assert result.payload is not None
    assert result.payload.value.service_ready is True
    assert result.payload.value.metadata_ready is True
    assert result.payload.value.blob_store_ready is True


def test_health_reports_failed_metadata_probe(
    registry_settings, function_repository, blob_store, runtime, meta
) -> None:
    """A failing database ping degrades readiness without failing the call."""
    service = DefaultFunctionRegistryService(
        settings=registry_settings,
        repository=function_repository,
        blob_store=blob_store,
        metadata_probe=lambda: False,
    )

    result = service.health(meta=meta)

    assert result.ok is True
    assert result.payload is not None
    assert result.payload.value.service_ready is False
    assert result.payload.value.metadata_ready is False
    assert result.payload.value.blob_store_ready is True
    assert result.payload.value.detail == "metadata store ping failed"
    assert runtime.is_healthy(timeout_seconds=0.5) is True
