"""Concrete Function Registry Service implementation."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from functools import partial
from typing import Any

from pydantic import BaseModel, ValidationError

from packages.registry_shared.config import RegistrySettings
from packages.registry_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    failure,
    success,
    validate_meta,
)
from packages.registry_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    not_found_error,
    validation_error,
)
from packages.registry_shared.logging import get_logger, public_api_instrumented
from resources.substrates.postgres import resolve_postgres_settings
from resources.substrates.postgres.errors import normalize_postgres_error
from services.state.function_registry import codes as registry_codes
from services.state.function_registry.blob_store import (
    CodeBlobStore,
    build_code_blob_store,
    utc_now,
)
from services.state.function_registry.collector import CodeGarbageCollector
from services.state.function_registry.component import SERVICE_COMPONENT_ID
from services.state.function_registry.config import (
    FunctionRegistrySettings,
    resolve_function_registry_settings,
)
from services.state.function_registry.data import (
    FunctionRegistryRuntime,
    SqlFunctionVersionRepository,
)
from services.state.function_registry.domain import (
    CodeBlob,
    CodeContent,
    DeleteResult,
    FunctionListing,
    FunctionSummary,
    FunctionTypeRef,
    FunctionVersion,
    FunctionVersionRow,
    FunctionVersions,
    HealthStatus,
    SweepReport,
)
from services.state.function_registry.interfaces import FunctionVersionRepository
from services.state.function_registry.service import (
    FunctionRegistryService,
    TypeSpecInput,
)
from services.state.function_registry.validation import (
    BlobIdRequest,
    CreateFunctionRequest,
    FindFunctionsRequest,
    FunctionKeyRequest,
    StageCodeRequest,
    UpdateFunctionRequest,
)

_LOGGER = get_logger(__name__)
_HEALTH_PROBE_BLOB_ID = "0" * 26


class DefaultFunctionRegistryService(FunctionRegistryService):
    """Default registry with SQL metadata and filesystem code payloads.

    Multi-row operations run sequentially without a spanning transaction.
    Rows written before a failure stay written; deletes are safe to retry and
    a partially created version can be completed with ``update_function``.
    """

    def __init__(
        self,
        *,
        settings: FunctionRegistrySettings,
        repository: FunctionVersionRepository,
        blob_store: CodeBlobStore,
        clock: Callable[[], datetime] = utc_now,
        metadata_probe: Callable[[], bool] | None = None,
    ) -> None:
        self._settings = settings
        self._repository = repository
        self._blob_store = blob_store
        self._clock = clock
        self._metadata_probe = metadata_probe
        self._collector = CodeGarbageCollector(
            blob_store=blob_store,
            staging_ttl=settings.staging_ttl,
            clock=clock,
        )

    @classmethod
    def from_settings(
        cls,
        settings: RegistrySettings,
        *,
        runtime: FunctionRegistryRuntime | None = None,
    ) -> "DefaultFunctionRegistryService":
        """Build the registry from typed settings and owned resources."""
        resolved_runtime = (
            FunctionRegistryRuntime.from_settings(settings)
            if runtime is None
            else runtime
        )
        return cls(
            settings=resolve_function_registry_settings(settings),
            repository=SqlFunctionVersionRepository(resolved_runtime.schema_sessions),
            blob_store=build_code_blob_store(
                settings=settings, runtime=resolved_runtime
            ),
            metadata_probe=partial(
                resolved_runtime.is_healthy,
                timeout_seconds=resolve_postgres_settings(
                    settings
                ).health_timeout_seconds,
            ),
        )

    @property
    def collector(self) -> CodeGarbageCollector:
        """Return the garbage collector bound to this registry's blob store."""
        return self._collector

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("filename",),
    )
    def stage_code(
        self,
        *,
        meta: EnvelopeMeta,
        content: bytes,
        filename: str,
        mimetype: str = "",
    ) -> Envelope[CodeBlob]:
        """Store one upload as staged code and return its blob record."""
        request, errors = self._validate_request(
            meta=meta,
            model=StageCodeRequest,
            payload={"content": content, "filename": filename, "mimetype": mimetype},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, StageCodeRequest)

        if len(request.content) == 0:
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        "code file not provided",
                        code=registry_codes.CODE_NOT_PROVIDED,
                    )
                ],
            )
        if len(request.content) > self._settings.max_code_size_bytes:
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        "code file exceeds max_code_size_bytes",
                        code=registry_codes.CODE_TOO_LARGE,
                        metadata={"size_bytes": str(len(request.content))},
                    )
                ],
            )

        try:
            blob = self._blob_store.stage(
                content=request.content,
                filename=request.filename,
                mimetype=request.mimetype,
            )
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation="stage_code", exc=exc)
        return success(meta=meta, payload=blob)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("blob_id",),
    )
    def get_code(self, *, meta: EnvelopeMeta, blob_id: str) -> Envelope[CodeContent]:
        """Read one code blob with its payload bytes."""
        request, errors = self._validate_request(
            meta=meta, model=BlobIdRequest, payload={"blob_id": blob_id}
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, BlobIdRequest)

        try:
            code = self._blob_store.read(request.blob_id)
        except FileNotFoundError:
            code = None
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation="get_code", exc=exc)
        if code is None:
            return self._not_found(
                meta=meta, message="code file not found", blob_id=request.blob_id
            )
        return success(meta=meta, payload=code)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("owner", "function_id", "version"),
    )
    def create_function(
        self,
        *,
        meta: EnvelopeMeta,
        owner: str,
        function_id: str,
        version: str,
        outputs: Sequence[str],
        types: Sequence[TypeSpecInput],
    ) -> Envelope[FunctionVersion]:
        """Claim staged code per type and record a new function version."""
        request, errors = self._validate_request(
            meta=meta,
            model=CreateFunctionRequest,
            payload={
                "function_id": function_id,
                "version": version,
                "owner": owner,
                "outputs": outputs,
                "types": _type_payloads(types),
            },
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, CreateFunctionRequest)

        try:
            exists = self._repository.version_exists(
                function_id=request.function_id,
                version=request.version,
                owner=request.owner,
            )
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation="create_function", exc=exc)
        if exists:
            return failure(
                meta=meta,
                errors=[
                    conflict_error(
                        "function version already exists",
                        code=codes.ALREADY_EXISTS,
                        metadata={
                            "function_id": request.function_id,
                            "version": request.version,
                        },
                    )
                ],
            )

        now = self._clock()
        created: list[FunctionVersionRow] = []
        for spec in request.types:
            row, error = self._claim_and_insert(
                meta=meta,
                operation="create_function",
                function_id=request.function_id,
                version=request.version,
                owner=request.owner,
                type=spec.type,
                blob_id=spec.blob_id,
                outputs=request.outputs,
                now=now,
            )
            if error is not None:
                return error
            assert row is not None
            created.append(row)

        return success(
            meta=meta,
            payload=_version_view(created, outputs=request.outputs),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("owner", "function_id", "version"),
    )
    def update_function(
        self,
        *,
        meta: EnvelopeMeta,
        owner: str,
        function_id: str,
        version: str,
        outputs: Sequence[str],
        types: Sequence[TypeSpecInput],
    ) -> Envelope[FunctionVersion]:
        """Reconcile stored types of one version against the requested set.

        Dropped types lose their code and row; kept types with a new blob
        claim it and release the old one; new types are claimed and inserted.
        """
        request, errors = self._validate_request(
            meta=meta,
            model=UpdateFunctionRequest,
            payload={
                "function_id": function_id,
                "version": version,
                "owner": owner,
                "outputs": outputs,
                "types": _type_payloads(types),
            },
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, UpdateFunctionRequest)

        operation = "update_function"
        try:
            stored = self._repository.list_rows(
                function_id=request.function_id,
                owner=request.owner,
                version=request.version,
            )
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation=operation, exc=exc)
        if not stored:
            return self._not_found(
                meta=meta,
                message="function version not found",
                function_id=request.function_id,
                version=request.version,
            )

        requested = {spec.type: spec for spec in request.types}
        stored_types = {row.type for row in stored}
        now = self._clock()
        reconciled: list[FunctionVersionRow] = []

        for row in stored:
            spec = requested.get(row.type)
            try:
                if spec is None:
                    self._blob_store.delete(row.blob_id)
                    self._repository.delete_row(record_id=row.record_id)
                    continue
                if spec.blob_id == row.blob_id:
                    if request.outputs != row.outputs:
                        refreshed = self._repository.update_row(
                            record_id=row.record_id,
                            outputs=request.outputs,
                            updated_at=now,
                        )
                        row = refreshed if refreshed is not None else row
                    reconciled.append(row)
                    continue
                if not self._blob_store.claim(spec.blob_id):
                    return failure(meta=meta, errors=[_not_staged(spec.blob_id)])
            except Exception as exc:  # noqa: BLE001
                return self._store_failure(meta=meta, operation=operation, exc=exc)

            try:
                replaced = self._repository.update_row(
                    record_id=row.record_id,
                    outputs=request.outputs,
                    updated_at=now,
                    blob_id=spec.blob_id,
                )
            except Exception as exc:  # noqa: BLE001
                self._release_claimed_blob(spec.blob_id)
                return self._store_failure(meta=meta, operation=operation, exc=exc)
            if replaced is None:
                self._release_claimed_blob(spec.blob_id)
                continue
            self._release_claimed_blob(row.blob_id)
            reconciled.append(replaced)

        for spec in request.types:
            if spec.type in stored_types:
                continue
            inserted, error = self._claim_and_insert(
                meta=meta,
                operation=operation,
                function_id=request.function_id,
                version=request.version,
                owner=request.owner,
                type=spec.type,
                blob_id=spec.blob_id,
                outputs=request.outputs,
                now=now,
            )
            if error is not None:
                return error
            assert inserted is not None
            reconciled.append(inserted)

        return success(
            meta=meta,
            payload=_version_view(reconciled, outputs=request.outputs),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("owner", "function_id", "version", "type"),
    )
    def delete_function(
        self,
        *,
        meta: EnvelopeMeta,
        owner: str,
        function_id: str,
        version: str | None = None,
        type: str | None = None,
    ) -> Envelope[DeleteResult]:
        """Delete rows at the selected granularity, code first then metadata."""
        request, errors = self._validate_request(
            meta=meta,
            model=FunctionKeyRequest,
            payload={
                "function_id": function_id,
                "owner": owner,
                "version": version,
                "type": type,
            },
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, FunctionKeyRequest)

        deleted_count = 0
        try:
            rows = self._repository.list_rows(
                function_id=request.function_id,
                owner=request.owner,
                version=request.version,
                type=request.type,
            )
            if not rows:
                return self._not_found(
                    meta=meta,
                    message="function not found",
                    function_id=request.function_id,
                    version=request.version,
                    type=request.type,
                )
            for row in rows:
                self._blob_store.delete(row.blob_id)
                if self._repository.delete_row(record_id=row.record_id):
                    deleted_count += 1
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "delete_function stopped after %d row(s): function_id=%s",
                deleted_count,
                request.function_id,
            )
            return self._store_failure(meta=meta, operation="delete_function", exc=exc)
        return success(meta=meta, payload=DeleteResult(deleted_count=deleted_count))

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("owner", "function_id", "version", "type"),
    )
    def get_function(
        self,
        *,
        meta: EnvelopeMeta,
        owner: str,
        function_id: str,
        version: str | None = None,
        type: str | None = None,
    ) -> Envelope[FunctionVersion]:
        """Read one type, one version or the latest version of a function.

        The latest version is the greatest version string by plain codepoint
        comparison, so ``"10.0"`` sorts before ``"2.0"``.
        """
        request, errors = self._validate_request(
            meta=meta,
            model=FunctionKeyRequest,
            payload={
                "function_id": function_id,
                "owner": owner,
                "version": version,
                "type": type,
            },
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, FunctionKeyRequest)

        try:
            rows = self._repository.list_rows(
                function_id=request.function_id,
                owner=request.owner,
                version=request.version,
                type=request.type,
            )
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation="get_function", exc=exc)

        if rows and request.version is None:
            latest = max(row.version for row in rows)
            rows = [row for row in rows if row.version == latest]
        if not rows:
            return self._not_found(
                meta=meta,
                message="function not found",
                function_id=request.function_id,
                version=request.version,
                type=request.type,
            )
        return success(meta=meta, payload=_version_view(rows))

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def find_functions(
        self,
        *,
        meta: EnvelopeMeta,
        offset: int = 0,
        limit: int = 20,
        id_partial: str | None = None,
    ) -> Envelope[FunctionListing]:
        """List the latest representative of each function across all owners."""
        request, errors = self._validate_request(
            meta=meta,
            model=FindFunctionsRequest,
            payload={"offset": offset, "limit": limit, "id_partial": id_partial},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, FindFunctionsRequest)

        if request.limit > self._settings.max_list_limit:
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        f"limit must be <= {self._settings.max_list_limit}",
                        code=codes.INVALID_ARGUMENT,
                        metadata={"field": "limit"},
                    )
                ],
            )

        try:
            rows, total = self._repository.find_latest(
                offset=request.offset,
                limit=request.limit,
                id_partial=request.id_partial,
            )
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation="find_functions", exc=exc)

        return success(
            meta=meta,
            payload=FunctionListing(
                items=_merge_representatives(rows),
                total=total,
                limit=request.limit,
                offset=request.offset,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("owner", "function_id"),
    )
    def get_function_versions(
        self, *, meta: EnvelopeMeta, owner: str, function_id: str
    ) -> Envelope[FunctionVersions]:
        """List distinct versions of one function in insertion order."""
        request, errors = self._validate_request(
            meta=meta,
            model=FunctionKeyRequest,
            payload={"function_id": function_id, "owner": owner},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, FunctionKeyRequest)

        try:
            rows = self._repository.list_rows(
                function_id=request.function_id, owner=request.owner
            )
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(
                meta=meta, operation="get_function_versions", exc=exc
            )
        if not rows:
            return self._not_found(
                meta=meta, message="function not found", function_id=request.function_id
            )
        return success(
            meta=meta,
            payload=FunctionVersions(
                function_id=request.function_id,
                versions=tuple(dict.fromkeys(row.version for row in rows)),
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def sweep_staged_code(self, *, meta: EnvelopeMeta) -> Envelope[SweepReport]:
        """Run one garbage-collection sweep over expired staged code."""
        errors = validate_meta(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            report = self._collector.sweep()
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation="sweep_staged_code", exc=exc)
        return success(meta=meta, payload=report)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return readiness of the metadata store and the code payload root."""
        errors = validate_meta(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            metadata_ready = self._probe_metadata()
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation="health", exc=exc)

        payloads = self._blob_store.health()
        return success(
            meta=meta,
            payload=HealthStatus(
                service_ready=metadata_ready and payloads.ready,
                metadata_ready=metadata_ready,
                blob_store_ready=payloads.ready,
                detail=payloads.detail if metadata_ready else "metadata store ping failed",
            ),
        )

    def _probe_metadata(self) -> bool:
        """Return metadata store readiness, falling back to a lookup probe."""
        if self._metadata_probe is not None:
            return self._metadata_probe()
        self._blob_store.get(_HEALTH_PROBE_BLOB_ID)
        return True

    def _claim_and_insert(
        self,
        *,
        meta: EnvelopeMeta,
        operation: str,
        function_id: str,
        version: str,
        owner: str,
        type: str,
        blob_id: str,
        outputs: Sequence[str],
        now: datetime,
    ) -> tuple[FunctionVersionRow | None, Envelope[Any] | None]:
        """Claim one blob and insert its row, releasing the blob if the insert fails."""
        try:
            claimed = self._blob_store.claim(blob_id)
        except Exception as exc:  # noqa: BLE001
            return None, self._store_failure(meta=meta, operation=operation, exc=exc)
        if not claimed:
            return None, failure(meta=meta, errors=[_not_staged(blob_id)])

        try:
            row = self._repository.insert_row(
                function_id=function_id,
                version=version,
                type=type,
                owner=owner,
                blob_id=blob_id,
                outputs=outputs,
                now=now,
            )
        except Exception as exc:  # noqa: BLE001
            self._release_claimed_blob(blob_id)
            return None, self._store_failure(meta=meta, operation=operation, exc=exc)
        return row, None

    def _release_claimed_blob(self, blob_id: str) -> None:
        """Best-effort delete of a claimed blob that no row references."""
        try:
            self._blob_store.delete(blob_id)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "Failed to release claimed code: blob_id=%s exception_type=%s",
                blob_id,
                type(exc).__name__,
                exc_info=exc,
            )

    def _validate_request(
        self,
        *,
        meta: EnvelopeMeta,
        model: type[BaseModel],
        payload: dict[str, Any] | None,
    ) -> tuple[BaseModel | None, list[ErrorDetail]]:
        """Validate envelope metadata and request payload model."""
        errors = validate_meta(meta)
        if errors:
            return None, errors

        try:
            request = model.model_validate(payload or {})
        except ValidationError as exc:
            return None, [
                validation_error(
                    f"request validation failed: {err['msg']}",
                    code=codes.INVALID_ARGUMENT,
                    metadata={"field": ".".join(str(p) for p in err["loc"])},
                )
                for err in exc.errors()
            ]
        return request, []

    def _not_found(
        self, *, meta: EnvelopeMeta, message: str, **references: str | None
    ) -> Envelope[Any]:
        """Return canonical not-found envelope for registry lookups."""
        return failure(
            meta=meta,
            errors=[
                not_found_error(
                    message,
                    code=codes.RESOURCE_NOT_FOUND,
                    metadata={
                        key: value
                        for key, value in references.items()
                        if value is not None
                    },
                )
            ],
        )

    def _store_failure(
        self,
        *,
        meta: EnvelopeMeta,
        operation: str,
        exc: Exception,
    ) -> Envelope[Any]:
        """Map one storage/runtime exception into structured envelope errors."""
        if _is_database_error(exc):
            error = normalize_postgres_error(exc)
        else:
            error = dependency_error(
                f"{operation} failed",
                code=codes.DEPENDENCY_FAILURE,
                metadata={"exception_type": type(exc).__name__},
            )
        _LOGGER.warning(
            "%s failed: category=%s exception_type=%s",
            operation,
            error.category.value,
            type(exc).__name__,
            exc_info=exc,
        )
        return failure(meta=meta, errors=[error])


def _type_payloads(types: Sequence[TypeSpecInput]) -> list[Any]:
    """Convert typed refs to plain mappings for request validation."""
    payloads: list[Any] = []
    for spec in types:
        if isinstance(spec, FunctionTypeRef):
            payloads.append(spec.model_dump())
        elif isinstance(spec, Mapping):
            payloads.append(dict(spec))
        else:
            payloads.append(spec)
    return payloads


def _not_staged(blob_id: str) -> ErrorDetail:
    """Return the single error reported for any unsuccessful claim."""
    return validation_error(
        f"no staged code file with id '{blob_id}'",
        code=registry_codes.CODE_NOT_STAGED,
        metadata={"blob_id": blob_id},
    )


def _version_view(
    rows: Sequence[FunctionVersionRow], *, outputs: Sequence[str] | None = None
) -> FunctionVersion:
    """Assemble one logical version from its rows.

    ``created_at`` is the earliest row's and ``updated_at`` the latest's.
    Without explicit outputs, the most recently updated row supplies them.
    """
    newest = max(rows, key=lambda row: row.updated_at)
    return FunctionVersion(
        function_id=rows[0].function_id,
        version=rows[0].version,
        types=tuple(FunctionTypeRef(type=row.type, blob_id=row.blob_id) for row in rows),
        outputs=tuple(outputs) if outputs is not None else newest.outputs,
        created_at=min(row.created_at for row in rows),
        updated_at=newest.updated_at,
    )


def _merge_representatives(
    rows: Sequence[FunctionVersionRow],
) -> tuple[FunctionSummary, ...]:
    """Merge per-type representatives sharing a function id into one item.

    Items keep the order the store returned them in. The first representative
    of each function supplies version, outputs and timestamps.
    """
    grouped: dict[str, list[FunctionVersionRow]] = {}
    for row in rows:
        grouped.setdefault(row.function_id, []).append(row)
    return tuple(
        FunctionSummary(
            function_id=function_id,
            types=tuple(
                FunctionTypeRef(type=row.type, blob_id=row.blob_id) for row in members
            ),
            version=members[0].version,
            outputs=members[0].outputs,
            created_at=members[0].created_at,
            updated_at=members[0].updated_at,
        )
        for function_id, members in grouped.items()
    )


def _is_database_error(exc: Exception) -> bool:
    """Return whether one exception originates from the SQL stack."""
    module = type(exc).__module__
    return module.startswith(("sqlalchemy", "psycopg", "sqlite3"))
