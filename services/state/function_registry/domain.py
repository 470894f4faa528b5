"""Domain contracts for Function Registry Service payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class CodeBlob(BaseModel):
    """Metadata for one uploaded code payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    blob_id: str
    filename: str
    mimetype: str
    size_bytes: int
    staged: bool
    uploaded_at: datetime


class CodeContent(BaseModel):
    """Code payload bytes with their blob metadata."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    blob: CodeBlob
    content: bytes


class FunctionTypeRef(BaseModel):
    """One runtime type of a function version and the code blob it owns."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str
    blob_id: str


class FunctionVersionRow(BaseModel):
    """One stored row keyed by ``(function_id, version, type, owner)``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    record_id: str
    function_id: str
    version: str
    type: str
    owner: str
    blob_id: str
    outputs: tuple[str, ...]
    created_at: datetime
    updated_at: datetime


class FunctionVersion(BaseModel):
    """Logical function version assembled from its per-type rows."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    function_id: str
    version: str
    types: tuple[FunctionTypeRef, ...]
    outputs: tuple[str, ...]
    created_at: datetime
    updated_at: datetime


class FunctionSummary(BaseModel):
    """Listing item: the latest representative rows of one function."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    function_id: str
    types: tuple[FunctionTypeRef, ...]
    version: str
    outputs: tuple[str, ...]
    created_at: datetime
    updated_at: datetime


class FunctionListing(BaseModel):
    """One page of grouped function summaries."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    items: tuple[FunctionSummary, ...]
    total: int
    limit: int
    offset: int


class FunctionVersions(BaseModel):
    """Distinct versions of one function in insertion order."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    function_id: str
    versions: tuple[str, ...]


class DeleteResult(BaseModel):
    """Outcome of one cascading delete."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    deleted_count: int


class SweepReport(BaseModel):
    """Outcome of one garbage-collection sweep over staged code."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    cutoff: datetime
    examined: int
    deleted_ids: tuple[str, ...]


class HealthStatus(BaseModel):
    """Registry and owned dependency readiness status payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    metadata_ready: bool
    blob_store_ready: bool
    detail: str
