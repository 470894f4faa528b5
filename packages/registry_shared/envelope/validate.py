"""Validation helpers for envelope metadata."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from packages.registry_shared.errors import ErrorDetail, codes, validation_error

from .meta import EnvelopeKind, EnvelopeMeta


class _ValidatedEnvelopeMeta(BaseModel):
    """Validation-only envelope metadata model used by ``validate_meta``."""

    model_config = ConfigDict(extra="forbid")

    envelope_id: str = Field(min_length=1)
    trace_id: str = Field(min_length=1)
    parent_id: str
    timestamp: datetime
    kind: EnvelopeKind
    source: str = Field(min_length=1)
    principal: str = Field(min_length=1)

    @model_validator(mode="after")
    def _enforce_kind(self) -> "_ValidatedEnvelopeMeta":
        """Reject unspecified envelope kinds."""
        if self.kind == EnvelopeKind.UNSPECIFIED:
            raise ValueError("metadata.kind must be specified")
        return self


def validate_meta(meta: EnvelopeMeta) -> list[ErrorDetail]:
    """Return validation errors for missing or malformed metadata fields."""
    try:
        _ValidatedEnvelopeMeta.model_validate(meta.model_dump(mode="python"))
    except ValidationError as exc:
        return [_map_meta_validation_error(exc)]
    return []


def _map_meta_validation_error(error: ValidationError) -> ErrorDetail:
    """Map the first Pydantic metadata failure to a stable public error."""
    first_error = error.errors()[0]
    location = first_error.get("loc", ())
    if not location:
        return validation_error(
            str(first_error.get("msg", "invalid metadata")),
            code=codes.INVALID_ARGUMENT,
        )
    field = ".".join(str(part) for part in location)
    return validation_error(
        f"metadata.{field} is invalid",
        code=codes.MISSING_REQUIRED_FIELD,
        metadata={"field": f"metadata.{field}"},
    )
