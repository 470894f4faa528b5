"""Pydantic request-validation models for Function Registry Service API."""

from __future__ import annotations

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)


class _ValidationModel(BaseModel):
    """Base request model with strict shape semantics."""

    model_config = ConfigDict(frozen=True, extra="forbid")


def _require_text(value: str, info: ValidationInfo) -> str:
    normalized = value.strip()
    if normalized == "":
        raise ValueError(f"{info.field_name} is required")
    return normalized


class StageCodeRequest(_ValidationModel):
    """Validated stage-code request shape."""

    content: bytes
    filename: str
    mimetype: str = "application/octet-stream"

    @field_validator("filename")
    @classmethod
    def _validate_filename(cls, value: str, info: ValidationInfo) -> str:
        """Require a non-empty original filename."""
        return _require_text(value, info)

    @field_validator("mimetype")
    @classmethod
    def _normalize_mimetype(cls, value: str) -> str:
        """Default blank mimetypes to opaque binary."""
        return value.strip() or "application/octet-stream"


class BlobIdRequest(_ValidationModel):
    """Validated request shape for operations keyed by blob id."""

    blob_id: str

    @field_validator("blob_id")
    @classmethod
    def _validate_blob_id(cls, value: str, info: ValidationInfo) -> str:
        """Require a non-empty blob id and normalize to uppercase."""
        return _require_text(value, info).upper()


class TypeSpec(_ValidationModel):
    """One requested ``{type, blob_id}`` pair."""

    type: str
    blob_id: str

    @field_validator("type")
    @classmethod
    def _validate_type(cls, value: str, info: ValidationInfo) -> str:
        """Require a non-empty type name."""
        return _require_text(value, info)

    @field_validator("blob_id")
    @classmethod
    def _validate_blob_id(cls, value: str, info: ValidationInfo) -> str:
        """Require a non-empty blob id and normalize to uppercase."""
        return _require_text(value, info).upper()


class _FunctionSpec(_ValidationModel):
    """Shared shape of create/update function specs."""

    function_id: str
    version: str
    owner: str
    outputs: tuple[str, ...] = Field(min_length=1)
    types: tuple[TypeSpec, ...] = Field(min_length=1)

    @field_validator("function_id", "version", "owner")
    @classmethod
    def _validate_identity(cls, value: str, info: ValidationInfo) -> str:
        """Require non-empty identity fields."""
        return _require_text(value, info)

    @model_validator(mode="after")
    def _reject_duplicate_types(self) -> "_FunctionSpec":
        """Each type may appear once per version."""
        seen: set[str] = set()
        for spec in self.types:
            if spec.type in seen:
                raise ValueError(f"duplicate type '{spec.type}'")
            seen.add(spec.type)
        return self


class CreateFunctionRequest(_FunctionSpec):
    """Validated create-function request shape."""


class UpdateFunctionRequest(_FunctionSpec):
    """Validated update-function request shape."""


class FunctionKeyRequest(_ValidationModel):
    """Validated selector for get/delete at function, version or type scope."""

    function_id: str
    owner: str
    version: str | None = None
    type: str | None = None

    @field_validator("function_id", "owner")
    @classmethod
    def _validate_identity(cls, value: str, info: ValidationInfo) -> str:
        """Require non-empty identity fields."""
        return _require_text(value, info)

    @field_validator("version", "type")
    @classmethod
    def _normalize_optional(cls, value: str | None) -> str | None:
        """Treat blank optional selectors as absent."""
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def _type_requires_version(self) -> "FunctionKeyRequest":
        """A type selector is only meaningful within one version."""
        if self.type is not None and self.version is None:
            raise ValueError("type requires version")
        return self


class FindFunctionsRequest(_ValidationModel):
    """Validated paginated listing request."""

    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=20, gt=0)
    id_partial: str | None = None

    @field_validator("id_partial")
    @classmethod
    def _normalize_partial(cls, value: str | None) -> str | None:
        """Treat a blank search term as no filter."""
        if value is None:
            return None
        return value.strip() or None
