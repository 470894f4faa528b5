"""Data-layer exports for Function Registry Service."""

from services.state.function_registry.data.blob_repository import SqlCodeBlobRepository
from services.state.function_registry.data.function_repository import (
    SqlFunctionVersionRepository,
)
from services.state.function_registry.data.runtime import (
    FunctionRegistryRuntime,
    function_registry_schema,
)
from services.state.function_registry.data.schema import (
    code_blobs,
    function_versions,
    metadata,
)

__all__ = [
    "FunctionRegistryRuntime",
    "SqlCodeBlobRepository",
    "SqlFunctionVersionRepository",
    "code_blobs",
    "function_registry_schema",
    "function_versions",
    "metadata",
]
