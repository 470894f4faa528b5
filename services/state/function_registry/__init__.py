"""Function Registry Service native package exports."""

from packages.registry_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta
from packages.registry_shared.errors import ErrorCategory, ErrorDetail
from services.state.function_registry.component import SERVICE_COMPONENT_ID
from services.state.function_registry.config import FunctionRegistrySettings
from services.state.function_registry.domain import (
    CodeBlob,
    CodeContent,
    DeleteResult,
    FunctionListing,
    FunctionSummary,
    FunctionTypeRef,
    FunctionVersion,
    FunctionVersions,
    HealthStatus,
    SweepReport,
)
from services.state.function_registry.implementation import (
    DefaultFunctionRegistryService,
)
from services.state.function_registry.service import FunctionRegistryService

__all__ = [
    "SERVICE_COMPONENT_ID",
    "CodeBlob",
    "CodeContent",
    "DefaultFunctionRegistryService",
    "DeleteResult",
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "ErrorCategory",
    "ErrorDetail",
    "FunctionListing",
    "FunctionRegistryService",
    "FunctionRegistrySettings",
    "FunctionSummary",
    "FunctionTypeRef",
    "FunctionVersion",
    "FunctionVersions",
    "HealthStatus",
    "SweepReport",
]
