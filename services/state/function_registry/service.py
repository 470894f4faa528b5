"""Authoritative in-process Python API for Function Registry Service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

from packages.registry_shared.envelope import Envelope, EnvelopeMeta
from services.state.function_registry.domain import (
    CodeBlob,
    CodeContent,
    DeleteResult,
    FunctionListing,
    FunctionTypeRef,
    FunctionVersion,
    FunctionVersions,
    HealthStatus,
    SweepReport,
)

TypeSpecInput = FunctionTypeRef | Mapping[str, str]


class FunctionRegistryService(ABC):
    """Public API for versioned function code registration."""

    @abstractmethod
    def stage_code(
        self,
        *,
        meta: EnvelopeMeta,
        content: bytes,
        filename: str,
        mimetype: str = "",
    ) -> Envelope[CodeBlob]:
        """Store one code upload as staged and return its blob handle."""

    @abstractmethod
    def get_code(self, *, meta: EnvelopeMeta, blob_id: str) -> Envelope[CodeContent]:
        """Read one code blob with its payload bytes."""

    @abstractmethod
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

    @abstractmethod
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
        """Reconcile stored types of one version against the requested set."""

    @abstractmethod
    def delete_function(
        self,
        *,
        meta: EnvelopeMeta,
        owner: str,
        function_id: str,
        version: str | None = None,
        type: str | None = None,
    ) -> Envelope[DeleteResult]:
        """Delete one type, one version or a whole function with its code."""

    @abstractmethod
    def get_function(
        self,
        *,
        meta: EnvelopeMeta,
        owner: str,
        function_id: str,
        version: str | None = None,
        type: str | None = None,
    ) -> Envelope[FunctionVersion]:
        """Read one type, one version or the latest version of a function."""

    @abstractmethod
    def find_functions(
        self,
        *,
        meta: EnvelopeMeta,
        offset: int = 0,
        limit: int = 20,
        id_partial: str | None = None,
    ) -> Envelope[FunctionListing]:
        """List the latest representative of each function, paginated."""

    @abstractmethod
    def get_function_versions(
        self, *, meta: EnvelopeMeta, owner: str, function_id: str
    ) -> Envelope[FunctionVersions]:
        """List distinct versions of one function in insertion order."""

    @abstractmethod
    def sweep_staged_code(self, *, meta: EnvelopeMeta) -> Envelope[SweepReport]:
        """Run one garbage-collection sweep over expired staged code."""

    @abstractmethod
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return registry and owned dependency readiness status."""
