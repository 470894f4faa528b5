"""Pydantic settings for Function Registry Service behavior."""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field

from packages.registry_shared.config import RegistrySettings, resolve_component_settings
from services.state.function_registry.component import SERVICE_COMPONENT_ID


class FunctionRegistrySettings(BaseModel):
    """Function Registry runtime behavior settings.

    The staging TTL is read once when the service is built and stays fixed for
    the lifetime of the process.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    staging_ttl_seconds: float = Field(default=86400.0, gt=0)
    gc_interval_seconds: float = Field(default=7200.0, gt=0)
    max_code_size_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    max_list_limit: int = Field(default=500, gt=0)

    @property
    def staging_ttl(self) -> timedelta:
        """Return staging retention as a ``timedelta``."""
        return timedelta(seconds=self.staging_ttl_seconds)


def resolve_function_registry_settings(
    settings: RegistrySettings,
) -> FunctionRegistrySettings:
    """Resolve settings from ``components.service.function_registry``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=FunctionRegistrySettings,
    )
