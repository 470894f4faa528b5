"""Typed configuration models for registry runtime settings."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "funcreg" / "funcreg.yaml"
CONFIG_PATH_ENV = "FUNCREG_CONFIG_FILE"


class LoggingSettings(BaseModel):
    """Structured logging configuration shared by registry components."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = True
    service: str = "funcreg"
    environment: str = "dev"


class PublicApiOtelSettings(BaseModel):
    """Configurable OTel names for public API tracing and metrics."""

    meter_name: str = "funcreg.public_api"
    tracer_name: str = "funcreg.public_api"
    metric_calls_total: str = "funcreg_public_api_calls_total"
    metric_duration_ms: str = "funcreg_public_api_duration_ms"
    metric_errors_total: str = "funcreg_public_api_errors_total"


class ObservabilitySettings(BaseModel):
    """Global observability configuration."""

    otel: PublicApiOtelSettings = Field(default_factory=PublicApiOtelSettings)


class ComponentNamespaceSettings(BaseModel):
    """Namespace map for grouped component settings under ``components.<kind>``."""

    model_config = ConfigDict(extra="allow")


class ComponentsSettings(BaseModel):
    """Typed ``components`` subtree with support for component-local extras."""

    model_config = ConfigDict(extra="allow")

    service: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )
    substrate: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )

    @model_validator(mode="before")
    @classmethod
    def _reject_flat_component_keys(cls, value: object) -> object:
        """Reject flat component keys in favor of grouped namespaces."""
        if not isinstance(value, dict):
            return value
        for key in value:
            if isinstance(key, str) and key.startswith(("service_", "substrate_")):
                kind, _, name = key.partition("_")
                raise ValueError(
                    f"components.{key} is invalid; use components.{kind}.{name} instead"
                )
        return value


class RegistrySettings(BaseSettings):
    """Root runtime settings resolved from init/env/yaml/defaults sources."""

    model_config = SettingsConfigDict(
        env_prefix="FUNCREG_",
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    components: ComponentsSettings = Field(default_factory=ComponentsSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Apply precedence: init > env > yaml > model defaults."""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(
                settings_cls,
                yaml_file=resolve_config_path(),
                yaml_file_encoding="utf-8",
            ),
        )


def resolve_config_path() -> Path:
    """Return the YAML config path from ``FUNCREG_CONFIG_FILE`` or the default."""
    raw = os.environ.get(CONFIG_PATH_ENV, "").strip()
    if raw == "":
        return DEFAULT_CONFIG_PATH
    return Path(raw).expanduser()


TComponentSettings = TypeVar("TComponentSettings", bound=BaseModel)


def resolve_component_settings(
    *,
    settings: RegistrySettings,
    component_id: str,
    model: type[TComponentSettings],
) -> TComponentSettings:
    """Resolve one component settings object from grouped ``components`` keys."""
    raw_components = settings.components.model_dump(mode="python")
    kind, separator, name = component_id.partition("_")
    if not separator or kind not in {"service", "substrate"}:
        raise ValueError(f"unsupported component id '{component_id}'")

    namespace = raw_components.get(kind, {})
    if not isinstance(namespace, dict):
        raise TypeError(f"components.{kind} must resolve to an object mapping")
    resolved = namespace.get(name, {})
    if not isinstance(resolved, dict):
        raise TypeError(f"components.{kind}.{name} must resolve to an object mapping")
    return model.model_validate(resolved)
