"""Public API for shared registry configuration utilities."""

from .loader import load_settings
from .models import (
    CONFIG_PATH_ENV,
    DEFAULT_CONFIG_PATH,
    ComponentsSettings,
    LoggingSettings,
    ObservabilitySettings,
    RegistrySettings,
    resolve_component_settings,
    resolve_config_path,
)

__all__ = [
    "CONFIG_PATH_ENV",
    "DEFAULT_CONFIG_PATH",
    "ComponentsSettings",
    "LoggingSettings",
    "ObservabilitySettings",
    "RegistrySettings",
    "load_settings",
    "resolve_component_settings",
    "resolve_config_path",
]
