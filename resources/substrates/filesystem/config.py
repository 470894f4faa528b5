"""Pydantic settings for the filesystem substrate component."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

from packages.registry_shared.config import RegistrySettings, resolve_component_settings
from resources.substrates.filesystem.component import RESOURCE_COMPONENT_ID


class FilesystemSubstrateSettings(BaseModel):
    """Filesystem substrate runtime settings for code payload persistence."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    root_dir: str = "./var/code"
    temp_prefix: str = "codetmp"
    fsync_writes: bool = True

    @field_validator("root_dir")
    @classmethod
    def _validate_root_dir(cls, value: str) -> str:
        """Require a non-empty root directory path."""
        normalized = value.strip()
        if normalized == "":
            raise ValueError("root_dir is required")
        return normalized

    @field_validator("temp_prefix")
    @classmethod
    def _validate_temp_prefix(cls, value: str) -> str:
        """Require a non-empty temporary filename prefix."""
        normalized = value.strip()
        if normalized == "":
            raise ValueError("temp_prefix is required")
        return normalized

    def root_path(self) -> Path:
        """Return the expanded root path for substrate operations."""
        return Path(self.root_dir).expanduser().resolve()


def resolve_filesystem_substrate_settings(
    settings: RegistrySettings,
) -> FilesystemSubstrateSettings:
    """Resolve filesystem substrate settings from ``substrate.filesystem``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=FilesystemSubstrateSettings,
    )
