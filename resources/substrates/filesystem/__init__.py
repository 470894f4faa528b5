"""Filesystem substrate resource exports."""

from resources.substrates.filesystem.component import RESOURCE_COMPONENT_ID
from resources.substrates.filesystem.config import (
    FilesystemSubstrateSettings,
    resolve_filesystem_substrate_settings,
)
from resources.substrates.filesystem.filesystem_substrate import (
    LocalFilesystemBlobSubstrate,
)
from resources.substrates.filesystem.substrate import (
    FilesystemBlobSubstrate,
    FilesystemHealthStatus,
)

__all__ = [
    "RESOURCE_COMPONENT_ID",
    "FilesystemSubstrateSettings",
    "FilesystemBlobSubstrate",
    "FilesystemHealthStatus",
    "LocalFilesystemBlobSubstrate",
    "resolve_filesystem_substrate_settings",
]
