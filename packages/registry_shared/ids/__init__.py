"""Shared ULID primitives for binary key standardization."""

from packages.registry_shared.ids.sqlalchemy import ULID_BYTES_LENGTH, ulid_column
from packages.registry_shared.ids.ulid import (
    generate_ulid_bytes,
    generate_ulid_str,
    parse_ulid_or_none,
    ulid_bytes_to_str,
    ulid_str_to_bytes,
)

__all__ = [
    "ULID_BYTES_LENGTH",
    "ulid_column",
    "generate_ulid_bytes",
    "generate_ulid_str",
    "parse_ulid_or_none",
    "ulid_bytes_to_str",
    "ulid_str_to_bytes",
]
