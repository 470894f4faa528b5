"""Validation helpers for filesystem substrate inputs."""

from __future__ import annotations

from packages.registry_shared.ids import ulid_bytes_to_str, ulid_str_to_bytes


def normalize_blob_key(value: str) -> str:
    """Return the canonical uppercase ULID form of one blob key.

    Raises ``ValueError`` for anything that is not a 26-character ULID, so no
    caller-supplied text can escape the substrate root.
    """
    return ulid_bytes_to_str(ulid_str_to_bytes(value))
