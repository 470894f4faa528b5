"""Canonical error types shared by registry components.

Errors are values, not exceptions: service methods return them inside an
``Envelope`` so callers can map categories onto their own transport semantics
(for example ``not_found`` to HTTP 404).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


class ErrorCategory(str, Enum):
    """High-level error categories shared across component boundaries."""

    UNSPECIFIED = "unspecified"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    DEPENDENCY = "dependency"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ErrorDetail:
    """Structured error object carried in envelope responses."""

    code: str
    message: str
    category: ErrorCategory
    retryable: bool = False
    metadata: Mapping[str, str] = field(default_factory=dict)
