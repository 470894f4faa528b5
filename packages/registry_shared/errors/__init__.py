"""Public shared error API for registry components."""

from . import codes
from .factories import (
    conflict_error,
    dependency_error,
    internal_error,
    not_found_error,
    validation_error,
)
from .types import ErrorCategory, ErrorDetail

__all__ = [
    "ErrorCategory",
    "ErrorDetail",
    "codes",
    "conflict_error",
    "dependency_error",
    "internal_error",
    "not_found_error",
    "validation_error",
]
