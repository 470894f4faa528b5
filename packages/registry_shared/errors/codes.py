"""Shared error code constants.

Component-specific codes extend this set in the owning component's own
``codes`` module.
"""

# Validation
VALIDATION_ERROR = "VALIDATION_ERROR"
INVALID_ARGUMENT = "INVALID_ARGUMENT"
MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"

# Not found
NOT_FOUND = "NOT_FOUND"
RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

# Conflict
CONFLICT = "CONFLICT"
ALREADY_EXISTS = "ALREADY_EXISTS"

# Dependency / external system
DEPENDENCY_FAILURE = "DEPENDENCY_FAILURE"
DEPENDENCY_TIMEOUT = "DEPENDENCY_TIMEOUT"
DEPENDENCY_UNAVAILABLE = "DEPENDENCY_UNAVAILABLE"

# Internal
INTERNAL_ERROR = "INTERNAL_ERROR"
UNEXPECTED_EXCEPTION = "UNEXPECTED_EXCEPTION"
