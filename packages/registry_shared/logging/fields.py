"""Canonical logging field names for structured registry logs.

Keeping names centralized prevents drift between components and the
OpenTelemetry attributes derived from the same context.
"""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

# Envelope/correlation fields.
TRACE_ID = "trace_id"
ENVELOPE_ID = "envelope_id"
PARENT_ID = "parent_id"
SOURCE = "source"
PRINCIPAL = "principal"

# Public API invocation fields.
COMPONENT_ID = "component_id"
API_NAME = "api_name"
PUBLIC_API_INVOCATION_EVENT = "public_api_invocation"
PUBLIC_API_COMPLETION_EVENT = "public_api_completion"
PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT = "public_api_instrumentation_failure"
SUCCESS = "success"
DURATION_MS = "duration_ms"
ERRORS = "errors"
OUTCOME = "outcome"
ERROR_CATEGORY = "error_category"
STAGE = "stage"
CONCERN = "concern"

# Garbage collection fields.
GC_SWEEP_EVENT = "code_gc_sweep"
GC_CUTOFF = "cutoff"
GC_EXAMINED = "examined"
GC_DELETED = "deleted"

# Common service-level fields.
SERVICE = "service"
ENVIRONMENT = "environment"
