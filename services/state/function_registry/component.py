"""Component declaration for the Function Registry Service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_function_registry"
