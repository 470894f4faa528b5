"""Settings loading entrypoint.

The cascade is always:
1) explicit params (CLI flags, test overrides)
2) environment variables (``FUNCREG_`` prefix, ``__`` nesting)
3) YAML file at ``$FUNCREG_CONFIG_FILE`` or ``~/.config/funcreg/funcreg.yaml``
4) model defaults

Example: ``FUNCREG_LOGGING__LEVEL=DEBUG`` -> ``logging.level = "DEBUG"``.
"""

from __future__ import annotations

from typing import Any, Mapping

from .models import RegistrySettings


def load_settings(*, cli_params: Mapping[str, Any] | None = None) -> RegistrySettings:
    """Resolve runtime settings through the standard precedence cascade."""
    return RegistrySettings(**dict(cli_params or {}))
