"""Tests for Function Registry settings resolution."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from packages.registry_shared.config import RegistrySettings
from services.state.function_registry.config import (
    FunctionRegistrySettings,
    resolve_function_registry_settings,
)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FUNCREG_CONFIG_FILE", str(tmp_path / "missing.yaml"))


def test_defaults() -> None:
    """Defaults keep staged code for a day and sweep every two hours."""
    settings = resolve_function_registry_settings(RegistrySettings())

    assert settings == FunctionRegistrySettings()
    assert settings.staging_ttl == timedelta(days=1)
    assert settings.gc_interval_seconds == 7200
    assert settings.max_code_size_bytes == 50 * 1024 * 1024


def test_resolves_grouped_component_keys() -> None:
    """Values come from ``components.service.function_registry``."""
    settings = resolve_function_registry_settings(
        RegistrySettings(
            components={
                "service": {
                    "function_registry": {
                        "staging_ttl_seconds": 60,
                        "gc_interval_seconds": 5,
                    }
                }
            }
        )
    )

    assert settings.staging_ttl == timedelta(minutes=1)
    assert settings.gc_interval_seconds == 5


def test_resolves_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Nested environment variables override defaults."""
    monkeypatch.setenv(
        "FUNCREG_COMPONENTS__SERVICE__FUNCTION_REGISTRY__MAX_LIST_LIMIT", "25"
    )

    settings = resolve_function_registry_settings(RegistrySettings())

    assert settings.max_list_limit == 25


def test_rejects_unknown_and_invalid_values() -> None:
    """Unknown keys and non-positive durations are rejected."""
    with pytest.raises(ValidationError):
        FunctionRegistrySettings(staging_ttl_seconds=0)
    with pytest.raises(ValidationError):
        FunctionRegistrySettings(unknown=True)
