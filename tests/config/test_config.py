from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from blok.config import (
    InvalidConfigurationValueError,
    MissingConfigurationError,
    get_reconcile_settings,
    get_registry_config,
    level_for,
    require_env_vars,
)
from blok.config.env import float_env, int_env, list_env

if TYPE_CHECKING:
    from collections.abc import Callable


def test_require_env_vars_returns_stripped_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  value ")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_typed_env_helpers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COUNT", "8")
    monkeypatch.setenv("SECONDS", "2.5")
    monkeypatch.setenv("ITEMS", "a, ,b,")

    assert int_env("COUNT", 1) == 8
    assert int_env("UNSET_COUNT", 3) == 3
    assert float_env("SECONDS", None) == 2.5
    assert list_env("ITEMS") == ("a", "b")
    assert list_env("UNSET_ITEMS") == ()


@pytest.mark.parametrize(
    ("name", "value", "read"),
    [
        ("COUNT", "many", lambda: int_env("COUNT", 1)),
        ("COUNT", "0", lambda: int_env("COUNT", 1)),
        ("SECONDS", "-1", lambda: float_env("SECONDS", None)),
    ],
)
def test_typed_env_helpers_reject_bad_values(
    monkeypatch: pytest.MonkeyPatch,
    name: str,
    value: str,
    read: Callable[[], object],
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(InvalidConfigurationValueError, match=name):
        read()


def test_registry_config_requires_url() -> None:
    with pytest.raises(MissingConfigurationError, match="BLOK_REGISTRY_URL"):
        get_registry_config()


def test_registry_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLOK_REGISTRY_URL", "https://registry.example.com/api")
    monkeypatch.setenv("BLOK_REGISTRY_TOKEN", "secret")

    config = get_registry_config()

    assert config.base_url == "https://registry.example.com/api/"
    assert config.resilience.base_url == config.base_url
    assert config.resilience.default_headers == {"Authorization": "Bearer secret"}
    assert config.resilience.ratelimit is not None
    assert config.resilience.ratelimit.max_calls == 20


def test_registry_request_rate_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLOK_REGISTRY_URL", "https://registry.example.com/")
    monkeypatch.setenv("BLOK_REQUESTS_PER_SECOND", "5")

    ratelimit = get_registry_config().resilience.ratelimit

    assert ratelimit is not None
    assert ratelimit.max_calls == 5
    assert ratelimit.per_seconds == 1.0


def test_reconcile_settings_defaults_and_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    defaults = get_reconcile_settings()
    monkeypatch.setenv("BLOK_MAX_WORKERS", "2")
    monkeypatch.setenv("BLOK_TIMEOUT_SECONDS", "30")
    monkeypatch.setenv("BLOK_MANAGED_PREFIXES", "https://a.example/,https://b.example/")

    configured = get_reconcile_settings()

    assert defaults.max_workers == 4
    assert defaults.timeout_seconds is None
    assert defaults.managed_prefixes == ()
    assert configured.max_workers == 2
    assert configured.timeout_seconds == 30.0
    assert configured.managed_prefixes == ("https://a.example/", "https://b.example/")


def test_level_for_verbosity() -> None:
    assert level_for() == logging.INFO
    assert level_for(verbose=2) == logging.DEBUG
    assert level_for(quiet=True) == logging.WARNING
