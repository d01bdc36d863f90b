"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_vars
from .errors import ConfigurationError, InvalidConfigurationValueError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging, level_for
from .registry import (
    ReconcileSettings,
    RegistryConfig,
    get_reconcile_settings,
    get_registry_config,
)

__all__ = [
    "ConfigurationError",
    "InvalidConfigurationValueError",
    "MissingConfigurationError",
    "RateLimit",
    "ReconcileSettings",
    "RegistryConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "configure_logging",
    "get_reconcile_settings",
    "get_registry_config",
    "level_for",
    "require_env_vars",
]
