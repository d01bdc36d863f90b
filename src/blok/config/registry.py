"""Registry connection and reconciliation settings."""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import float_env, int_env, list_env, optional_env, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

REGISTRY_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_WORKERS = 4
DEFAULT_REQUESTS_PER_SECOND = 20


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    """Holds the registry endpoint, credentials and HTTP behaviour."""

    base_url: str
    resilience: ResilienceConfig
    token: str | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class ReconcileSettings:
    max_workers: int = DEFAULT_MAX_WORKERS
    timeout_seconds: float | None = None
    managed_prefixes: tuple[str, ...] = ()


def get_registry_config(*, resilience: ResilienceConfig | None = None) -> RegistryConfig:
    values = require_env_vars(("BLOK_REGISTRY_URL",))
    base_url = values["BLOK_REGISTRY_URL"].rstrip("/") + "/"
    token = optional_env("BLOK_REGISTRY_TOKEN")
    headers = {"Authorization": f"Bearer {token}"} if token else None
    requests_per_second = int_env("BLOK_REQUESTS_PER_SECOND", DEFAULT_REQUESTS_PER_SECOND)
    return RegistryConfig(
        base_url=base_url,
        token=token,
        resilience=resilience
        or ResilienceConfig(
            name="registry",
            base_url=base_url,
            timeout_seconds=REGISTRY_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=requests_per_second, per_seconds=1.0),
            default_headers=headers,
        ),
    )


def get_reconcile_settings() -> ReconcileSettings:
    return ReconcileSettings(
        max_workers=int_env("BLOK_MAX_WORKERS", DEFAULT_MAX_WORKERS),
        timeout_seconds=float_env("BLOK_TIMEOUT_SECONDS", None),
        managed_prefixes=list_env("BLOK_MANAGED_PREFIXES"),
    )
