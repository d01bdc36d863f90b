from __future__ import annotations

import pytest

from blok.adapters.memory import InMemoryRegistry

_BLOK_ENV = (
    "BLOK_REGISTRY_URL",
    "BLOK_REGISTRY_TOKEN",
    "BLOK_MAX_WORKERS",
    "BLOK_TIMEOUT_SECONDS",
    "BLOK_MANAGED_PREFIXES",
    "BLOK_REQUESTS_PER_SECOND",
)


@pytest.fixture(autouse=True)
def _clean_blok_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _BLOK_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def registry() -> InMemoryRegistry:
    return InMemoryRegistry()
