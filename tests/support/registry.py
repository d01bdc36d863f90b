"""Mock HTTP registry used by the registry adapter and application tests."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx

from blok.adapters.http_resilience import ResilientClient
from blok.adapters.registry import HttpRegistryTransport
from blok.config import RegistryConfig, ResilienceConfig, RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Callable

BASE_URL = "https://registry.example.com/api/"

type Handler = Callable[[httpx.Request], httpx.Response]


class RecordingHandler:
    """Answers requests from a path -> response table and keeps every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response | Exception] = {}

    def route(self, method: str, path: str, response: httpx.Response | Exception) -> None:
        self.routes[(method, f"/api/{path}")] = response

    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.routes.get((request.method, request.url.path))
        if answer is None:
            return httpx.Response(200, json={"vertices": {}})
        if isinstance(answer, Exception):
            raise answer
        return answer


def make_transport(handler: Handler) -> HttpRegistryTransport:
    resilience = ResilienceConfig(
        name="registry-test",
        base_url=BASE_URL,
        retry=RetryPolicy(total=0, backoff_factor=0.0),
    )
    return HttpRegistryTransport(
        config=RegistryConfig(base_url=BASE_URL, resilience=resilience),
        client_factory=lambda config: ResilientClient(
            config, transport=httpx.MockTransport(handler)
        ),
    )


def query_response(*schemas: dict[str, Any], archived: bool = False) -> httpx.Response:
    vertices: dict[str, dict[str, Any]] = {}
    for schema in schemas:
        base_url, _, version = schema["$id"].rpartition("v/")
        vertices.setdefault(base_url, {})[version] = {
            "kind": schema["kind"],
            "inner": {"schema": schema, "metadata": {"archived": archived}},
        }
    return httpx.Response(200, json={"vertices": vertices})
