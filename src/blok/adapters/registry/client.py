"""HTTP transport for a Block Protocol style ontology type registry."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, Self

import httpx
from pydantic import ValidationError

from blok.adapters.http_resilience import ResilientClient
from blok.domain.model import InvalidConstraintError, InvalidVersionedUrlError, TypeKind
from blok.domain.ports.registry import (
    RegistryError,
    RegistryRejectedError,
    RegistryUnavailableError,
    TypeAlreadyExistsError,
    WriteResult,
)

from .schema import ErrorResponse, QueryResponse
from .translator import UnsupportedSchemaError, parse_ontology_type, serialize_ontology_type

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from blok.config.http_resilience import ResilienceConfig
    from blok.config.registry import RegistryConfig
    from blok.domain.model import OntologyType, VersionedUrl

log = getLogger(__name__)

_ENDPOINTS: dict[TypeKind, str] = {
    TypeKind.DATA_TYPE: "data-types",
    TypeKind.PROPERTY_TYPE: "property-types",
    TypeKind.ENTITY_TYPE: "entity-types",
}

# Only the types themselves are needed; references are resolved locally.
_GRAPH_RESOLVE_DEPTHS: dict[str, Any] = {
    "inheritsFrom": {"outgoing": 0},
    "constrainsValuesOn": {"outgoing": 0},
    "constrainsPropertiesOn": {"outgoing": 0},
    "constrainsLinksOn": {"outgoing": 0},
    "constrainsLinkDestinationsOn": {"outgoing": 0},
    "isOfType": {"outgoing": 0},
    "hasLeftEntity": {"outgoing": 0, "incoming": 0},
    "hasRightEntity": {"outgoing": 0, "incoming": 0},
}

_TEMPORAL_AXES: dict[str, Any] = {
    "pinned": {"axis": "transactionTime", "timestamp": None},
    "variable": {"axis": "decisionTime", "interval": {"start": None, "end": None}},
}


def build_query(*, filter_: dict[str, Any]) -> dict[str, Any]:
    return {
        "filter": filter_,
        "graphResolveDepths": _GRAPH_RESOLVE_DEPTHS,
        "temporalAxes": _TEMPORAL_AXES,
    }


def identifier_filter(identifiers: Sequence[str] | None) -> dict[str, Any]:
    if identifiers is None:
        return {"all": []}
    return {
        "any": [
            {"equal": [{"path": ["baseUrl"]}, {"parameter": identifier}]}
            for identifier in identifiers
        ]
    }


def versioned_url_filter(url: VersionedUrl) -> dict[str, Any]:
    return {"equal": [{"path": ["versionedUrl"]}, {"parameter": str(url)}]}


class HttpRegistryTransport:
    """``RegistryTransport`` over the registry's REST API.

    One ``ResilientClient`` is opened lazily and shared by every call until
    ``aclose``; use the transport as an async context manager.
    """

    def __init__(
        self,
        *,
        config: RegistryConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._client: ResilientClient | None = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_snapshot(self, identifiers: Sequence[str] | None) -> list[OntologyType]:
        if identifiers is not None and not identifiers:
            return []
        nodes: list[OntologyType] = []
        for kind in TypeKind:
            response = await self._query(kind, identifier_filter(identifiers))
            for schema, archived in response.schemas():
                try:
                    nodes.append(parse_ontology_type(schema, archived=archived))
                except (
                    UnsupportedSchemaError,
                    InvalidVersionedUrlError,
                    InvalidConstraintError,
                ) as exc:
                    log.warning("Skipping unreadable %s %s: %s", kind, schema.id, exc)
        log.debug("Fetched %d type(s) from %s", len(nodes), self._config.base_url)
        return nodes

    async def exists(self, url: VersionedUrl, kind: TypeKind) -> bool:
        response = await self._query(kind, versioned_url_filter(url))
        return bool(response.schemas())

    async def create_type(self, node: OntologyType) -> WriteResult:
        body = {"schema": serialize_ontology_type(node).to_wire()}
        await self._send("POST", _ENDPOINTS[node.kind], body, url=node.url)
        log.info("Created %s", node.url)
        return WriteResult(url=node.url, created=True)

    async def update_type(self, node: OntologyType) -> WriteResult:
        schema = serialize_ontology_type(node)
        body = {"typeToUpdate": schema.id, "schema": schema.to_wire()}
        await self._send("PUT", _ENDPOINTS[node.kind], body, url=node.url)
        log.info("Updated %s", node.url)
        return WriteResult(url=node.url, created=False)

    async def archive_type(self, url: VersionedUrl, kind: TypeKind) -> WriteResult:
        body = {"typeToArchive": str(url)}
        await self._send("PUT", f"{_ENDPOINTS[kind]}/archive", body, url=url)
        log.info("Archived %s", url)
        return WriteResult(url=url, created=False)

    def _get_client(self) -> ResilientClient:
        if self._client is None:
            self._client = self._client_factory(self._resilience)
        return self._client

    async def _query(self, kind: TypeKind, filter_: dict[str, Any]) -> QueryResponse:
        path = f"{_ENDPOINTS[kind]}/query"
        response = await self._send("POST", path, build_query(filter_=filter_), url=None)
        try:
            return QueryResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RegistryError(f"Unexpected registry response from {path}: {exc}") from exc

    async def _send(
        self,
        method: str,
        path: str,
        body: dict[str, Any],
        *,
        url: VersionedUrl | None,
    ) -> httpx.Response:
        try:
            response = await self._get_client().request(method, path, json=body)
        except httpx.HTTPError as exc:
            raise RegistryUnavailableError(f"{method} {path} failed: {exc}", url=url) from exc

        if response.is_success:
            return response
        message = _error_message(response)
        if response.status_code == httpx.codes.CONFLICT:
            raise TypeAlreadyExistsError(message, url=url)
        if response.is_client_error:
            raise RegistryRejectedError(message, url=url, status_code=response.status_code)
        raise RegistryUnavailableError(message, url=url)


def _error_message(response: httpx.Response) -> str:
    prefix = f"{response.request.method} {response.request.url.path} -> {response.status_code}"
    try:
        detail = ErrorResponse.model_validate(response.json()).message
    except (ValueError, ValidationError):
        detail = response.text.strip() or None
    return f"{prefix}: {detail}" if detail else prefix
