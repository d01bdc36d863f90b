"""In-process registry transports: a full in-memory registry and a dry-run sink."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from blok.domain.ports.registry import (
    RegistryError,
    RegistryRejectedError,
    TypeAlreadyExistsError,
    WriteResult,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from blok.domain.model import OntologyType, TypeKind, VersionedUrl
    from blok.domain.ports.registry import RegistryTransport

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RecordedCall:
    method: str
    url: VersionedUrl


class InMemoryRegistry:
    """Registry held in a dict, with the same write rules as the real one.

    - ``create_type`` publishes ``version == latest + 1`` (``1`` for a new identifier)
    - ``update_type`` publishes ``latest + 1`` or replaces ``latest`` in place
    - ``archive_type`` marks a version archived; archiving twice is fine

    ``failures`` scripts errors: keys are versioned URLs or identifiers, and a
    matching write raises the mapped error instead of touching the store.
    """

    def __init__(
        self,
        nodes: Iterable[OntologyType] = (),
        *,
        failures: Mapping[str, RegistryError] | None = None,
        latency: float = 0.0,
    ) -> None:
        self._types: dict[str, dict[int, OntologyType]] = {}
        self.failures: dict[str, RegistryError] = dict(failures or {})
        self.latency = latency
        self.calls: list[RecordedCall] = []
        for node in nodes:
            self.seed(node)

    def seed(self, node: OntologyType) -> None:
        """Store ``node`` directly, bypassing the write rules."""
        self._types.setdefault(node.identifier, {})[node.version] = node

    def nodes(self) -> list[OntologyType]:
        return [
            self._types[identifier][version]
            for identifier in sorted(self._types)
            for version in sorted(self._types[identifier])
        ]

    def get(self, url: VersionedUrl) -> OntologyType | None:
        return self._types.get(url.base_url, {}).get(url.version)

    def writes(self) -> list[RecordedCall]:
        return [call for call in self.calls if call.method != "exists"]

    async def fetch_snapshot(self, identifiers: Sequence[str] | None) -> list[OntologyType]:
        await self._pause()
        wanted = None if identifiers is None else set(identifiers)
        return [node for node in self.nodes() if wanted is None or node.identifier in wanted]

    async def exists(self, url: VersionedUrl, kind: TypeKind) -> bool:
        self.calls.append(RecordedCall("exists", url))
        await self._pause()
        node = self.get(url)
        return node is not None and node.kind is kind

    async def create_type(self, node: OntologyType) -> WriteResult:
        self._begin("create", node.url)
        await self._pause()
        if self.get(node.url) is not None:
            raise TypeAlreadyExistsError(f"{node.url} already exists", url=node.url)
        expected = self._latest(node.identifier) + 1
        if node.version != expected:
            raise RegistryRejectedError(
                f"Cannot create {node.url}: next version is {expected}",
                url=node.url,
                status_code=400,
            )
        self.seed(node)
        return WriteResult(url=node.url, created=True)

    async def update_type(self, node: OntologyType) -> WriteResult:
        self._begin("update", node.url)
        await self._pause()
        latest = self._latest(node.identifier)
        if not latest:
            raise RegistryRejectedError(
                f"Cannot update {node.url}: unknown type", url=node.url, status_code=404
            )
        if node.version not in (latest, latest + 1):
            raise RegistryRejectedError(
                f"Cannot update {node.url}: latest version is {latest}",
                url=node.url,
                status_code=400,
            )
        created = node.version == latest + 1
        self.seed(node)
        return WriteResult(url=node.url, created=created)

    async def archive_type(self, url: VersionedUrl, kind: TypeKind) -> WriteResult:
        self._begin("archive", url)
        await self._pause()
        node = self.get(url)
        if node is None or node.kind is not kind:
            raise RegistryRejectedError(
                f"Cannot archive {url}: unknown type", url=url, status_code=404
            )
        if not node.archived:
            self.seed(node.as_archived())
        return WriteResult(url=url, created=False)

    def _begin(self, method: str, url: VersionedUrl) -> None:
        self.calls.append(RecordedCall(method, url))
        failure = self.failures.get(str(url)) or self.failures.get(url.base_url)
        if failure is not None:
            log.debug("Scripted %s failure for %s", method, url)
            raise failure

    def _latest(self, identifier: str) -> int:
        return max(self._types.get(identifier, {}), default=0)

    async def _pause(self) -> None:
        # yield to the loop so concurrent writers interleave like network calls
        await asyncio.sleep(self.latency)


class DryRunRegistry:
    """Forward reads to ``inner``; record writes without performing them."""

    def __init__(self, inner: RegistryTransport) -> None:
        self._inner = inner
        self.recorded: list[RecordedCall] = []

    async def fetch_snapshot(self, identifiers: Sequence[str] | None) -> Sequence[OntologyType]:
        return await self._inner.fetch_snapshot(identifiers)

    async def exists(self, url: VersionedUrl, kind: TypeKind) -> bool:
        return await self._inner.exists(url, kind)

    async def create_type(self, node: OntologyType) -> WriteResult:
        return self._record("create", node.url, created=True)

    async def update_type(self, node: OntologyType) -> WriteResult:
        return self._record("update", node.url, created=False)

    async def archive_type(self, url: VersionedUrl, kind: TypeKind) -> WriteResult:
        return self._record("archive", url, created=False)

    def _record(self, method: str, url: VersionedUrl, *, created: bool) -> WriteResult:
        self.recorded.append(RecordedCall(method, url))
        log.info("[dry run] would %s %s", method, url)
        return WriteResult(url=url, created=created, detail="dry run")
