"""Remote snapshot fetcher: registry contents as a ``TypeGraph``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from .errors import SnapshotIntegrityError
from .graph import TypeGraph

if TYPE_CHECKING:
    from collections.abc import Iterable

    from blok.domain.ports.registry import RegistryTransport


log = logging.getLogger(__name__)


class FetchSnapshot(Protocol):
    async def __call__(
        self,
        transport: RegistryTransport,
        *,
        identifiers: Iterable[str] | None = None,
    ) -> TypeGraph: ...


async def fetch_snapshot(
    transport: RegistryTransport,
    *,
    identifiers: Iterable[str] | None = None,
) -> TypeGraph:
    """Fetch every version the registry holds for ``identifiers`` (all when ``None``)."""

    wanted = None if identifiers is None else frozenset(identifiers)
    nodes = await transport.fetch_snapshot(None if wanted is None else sorted(wanted))

    graph = TypeGraph()
    duplicates = 0
    for node in nodes:
        if wanted is not None and node.identifier not in wanted:
            continue
        existing = graph.get(node.url)
        if existing is not None:
            if existing != node:
                raise SnapshotIntegrityError(
                    f"Registry returned conflicting content for {node.url}"
                )
            duplicates += 1
            continue
        graph.add(node)

    if duplicates:
        log.debug("Dropped %d duplicate snapshot entries", duplicates)
    log.info(
        "Fetched remote snapshot: %d types across %d identifiers",
        len(graph),
        len(graph.identifiers()),
    )
    return graph
