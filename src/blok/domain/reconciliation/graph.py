"""Type graph: every known version of every ontology type, keyed by versioned URL.

The graph is append-only. ``add`` accepts a node at most once per versioned URL
(re-adding an identical node is a no-op) and keeps two indices current:

- versions per identifier, sorted ascending
- referrers per target identifier, for the reverse lookup ``referenced_by``
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from blok.domain.model import VersionedUrl

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from blok.domain.model import OntologyType, TypeRef


@dataclass(slots=True)
class TypeGraph:
    _nodes: dict[VersionedUrl, OntologyType] = field(
        default_factory=dict["VersionedUrl", "OntologyType"], repr=False
    )
    _versions: dict[str, list[int]] = field(default_factory=dict[str, list[int]], repr=False)
    _referrers: dict[str, set[VersionedUrl]] = field(
        default_factory=dict[str, set["VersionedUrl"]], repr=False
    )

    @classmethod
    def from_nodes(cls, nodes: Iterable[OntologyType]) -> TypeGraph:
        graph = cls()
        for node in nodes:
            graph.add(node)
        return graph

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, url: object) -> bool:
        return url in self._nodes

    def __iter__(self) -> Iterator[OntologyType]:
        return iter(self.nodes())

    def add(self, node: OntologyType) -> None:
        url = node.url
        existing = self._nodes.get(url)
        if existing is not None:
            if existing != node:
                raise ValueError(f"Conflicting content for {url}")
            return
        self._nodes[url] = node
        bisect.insort(self._versions.setdefault(node.identifier, []), node.version)
        for ref, _kind in node.references():
            self._referrers.setdefault(ref.identifier, set()).add(url)

    def get(self, url: VersionedUrl) -> OntologyType | None:
        return self._nodes.get(url)

    def node(self, url: VersionedUrl) -> OntologyType:
        try:
            return self._nodes[url]
        except KeyError:
            raise KeyError(f"No type {url} in graph") from None

    def identifiers(self) -> tuple[str, ...]:
        return tuple(sorted(self._versions))

    def nodes(self) -> tuple[OntologyType, ...]:
        return tuple(self._nodes[url] for url in sorted(self._nodes))

    def versions(self, identifier: str) -> tuple[int, ...]:
        return tuple(self._versions.get(identifier, ()))

    def history(self, identifier: str) -> tuple[OntologyType, ...]:
        """All versions of ``identifier``, oldest first."""
        return tuple(
            self._nodes[_url(identifier, version)] for version in self._versions.get(identifier, ())
        )

    def latest(self, identifier: str) -> OntologyType | None:
        versions = self._versions.get(identifier)
        if not versions:
            return None
        return self._nodes[_url(identifier, versions[-1])]

    def resolve(self, ref: TypeRef) -> OntologyType | None:
        """Highest version in the graph that satisfies ``ref``."""
        version = ref.pick(self._versions.get(ref.identifier, ()))
        if version is None:
            return None
        return self._nodes[_url(ref.identifier, version)]

    def dependencies(self, node: OntologyType) -> tuple[VersionedUrl, ...]:
        """Resolved targets of ``node``'s references; unresolvable ones are left out."""
        resolved: set[VersionedUrl] = set()
        for ref, _kind in node.references():
            target = self.resolve(ref)
            if target is not None:
                resolved.add(target.url)
        return tuple(sorted(resolved))

    def referenced_by(self, url: VersionedUrl) -> tuple[VersionedUrl, ...]:
        """Nodes whose references currently resolve to ``url``."""
        sources: list[VersionedUrl] = []
        for source in self._referrers.get(url.base_url, ()):
            node = self._nodes[source]
            if any(
                ref.identifier == url.base_url and self._resolves_to(ref, url)
                for ref, _kind in node.references()
            ):
                sources.append(source)
        return tuple(sorted(sources))

    def restricted_to(self, prefixes: Iterable[str]) -> TypeGraph:
        wanted = tuple(prefixes)
        return TypeGraph.from_nodes(
            node for node in self.nodes() if node.identifier.startswith(wanted)
        )

    def without(self, identifiers: Iterable[str]) -> TypeGraph:
        excluded = set(identifiers)
        return TypeGraph.from_nodes(
            node for node in self.nodes() if node.identifier not in excluded
        )

    def _resolves_to(self, ref: TypeRef, url: VersionedUrl) -> bool:
        target = self.resolve(ref)
        return target is not None and target.url == url


def _url(identifier: str, version: int) -> VersionedUrl:
    return VersionedUrl(base_url=identifier, version=version)
