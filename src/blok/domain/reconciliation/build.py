"""Type graph builder: raw declarations in, resolved ``TypeGraph`` out.

Building runs in two passes so declarations can reference each other in any
order:

1) parse every declaration into an unresolved node, enforcing a dense version
   sequence per identifier that starts at 1 or at any version up to the one
   after the latest in ``known``
2) resolve references against the surviving local nodes, then against the
   optional ``known`` graph, and reject property composition cycles

Failures are collected per type. A failed version takes every higher version
of the same identifier with it, and anything that references one of those
versions fails as well. The build itself never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from blok.domain.declarations import parse_declaration
from blok.domain.model import normalize_base_url

from ._algorithms import find_cycle, is_cyclic, strongly_connected_components
from .errors import (
    CompositionCycleError,
    MalformedDeclarationError,
    ResolutionError,
    UnresolvedReferenceError,
    VersionSequenceError,
)
from .graph import TypeGraph

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from blok.domain.declarations import RawDeclaration
    from blok.domain.model import OntologyType, TypeRef, VersionedUrl


log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildResult:
    graph: TypeGraph
    errors: tuple[ResolutionError, ...] = ()

    @property
    def failed(self) -> frozenset[str]:
        """Identifiers with at least one error; the differ leaves these alone."""
        return frozenset(error.identifier for error in self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors


class BuildTypeGraph(Protocol):
    def __call__(
        self,
        declarations: Mapping[str, Sequence[RawDeclaration]],
        *,
        overrides: Mapping[str, RawDeclaration] | None = None,
        known: TypeGraph | None = None,
    ) -> BuildResult: ...


def build_type_graph(
    declarations: Mapping[str, Sequence[RawDeclaration]],
    *,
    overrides: Mapping[str, RawDeclaration] | None = None,
    known: TypeGraph | None = None,
) -> BuildResult:
    """Resolve ``declarations`` into a type graph.

    ``overrides`` maps identifiers to a replacement declaration. The override
    replaces the declaration with the same version and shadows every higher
    one; without a matching version it is appended.
    """

    errors: list[ResolutionError] = []
    grouped, broken = _group(declarations, errors)
    for raw in (overrides or {}).values():
        identifier = normalize_base_url(raw.identifier)
        log.info("Applying override for %s at version %s", identifier, raw.version)
        kept = [decl for decl in grouped.get(identifier, []) if decl.version < raw.version]
        grouped[identifier] = [*kept, raw]

    history: dict[str, list[OntologyType]] = {}
    for identifier in sorted(grouped):
        nodes, error = _parse_history(identifier, grouped[identifier], known)
        history[identifier] = nodes
        if error is not None:
            errors.append(error)
            if nodes:
                floor = nodes[-1].version + 1
            else:
                floor = min(decl.version for decl in grouped[identifier])
            _lower_floor(broken, identifier, floor)

    state = _Resolver(history=history, broken=broken, known=known)
    errors.extend(state.resolve_references())
    errors.extend(state.reject_composition_cycles())
    errors.extend(state.resolve_references())

    for error in errors:
        log.warning("Build error: %s", error)
    result = BuildResult(
        graph=TypeGraph.from_nodes(state.surviving()),
        errors=tuple(sorted(errors, key=_error_order)),
    )
    log.info("Built type graph with %d types and %d errors", len(result.graph), len(result.errors))
    return result


def _group(
    declarations: Mapping[str, Sequence[RawDeclaration]],
    errors: list[ResolutionError],
) -> tuple[dict[str, list[RawDeclaration]], dict[str, int]]:
    grouped: dict[str, list[RawDeclaration]] = {}
    broken: dict[str, int] = {}
    for key, items in declarations.items():
        identifier = normalize_base_url(key)
        bucket = grouped.setdefault(identifier, [])
        for raw in items:
            if normalize_base_url(raw.identifier) != identifier:
                errors.append(
                    MalformedDeclarationError(
                        f"{raw.url} was filed under {identifier}",
                        identifier=identifier,
                        version=raw.version,
                    )
                )
                _lower_floor(broken, identifier, raw.version)
                continue
            bucket.append(raw)
    return grouped, broken


def _lower_floor(floors: dict[str, int], identifier: str, version: int) -> None:
    floors[identifier] = min(floors.get(identifier, version), version)


def _parse_history(
    identifier: str,
    declarations: Sequence[RawDeclaration],
    known: TypeGraph | None = None,
) -> tuple[list[OntologyType], ResolutionError | None]:
    ordered = sorted(declarations, key=lambda decl: decl.version)
    published = known.latest(identifier) if known is not None else None
    nodes: list[OntologyType] = []
    previous: OntologyType | None = None
    expected = 1
    if ordered and published is not None and ordered[0].version > 1:
        # local history may start anywhere up to the version after the published latest
        previous = published
        expected = min(ordered[0].version, published.version + 1)
    for raw in ordered:
        if raw.version != expected:
            return nodes, VersionSequenceError(
                identifier=identifier, version=raw.version, expected=expected
            )
        try:
            node = parse_declaration(raw)
        except MalformedDeclarationError as exc:
            return nodes, exc
        if previous is not None and node.kind is not previous.kind:
            return nodes, MalformedDeclarationError(
                f"{node.url} changes kind from {previous.kind} to {node.kind}",
                identifier=identifier,
                version=raw.version,
            )
        nodes.append(node)
        previous = node
        expected += 1
    return nodes, None


@dataclass(slots=True, kw_only=True)
class _Resolver:
    history: dict[str, list[OntologyType]]
    broken: dict[str, int] = field(default_factory=dict[str, int])
    known: TypeGraph | None = None

    def surviving(self) -> Iterator[OntologyType]:
        for identifier in sorted(self.history):
            yield from self.history[identifier]

    def resolve_references(self) -> list[ResolutionError]:
        found: list[ResolutionError] = []
        changed = True
        while changed:
            changed = False
            for node in list(self.surviving()):
                if not self._alive(node):
                    continue
                error = self._first_unresolved(node)
                if error is not None:
                    found.append(error)
                    self._drop(node)
                    changed = True
        return found

    def reject_composition_cycles(self) -> list[CompositionCycleError]:
        nodes = {node.url: node for node in self.surviving()}

        def successors(url: VersionedUrl) -> Iterator[VersionedUrl]:
            for ref in nodes[url].composition_references():
                target = self._lookup(ref)
                if not isinstance(target, str) and target.url in nodes:
                    yield target.url

        found: list[CompositionCycleError] = []
        for component in strongly_connected_components(nodes, successors):
            if not is_cyclic(component, successors):
                continue
            members = set(component)

            def within(
                url: VersionedUrl, members: set[VersionedUrl] = members
            ) -> Iterator[VersionedUrl]:
                return (succ for succ in successors(url) if succ in members)

            for url in sorted(component):
                path = find_cycle(url, within) or [url, url]
                found.append(CompositionCycleError(source=url, cycle_path=path))
        for error in found:
            self._drop(nodes[error.source])
        return found

    def _alive(self, node: OntologyType) -> bool:
        versions = self.history.get(node.identifier, [])
        return any(candidate.version == node.version for candidate in versions)

    def _drop(self, node: OntologyType) -> None:
        self.history[node.identifier] = [
            candidate
            for candidate in self.history[node.identifier]
            if candidate.version < node.version
        ]
        _lower_floor(self.broken, node.identifier, node.version)

    def _first_unresolved(self, node: OntologyType) -> UnresolvedReferenceError | None:
        for ref, expected in sorted(node.references(), key=lambda item: (str(item[0]), item[1])):
            target = self._lookup(ref)
            if isinstance(target, str):
                return UnresolvedReferenceError(
                    source=node.url, missing=ref, expected_kind=expected, reason=target
                )
            if target.kind is not expected:
                return UnresolvedReferenceError(
                    source=node.url,
                    missing=ref,
                    expected_kind=expected,
                    reason=f"resolves to a {target.kind}",
                )
        return None

    def _lookup(self, ref: TypeRef) -> OntologyType | str:
        """Resolved target, or the reason resolution failed.

        An identifier with a failed version is left out of the diff entirely,
        so references to it only resolve to published versions below the
        failure.
        """
        floor = self.broken.get(ref.identifier)
        if floor is not None:
            target = self.known.resolve(ref) if self.known is not None else None
            if target is None or target.version >= floor:
                return "target failed to build"
            return target
        local = {candidate.version: candidate for candidate in self.history.get(ref.identifier, [])}
        version = ref.pick(local)
        if version is not None:
            return local[version]
        if self.known is not None:
            target = self.known.resolve(ref)
            if target is not None:
                return target
        return "not found"


def _error_order(error: ResolutionError) -> tuple[str, int, str]:
    return error.identifier, error.version or 0, type(error).__name__
