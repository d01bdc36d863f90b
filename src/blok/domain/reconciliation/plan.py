"""Planner: compile a change set into a dependency-ordered plan of writes.

Ordering rules:
- a type is written after every pending type it references
- versions of one identifier are written oldest first
- entity types whose links form a cycle are written as link-less shells
  first, then a follow-up update attaches the links to the same version
- among ready operations: data types, then property types, then entity types,
  then by versioned URL
- archives come last and depend on nothing
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from blok.domain.model import EntityType, VersionedUrl

from ._algorithms import (
    CycleError,
    find_cycle,
    is_cyclic,
    strongly_connected_components,
    topological_order,
)
from .changes import ChangeKind
from .errors import UnsatisfiableDependencyError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from blok.domain.model import OntologyType, TypeKind

    from .changes import ChangeSet, TypeChange


log = logging.getLogger(__name__)


class OperationKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    ARCHIVE = "archive"


class Phase(StrEnum):
    """Where an operation sits in the shell-then-attach split."""

    SINGLE = "single"
    SHELL = "shell"
    ATTACH = "attach"


@dataclass(frozen=True, slots=True, kw_only=True)
class Operation:
    op_id: str
    kind: OperationKind
    type_kind: TypeKind
    url: VersionedUrl
    payload: OntologyType | None = None
    depends_on: tuple[str, ...] = ()
    phase: Phase = Phase.SINGLE

    @property
    def identifier(self) -> str:
        return self.url.base_url

    @staticmethod
    def make_id(kind: OperationKind, url: VersionedUrl, phase: Phase = Phase.SINGLE) -> str:
        suffix = ":links" if phase is Phase.ATTACH else ""
        return f"{kind}:{url}{suffix}"


@dataclass(frozen=True, slots=True)
class Plan:
    """Operations in a valid execution order."""

    operations: tuple[Operation, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    _by_id: dict[str, Operation] = field(init=False, repr=False, compare=False)
    _dependents: dict[str, tuple[str, ...]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_id: dict[str, Operation] = {}
        dependents: dict[str, list[str]] = {}
        for operation in self.operations:
            if operation.op_id in by_id:
                raise ValueError(f"Duplicate operation id {operation.op_id}")
            for dependency in operation.depends_on:
                if dependency not in by_id:
                    raise ValueError(
                        f"{operation.op_id} depends on {dependency}, which does not precede it"
                    )
                dependents.setdefault(dependency, []).append(operation.op_id)
            by_id[operation.op_id] = operation
        object.__setattr__(self, "_by_id", by_id)
        object.__setattr__(
            self, "_dependents", {key: tuple(value) for key, value in dependents.items()}
        )

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self.operations)

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def operation(self, op_id: str) -> Operation:
        return self._by_id[op_id]

    def direct_dependents(self, op_id: str) -> tuple[str, ...]:
        return self._dependents.get(op_id, ())

    def dependencies_of(self, op_id: str) -> frozenset[str]:
        """Every operation ``op_id`` transitively waits for."""
        return _closure(op_id, lambda current: self._by_id[current].depends_on)

    def dependents_of(self, op_id: str) -> frozenset[str]:
        """Every operation that transitively waits for ``op_id``."""
        return _closure(op_id, self.direct_dependents)

    def counts(self) -> dict[OperationKind, int]:
        return {
            kind: sum(1 for operation in self.operations if operation.kind is kind)
            for kind in OperationKind
        }


class CompilePlan(Protocol):
    def __call__(self, change_set: ChangeSet) -> Plan: ...


def compile_plan(change_set: ChangeSet) -> Plan:
    """Order the writes implied by ``change_set``.

    Raises ``UnsatisfiableDependencyError`` when pending types compose each
    other in a cycle; nothing has been written at that point.
    """

    payloads: dict[VersionedUrl, OntologyType] = {}
    kinds: dict[VersionedUrl, OperationKind] = {}
    for change in change_set.pending():
        payloads[change.url] = change_set.payload_for(change)
        kinds[change.url] = (
            OperationKind.CREATE if change.kind is ChangeKind.CREATE else OperationKind.UPDATE
        )

    def composition(url: VersionedUrl) -> Iterator[VersionedUrl]:
        for ref in payloads[url].composition_references():
            if ref.is_exact and ref.url in payloads:
                yield ref.url

    def links(url: VersionedUrl) -> Iterator[VersionedUrl]:
        node = payloads[url]
        if isinstance(node, EntityType):
            for link in node.links:
                if link.to.is_exact and link.to.url in payloads:
                    yield link.to.url

    _reject_composition_cycles(payloads, composition)

    split: dict[VersionedUrl, frozenset[VersionedUrl]] = {}
    for component in strongly_connected_components(payloads, links):
        if is_cyclic(component, links):
            members = frozenset(component)
            for url in component:
                split[url] = members

    # producer: the operation that makes a version exist; final: its last write
    producer: dict[VersionedUrl, str] = {}
    final: dict[VersionedUrl, str] = {}
    for url, kind in kinds.items():
        if url in split:
            producer[url] = Operation.make_id(kind, url, Phase.SHELL)
            final[url] = Operation.make_id(OperationKind.UPDATE, url, Phase.ATTACH)
        else:
            producer[url] = final[url] = Operation.make_id(kind, url)

    operations: dict[str, Operation] = {}
    for url in payloads:
        payload = payloads[url]
        history = set[str]()
        if url.version > 1:
            previous = VersionedUrl(base_url=url.base_url, version=url.version - 1)
            if previous in final:
                history.add(final[previous])
        needs = {producer[target] for target in composition(url) if target != url} | history
        if url in split and isinstance(payload, EntityType):
            shell_id = producer[url]
            operations[shell_id] = Operation(
                op_id=shell_id,
                kind=kinds[url],
                type_kind=payload.kind,
                url=url,
                payload=payload.without_links(),
                depends_on=tuple(sorted(needs)),
                phase=Phase.SHELL,
            )
            attach_needs = {shell_id}
            attach_needs |= {producer[member] for member in split[url]}
            attach_needs |= {producer[target] for target in links(url)}
            operations[final[url]] = Operation(
                op_id=final[url],
                kind=OperationKind.UPDATE,
                type_kind=payload.kind,
                url=url,
                payload=payload,
                depends_on=tuple(sorted(attach_needs)),
                phase=Phase.ATTACH,
            )
        else:
            needs |= {producer[target] for target in links(url)}
            operations[producer[url]] = Operation(
                op_id=producer[url],
                kind=kinds[url],
                type_kind=payload.kind,
                url=url,
                payload=payload,
                depends_on=tuple(sorted(needs)),
            )

    try:
        ordered = topological_order(
            operations,
            lambda op_id: operations[op_id].depends_on,
            key=lambda op_id: _order_key(operations[op_id]),
        )
    except CycleError as exc:
        raise UnsatisfiableDependencyError([operations[op_id].url for op_id in exc.cycle]) from exc

    archives = [
        Operation(
            op_id=Operation.make_id(OperationKind.ARCHIVE, change.url),
            kind=OperationKind.ARCHIVE,
            type_kind=change.type_kind,
            url=change.url,
        )
        for change in sorted(change_set.changes_of(ChangeKind.REMOVE), key=_change_order)
    ]

    plan = Plan(operations=(*(operations[op_id] for op_id in ordered), *archives))
    log.info(
        "Compiled plan with %d operations (%d link cycles split)",
        len(plan),
        len(set(split.values())),
    )
    return plan


def _reject_composition_cycles(
    payloads: dict[VersionedUrl, OntologyType],
    composition: Callable[[VersionedUrl], Iterable[VersionedUrl]],
) -> None:
    for component in strongly_connected_components(payloads, composition):
        if is_cyclic(component, composition):
            start = min(component)
            cycle = find_cycle(start, composition) or [start, start]
            raise UnsatisfiableDependencyError(cycle)


def _order_key(operation: Operation) -> tuple[int, VersionedUrl, int]:
    return operation.type_kind.rank, operation.url, 1 if operation.phase is Phase.ATTACH else 0


def _change_order(change: TypeChange) -> tuple[int, VersionedUrl]:
    return change.type_kind.rank, change.url


def _closure(start: str, step: Callable[[str], Iterable[str]]) -> frozenset[str]:
    seen: set[str] = set()
    frontier = list(step(start))
    while frontier:
        current = frontier.pop()
        if current in seen:
            continue
        seen.add(current)
        frontier.extend(step(current))
    return frozenset(seen)
