"""Differ: classify every identifier of a local graph against a remote snapshot.

Responsibilities of this stage:
- decide create / update / unchanged / remove per identifier
- pin every reference to the concrete version it will point at once the plan
  has run, so structures compare by resolved target rather than by range
- stay read-only; nothing here talks to the registry
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from blok.domain.model import DataType, EntityType, PropertyType, normalize_base_url

from .changes import ChangeKind, ChangeSet, MembershipDelta, TypeChange

if TYPE_CHECKING:
    from collections.abc import Iterable

    from blok.domain.model import OntologyType, TypeRef

    from .graph import TypeGraph


log = logging.getLogger(__name__)


class DiffTypeGraphs(Protocol):
    def __call__(
        self,
        local: TypeGraph,
        remote: TypeGraph,
        *,
        managed_prefixes: Iterable[str] = (),
        skip: Iterable[str] = (),
    ) -> ChangeSet: ...


@dataclass(slots=True)
class ReferencePinner:
    """Rewrite range references to the version they resolve to after publishing.

    A local reference resolves in the local graph first and falls back to the
    remote graph. Local versions above the remote latest are published under
    their own numbers. Otherwise, when a reference picks the local latest of an
    identifier that is being updated, it points at the version the update will
    publish; when the identifier is unchanged, it points at the matching remote
    version. Remote references, and references to skipped identifiers,
    resolve in the remote graph only.
    """

    local: TypeGraph
    remote: TypeGraph
    updated: set[str] = field(default_factory=set[str])
    unchanged: set[str] = field(default_factory=set[str])
    skipped: set[str] = field(default_factory=set[str])

    def pin_local(self, ref: TypeRef) -> TypeRef:
        if ref.identifier in self.skipped:
            return self.pin_remote(ref)
        target = self.local.resolve(ref)
        if target is None:
            return self.pin_remote(ref)
        latest = self.local.latest(ref.identifier)
        remote_latest = self.remote.latest(ref.identifier)
        if latest is None or remote_latest is None or target.version != latest.version:
            return ref.pinned(target.version)
        if latest.version > remote_latest.version:
            return ref.pinned(target.version)
        if ref.identifier in self.updated and ref.satisfied_by(remote_latest.version + 1):
            return ref.pinned(remote_latest.version + 1)
        if ref.identifier in self.unchanged and ref.satisfied_by(remote_latest.version):
            return ref.pinned(remote_latest.version)
        return ref.pinned(target.version)

    def pin_remote(self, ref: TypeRef) -> TypeRef:
        target = self.remote.resolve(ref)
        return ref if target is None else ref.pinned(target.version)


def diff_graphs(
    local: TypeGraph,
    remote: TypeGraph,
    *,
    managed_prefixes: Iterable[str] = (),
    skip: Iterable[str] = (),
) -> ChangeSet:
    """Compare ``local`` against ``remote`` and return the resulting change set.

    Identifiers in ``skip`` are left out on both sides. Remote-only
    identifiers are only removed when they start with one of
    ``managed_prefixes`` (or when no prefixes are given).
    """

    skipped = {normalize_base_url(identifier) for identifier in skip}
    prefixes = tuple(managed_prefixes)
    local_ids = set(local.identifiers()) - skipped
    remote_ids = set(remote.identifiers()) - skipped
    shared = sorted(local_ids & remote_ids)

    pinner = ReferencePinner(
        local=local, remote=remote, unchanged=set(shared), skipped=skipped
    )
    while True:
        newly_updated = [
            identifier
            for identifier in shared
            if identifier in pinner.unchanged and _differs(identifier, pinner)
        ]
        if not newly_updated:
            break
        for identifier in newly_updated:
            pinner.unchanged.discard(identifier)
            pinner.updated.add(identifier)

    changes: list[TypeChange] = []
    for identifier in sorted(local_ids - remote_ids):
        changes.extend(
            TypeChange(
                identifier=identifier,
                kind=ChangeKind.CREATE,
                type_kind=node.kind,
                publish_version=node.version,
                local=node,
            )
            for node in local.history(identifier)
        )

    for identifier in shared:
        local_latest = _latest(local, identifier)
        remote_latest = _latest(remote, identifier)
        if identifier not in pinner.updated:
            changes.append(
                TypeChange(
                    identifier=identifier,
                    kind=ChangeKind.UNCHANGED,
                    type_kind=local_latest.kind,
                    publish_version=remote_latest.version,
                    local=local_latest,
                    remote=remote_latest,
                )
            )
        elif local_latest.version > remote_latest.version:
            changes.extend(
                TypeChange(
                    identifier=identifier,
                    kind=ChangeKind.UPDATE,
                    type_kind=node.kind,
                    publish_version=node.version,
                    local=node,
                    remote=remote_latest,
                    deltas=_deltas(node, remote_latest, pinner),
                )
                for node in local.history(identifier)
                if node.version > remote_latest.version
            )
        else:
            changes.append(
                TypeChange(
                    identifier=identifier,
                    kind=ChangeKind.UPDATE,
                    type_kind=local_latest.kind,
                    publish_version=remote_latest.version + 1,
                    local=local_latest,
                    remote=remote_latest,
                    deltas=_deltas(local_latest, remote_latest, pinner),
                )
            )

    for identifier in sorted(remote_ids - local_ids):
        if prefixes and not identifier.startswith(prefixes):
            continue
        remote_latest = _latest(remote, identifier)
        changes.append(
            TypeChange(
                identifier=identifier,
                kind=ChangeKind.UNCHANGED if remote_latest.archived else ChangeKind.REMOVE,
                type_kind=remote_latest.kind,
                publish_version=remote_latest.version,
                remote=remote_latest,
            )
        )

    change_set = ChangeSet(
        changes=tuple(changes),
        local=local,
        remote=remote,
        pin_reference=pinner.pin_local,
    )
    log.info(
        "Diff summary: %s",
        ", ".join(f"{kind}={count}" for kind, count in change_set.summary().items()),
    )
    return change_set


def _latest(graph: TypeGraph, identifier: str) -> OntologyType:
    node = graph.latest(identifier)
    if node is None:
        raise KeyError(f"No versions of {identifier} in graph")
    return node


def _differs(identifier: str, pinner: ReferencePinner) -> bool:
    local_latest = _latest(pinner.local, identifier)
    remote_latest = _latest(pinner.remote, identifier)
    if remote_latest.archived or local_latest.version > remote_latest.version:
        return True
    return local_latest.structure(pinner.pin_local) != remote_latest.structure(pinner.pin_remote)


def _deltas(
    local_node: OntologyType,
    remote_node: OntologyType,
    pinner: ReferencePinner,
) -> tuple[MembershipDelta, ...]:
    ours = local_node.map_references(pinner.pin_local)
    theirs = remote_node.map_references(pinner.pin_remote)
    deltas: list[MembershipDelta] = []
    if ours.kind is not theirs.kind:
        deltas.append(_delta("kind", [str(ours.kind)], [str(theirs.kind)]))
    elif isinstance(ours, DataType) and isinstance(theirs, DataType):
        deltas.append(_delta("type", [str(ours.primitive)], [str(theirs.primitive)]))
    elif isinstance(ours, PropertyType) and isinstance(theirs, PropertyType):
        deltas.append(_delta("one_of", ours.one_of, theirs.one_of))
    elif isinstance(ours, EntityType) and isinstance(theirs, EntityType):
        deltas.append(_delta("properties", ours.properties, theirs.properties))
        deltas.append(_delta("links", ours.links, theirs.links))
    if remote_node.archived:
        deltas.append(MembershipDelta(field="archived", removed=("archived",)))
    return tuple(delta for delta in deltas if delta)


def _delta(name: str, ours: Iterable[object], theirs: Iterable[object]) -> MembershipDelta:
    ours_str = {str(member) for member in ours}
    theirs_str = {str(member) for member in theirs}
    return MembershipDelta(
        field=name,
        added=tuple(sorted(ours_str - theirs_str)),
        removed=tuple(sorted(theirs_str - ours_str)),
    )
