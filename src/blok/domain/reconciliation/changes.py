"""Change set types shared by the differ, planner and renderers.

A change set is the contract between:
- the differ (read-only comparison of two type graphs)
- the planner (ordering of the writes the changes imply)
- reporting surfaces (``diff`` output, dry-run reports)
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from blok.domain.model import VersionedUrl

from .graph import TypeGraph

if TYPE_CHECKING:
    from collections.abc import Iterator

    from blok.domain.model import OntologyType, TypeKind, TypeRef
    from blok.domain.model.types import RefMapper


class ChangeKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    UNCHANGED = "unchanged"
    REMOVE = "remove"


@dataclass(frozen=True, slots=True)
class MembershipDelta:
    """Members added to or removed from one set-valued field."""

    field: str
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.added or self.removed)


@dataclass(frozen=True, slots=True, kw_only=True)
class TypeChange:
    """One classified version of one identifier.

    ``publish_version`` is the version the change writes: the local version for
    a create, remote latest + 1 for an update and the archived version for a
    remove. For unchanged types it is the remote version the local one matches.
    """

    identifier: str
    kind: ChangeKind
    type_kind: TypeKind
    publish_version: int
    local: OntologyType | None = None
    remote: OntologyType | None = None
    deltas: tuple[MembershipDelta, ...] = ()

    @property
    def url(self) -> VersionedUrl:
        return VersionedUrl(base_url=self.identifier, version=self.publish_version)

    @property
    def is_pending(self) -> bool:
        return self.kind in {ChangeKind.CREATE, ChangeKind.UPDATE}


def _keep_reference(ref: TypeRef) -> TypeRef:
    return ref


@dataclass(frozen=True, slots=True)
class ChangeSet:
    changes: tuple[TypeChange, ...] = ()
    local: TypeGraph = field(default_factory=TypeGraph, compare=False, repr=False)
    remote: TypeGraph = field(default_factory=TypeGraph, compare=False, repr=False)
    pin_reference: RefMapper = field(default=_keep_reference, compare=False, repr=False)

    def __post_init__(self) -> None:
        ordered = tuple(
            sorted(self.changes, key=lambda change: (change.identifier, change.publish_version))
        )
        object.__setattr__(self, "changes", ordered)

    def __iter__(self) -> Iterator[TypeChange]:
        return iter(self.changes)

    def __len__(self) -> int:
        return len(self.changes)

    @property
    def is_empty(self) -> bool:
        """True when nothing but unchanged types remain."""
        return all(change.kind is ChangeKind.UNCHANGED for change in self.changes)

    def changes_of(self, kind: ChangeKind) -> tuple[TypeChange, ...]:
        return tuple(change for change in self.changes if change.kind is kind)

    def pending(self) -> tuple[TypeChange, ...]:
        return tuple(change for change in self.changes if change.is_pending)

    def summary(self) -> dict[ChangeKind, int]:
        counts = Counter(change.kind for change in self.changes)
        return {kind: counts.get(kind, 0) for kind in ChangeKind}

    def payload_for(self, change: TypeChange) -> OntologyType:
        """The node a pending change publishes, with references pinned."""
        if change.local is None:
            raise ValueError(f"{change.kind} change for {change.identifier} has no local node")
        node = change.local.as_version(change.publish_version)
        return node.map_references(self.pin_reference)
