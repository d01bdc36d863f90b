"""Ontology type nodes: data types, property types and entity types.

Nodes are immutable value objects. A changed type becomes a new version; nodes
are never mutated in place. Equality is structural over the semantic content
plus identity (identifier, version, archived). Titles and descriptions are
documentation and do not take part in equality.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, ClassVar, Self

from .constraints import NumericConstraint
from .enums import PrimitiveKind, TypeKind
from .urls import VersionedUrl

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Iterator

    from .references import TypeRef

type RefMapper = Callable[[TypeRef], TypeRef]


@dataclass(frozen=True, slots=True)
class PropertyArray:
    """Array of values of one property type, e.g. ``Array<Name, {length: ...}>``."""

    ref: TypeRef
    length: NumericConstraint = NumericConstraint()

    def __str__(self) -> str:
        return f"[{self.ref}]{self.length}"


@dataclass(frozen=True, slots=True)
class PropertyEntry:
    """One ``key -> property type`` slot of an entity type or object value."""

    key: str
    target: TypeRef | PropertyArray

    def __str__(self) -> str:
        return f"{self.key} -> {self.target}"

    @property
    def ref(self) -> TypeRef:
        if isinstance(self.target, PropertyArray):
            return self.target.ref
        return self.target

    def mapped(self, mapper: RefMapper) -> PropertyEntry:
        if isinstance(self.target, PropertyArray):
            target = replace(self.target, ref=mapper(self.target.ref))
            return PropertyEntry(key=self.key, target=target)
        return PropertyEntry(key=self.key, target=mapper(self.target))


@dataclass(frozen=True, slots=True)
class DataTypeValue:
    ref: TypeRef

    def __str__(self) -> str:
        return str(self.ref)


@dataclass(frozen=True, slots=True)
class ObjectValue:
    properties: frozenset[PropertyEntry] = frozenset()

    def __str__(self) -> str:
        inner = ", ".join(sorted(str(entry) for entry in self.properties))
        return f"{{{inner}}}"


@dataclass(frozen=True, slots=True)
class ArrayValue:
    items: frozenset[PropertyValue] = frozenset()
    length: NumericConstraint = NumericConstraint()

    def __str__(self) -> str:
        inner = " | ".join(sorted(str(item) for item in self.items))
        return f"[{inner}]{self.length}"


type PropertyValue = DataTypeValue | ObjectValue | ArrayValue


@dataclass(frozen=True, slots=True)
class Link:
    """Directed, cardinality-constrained edge to another entity type."""

    to: TypeRef
    length: NumericConstraint = NumericConstraint()

    def __str__(self) -> str:
        return f"-> {self.to}{self.length}"


@dataclass(frozen=True, slots=True, kw_only=True)
class OntologyType:
    identifier: str
    version: int
    archived: bool = False
    title: str | None = field(default=None, compare=False)
    description: str | None = field(default=None, compare=False)

    KIND: ClassVar[TypeKind]

    @property
    def kind(self) -> TypeKind:
        return self.KIND

    @property
    def url(self) -> VersionedUrl:
        return VersionedUrl(base_url=self.identifier, version=self.version)

    def references(self) -> Iterator[tuple[TypeRef, TypeKind]]:
        """Yield every outgoing reference with the kind it must resolve to."""
        yield from ()

    def composition_references(self) -> Iterator[TypeRef]:
        """Yield references that make up this type's value shape.

        Links are excluded: a link is an edge between entities, not ownership.
        """
        for ref, kind in self.references():
            if kind is not TypeKind.ENTITY_TYPE:
                yield ref

    def map_references(self, mapper: RefMapper) -> Self:
        return self

    def content(self) -> Hashable:
        raise NotImplementedError

    def structure(self, mapper: RefMapper | None = None) -> Hashable:
        """Order-independent semantic content, optionally with references rewritten."""
        node = self.map_references(mapper) if mapper is not None else self
        return (self.KIND, node.content())

    def as_version(self, version: int) -> Self:
        return replace(self, version=version, archived=False)

    def as_archived(self) -> Self:
        return replace(self, archived=True)


@dataclass(frozen=True, slots=True, kw_only=True)
class DataType(OntologyType):
    primitive: PrimitiveKind = PrimitiveKind.STRING

    KIND: ClassVar[TypeKind] = TypeKind.DATA_TYPE

    def content(self) -> Hashable:
        return self.primitive


@dataclass(frozen=True, slots=True, kw_only=True)
class PropertyType(OntologyType):
    one_of: frozenset[PropertyValue] = frozenset()

    KIND: ClassVar[TypeKind] = TypeKind.PROPERTY_TYPE

    def references(self) -> Iterator[tuple[TypeRef, TypeKind]]:
        for value in self.one_of:
            yield from _value_references(value)

    def map_references(self, mapper: RefMapper) -> Self:
        return replace(self, one_of=frozenset(_map_value(value, mapper) for value in self.one_of))

    def content(self) -> Hashable:
        return self.one_of


@dataclass(frozen=True, slots=True, kw_only=True)
class EntityType(OntologyType):
    properties: frozenset[PropertyEntry] = frozenset()
    links: frozenset[Link] = frozenset()

    KIND: ClassVar[TypeKind] = TypeKind.ENTITY_TYPE

    def references(self) -> Iterator[tuple[TypeRef, TypeKind]]:
        for entry in self.properties:
            yield entry.ref, TypeKind.PROPERTY_TYPE
        for link in self.links:
            yield link.to, TypeKind.ENTITY_TYPE

    def map_references(self, mapper: RefMapper) -> Self:
        return replace(
            self,
            properties=frozenset(entry.mapped(mapper) for entry in self.properties),
            links=frozenset(replace(link, to=mapper(link.to)) for link in self.links),
        )

    def content(self) -> Hashable:
        return (self.properties, self.links)

    def without_links(self) -> EntityType:
        return replace(self, links=frozenset())


def _value_references(value: PropertyValue) -> Iterator[tuple[TypeRef, TypeKind]]:
    if isinstance(value, DataTypeValue):
        yield value.ref, TypeKind.DATA_TYPE
    elif isinstance(value, ObjectValue):
        for entry in value.properties:
            yield entry.ref, TypeKind.PROPERTY_TYPE
    else:
        for item in value.items:
            yield from _value_references(item)


def _map_value(value: PropertyValue, mapper: RefMapper) -> PropertyValue:
    if isinstance(value, DataTypeValue):
        return DataTypeValue(ref=mapper(value.ref))
    if isinstance(value, ObjectValue):
        return ObjectValue(properties=frozenset(entry.mapped(mapper) for entry in value.properties))
    return ArrayValue(
        items=frozenset(_map_value(item, mapper) for item in value.items),
        length=value.length,
    )
