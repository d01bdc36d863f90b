"""Translate between registry schemas and domain ontology types."""

from __future__ import annotations

from typing import TYPE_CHECKING

from blok.domain.model import (
    ArrayValue,
    DataType,
    DataTypeValue,
    EntityType,
    Link,
    NumericConstraint,
    ObjectValue,
    OntologyType,
    PrimitiveKind,
    PropertyArray,
    PropertyEntry,
    PropertyType,
    PropertyValue,
    TypeKind,
    TypeRef,
    VersionedUrl,
    normalize_base_url,
)

from .schema import (
    ArrayValuePayload,
    LinkPayload,
    ObjectValuePayload,
    OneOfPayload,
    OntologyTypeSchema,
    RefArrayPayload,
    RefPayload,
    WireKind,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .schema import PropertyEntryPayload, PropertyValuePayload

_SCHEMA_BASE = "https://blockprotocol.org/types/modules/graph/0.3/schema"

SCHEMA_URLS: dict[TypeKind, str] = {kind: f"{_SCHEMA_BASE}/{kind}" for kind in TypeKind}

_WIRE_KINDS: dict[TypeKind, WireKind] = {
    TypeKind.DATA_TYPE: "dataType",
    TypeKind.PROPERTY_TYPE: "propertyType",
    TypeKind.ENTITY_TYPE: "entityType",
}
_DOMAIN_KINDS: dict[str, TypeKind] = {wire: kind for kind, wire in _WIRE_KINDS.items()}


class UnsupportedSchemaError(ValueError):
    """Raised when a registry schema falls outside the supported type model."""


def wire_kind(kind: TypeKind) -> WireKind:
    return _WIRE_KINDS[kind]


def parse_ontology_type(schema: OntologyTypeSchema, *, archived: bool = False) -> OntologyType:
    url = VersionedUrl.parse(schema.id)
    kind = _DOMAIN_KINDS[schema.kind]
    common = {
        "identifier": url.base_url,
        "version": url.version,
        "archived": archived,
        "title": schema.title,
        "description": schema.description,
    }
    if kind is TypeKind.DATA_TYPE:
        if schema.type is None:
            raise UnsupportedSchemaError(f"{schema.id}: data type without 'type'")
        try:
            primitive = PrimitiveKind(schema.type)
        except ValueError:
            msg = f"{schema.id}: unknown primitive {schema.type!r}"
            raise UnsupportedSchemaError(msg) from None
        return DataType(primitive=primitive, **common)
    if kind is TypeKind.PROPERTY_TYPE:
        if not schema.one_of:
            raise UnsupportedSchemaError(f"{schema.id}: property type without 'oneOf'")
        return PropertyType(
            one_of=frozenset(_parse_value(value) for value in schema.one_of),
            **common,
        )
    return EntityType(
        properties=_parse_entries(schema.properties or {}),
        links=frozenset(
            Link(to=_exact(target), length=_constraint(link.min_items, link.max_items))
            for target, link in (schema.links or {}).items()
        ),
        **common,
    )


def serialize_ontology_type(node: OntologyType) -> OntologyTypeSchema:
    """Render ``node`` as a registry schema; every reference must be pinned."""

    schema = OntologyTypeSchema(
        json_schema=SCHEMA_URLS[node.kind],
        id=str(node.url),
        kind=wire_kind(node.kind),
        title=node.title or _default_title(node.identifier),
        description=node.description,
    )
    if isinstance(node, DataType):
        schema.type = str(node.primitive)
    elif isinstance(node, PropertyType):
        schema.one_of = [_serialize_value(value) for value in sorted(node.one_of, key=str)]
    elif isinstance(node, EntityType):
        schema.type = "object"
        schema.properties = _serialize_entries(node.properties)
        schema.links = {
            str(link.to.url): LinkPayload(min_items=link.length.min, max_items=link.length.max)
            for link in sorted(node.links, key=str)
        }
    return schema


def _parse_value(payload: PropertyValuePayload) -> PropertyValue:
    if isinstance(payload, RefPayload):
        return DataTypeValue(ref=_exact(payload.ref))
    if isinstance(payload, ObjectValuePayload):
        return ObjectValue(properties=_parse_entries(payload.properties))
    return ArrayValue(
        items=frozenset(_parse_value(item) for item in payload.items.one_of),
        length=_constraint(payload.min_items, payload.max_items),
    )


def _parse_entries(entries: Mapping[str, PropertyEntryPayload]) -> frozenset[PropertyEntry]:
    parsed: set[PropertyEntry] = set()
    for key, entry in entries.items():
        if isinstance(entry, RefPayload):
            target: TypeRef | PropertyArray = _exact(entry.ref)
        else:
            target = PropertyArray(
                ref=_exact(entry.items.ref),
                length=_constraint(entry.min_items, entry.max_items),
            )
        parsed.add(PropertyEntry(key=normalize_base_url(key), target=target))
    return frozenset(parsed)


def _serialize_value(value: PropertyValue) -> PropertyValuePayload:
    if isinstance(value, DataTypeValue):
        return RefPayload(ref=str(value.ref.url))
    if isinstance(value, ObjectValue):
        return ObjectValuePayload(properties=_serialize_entries(value.properties))
    return ArrayValuePayload(
        items=OneOfPayload(
            one_of=[_serialize_value(item) for item in sorted(value.items, key=str)]
        ),
        min_items=value.length.min,
        max_items=value.length.max,
    )


def _serialize_entries(entries: Iterable[PropertyEntry]) -> dict[str, PropertyEntryPayload]:
    serialized: dict[str, PropertyEntryPayload] = {}
    for entry in sorted(entries, key=lambda entry: entry.key):
        if isinstance(entry.target, PropertyArray):
            serialized[entry.key] = RefArrayPayload(
                items=RefPayload(ref=str(entry.target.ref.url)),
                min_items=entry.target.length.min,
                max_items=entry.target.length.max,
            )
        else:
            serialized[entry.key] = RefPayload(ref=str(entry.target.url))
    return serialized


def _exact(value: str) -> TypeRef:
    return TypeRef.exact(VersionedUrl.parse(value))


def _constraint(minimum: int | None, maximum: int | None) -> NumericConstraint:
    return NumericConstraint(min=minimum, max=maximum)


def _default_title(identifier: str) -> str:
    # registry schemas require a title; fall back to the last path segment
    segment = identifier.rstrip("/").rsplit("/", 1)[-1]
    return segment.replace("-", " ").title()
