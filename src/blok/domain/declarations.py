"""Raw declarations: the hand-off record between the type-file parser and the builder.

A declaration body mirrors the Block Protocol JSON schema of its kind:

- data type: ``{"title", "description"?, "type": <primitive>}``
- property type: ``{"title", "oneOf": [<value>, ...]}``
- entity type: ``{"title", "properties": {<base url>: <entry>}, "links": [<link>, ...]}``

References are written either as a versioned URL string or as a range
``{"identifier", "minVersion", "maxVersion"?}``. Parsing keeps references
unresolved; the builder checks them against the graph.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

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
from blok.domain.reconciliation.errors import MalformedDeclarationError

if TYPE_CHECKING:
    from collections.abc import Iterable


type Body = Mapping[str, Any]


@dataclass(frozen=True, slots=True, kw_only=True)
class RawDeclaration:
    identifier: str
    version: int
    kind: TypeKind
    body: Body = field(default_factory=dict[str, Any])
    source: str | None = field(default=None, compare=False)

    @property
    def url(self) -> VersionedUrl:
        return VersionedUrl.of(self.identifier, self.version)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, source: str | None = None) -> RawDeclaration:
        """Build a declaration from ``{"identifier", "version", "kind", "body"}``.

        ``{"$id": <versioned url>, "kind", ...}`` is accepted as well, in which
        case the rest of the mapping is the body.
        """

        try:
            if "$id" in data:
                url = VersionedUrl.parse(_require_str(data, "$id"))
                identifier, version = url.base_url, url.version
                body = {key: value for key, value in data.items() if key not in {"$id", "kind"}}
            else:
                identifier = normalize_base_url(_require_str(data, "identifier"))
                version = data.get("version")
                if isinstance(version, bool) or not isinstance(version, int) or version < 1:
                    raise MalformedDeclarationError(
                        f"{identifier}: version must be a positive integer, got {version!r}",
                        identifier=identifier,
                    )
                body = data.get("body", {})
                if not isinstance(body, Mapping):
                    raise MalformedDeclarationError(
                        f"{identifier}: body must be a mapping", identifier=identifier
                    )
            kind = TypeKind(_require_str(data, "kind"))
        except ValueError as exc:
            raise MalformedDeclarationError(
                f"Invalid declaration{_where(source)}: {exc}",
                identifier=str(data.get("identifier") or data.get("$id") or "<unknown>"),
            ) from exc
        return cls(identifier=identifier, version=version, kind=kind, body=body, source=source)

    def to_mapping(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "version": self.version,
            "kind": str(self.kind),
            "body": dict(self.body),
        }


def parse_declaration(raw: RawDeclaration) -> OntologyType:
    """Turn ``raw`` into an unresolved node or raise ``MalformedDeclarationError``."""

    identifier = normalize_base_url(raw.identifier)
    try:
        title = _optional_str(raw.body, "title")
        description = _optional_str(raw.body, "description")
        match raw.kind:
            case TypeKind.DATA_TYPE:
                return DataType(
                    identifier=identifier,
                    version=raw.version,
                    title=title,
                    description=description,
                    primitive=PrimitiveKind(_require_str(raw.body, "type")),
                )
            case TypeKind.PROPERTY_TYPE:
                values = raw.body.get("oneOf")
                if not isinstance(values, Sequence) or isinstance(values, str) or not values:
                    raise _Malformed("'oneOf' must be a non-empty list")
                return PropertyType(
                    identifier=identifier,
                    version=raw.version,
                    title=title,
                    description=description,
                    one_of=frozenset(_parse_value(value) for value in values),
                )
            case TypeKind.ENTITY_TYPE:
                return EntityType(
                    identifier=identifier,
                    version=raw.version,
                    title=title,
                    description=description,
                    properties=_parse_entries(raw.body.get("properties", {})),
                    links=_parse_links(raw.body.get("links", [])),
                )
    except ValueError as exc:
        raise MalformedDeclarationError(
            f"{raw.url} is malformed{_where(raw.source)}: {exc}",
            identifier=identifier,
            version=raw.version,
        ) from exc


def parse_reference(value: object) -> TypeRef:
    if isinstance(value, str):
        return TypeRef.exact(VersionedUrl.parse(value))
    if isinstance(value, Mapping):
        identifier = _require_str(value, "identifier")
        lower = value.get("minVersion", 1)
        upper = value.get("maxVersion")
        if not _is_int(lower) or (upper is not None and not _is_int(upper)):
            raise _Malformed(f"version bounds must be integers: {dict(value)!r}")
        return TypeRef.between(identifier, lower, upper)
    raise _Malformed(f"reference must be a versioned URL or a range, got {value!r}")


def to_declaration(node: OntologyType) -> RawDeclaration:
    """Render ``node`` back into the raw declaration format."""

    body: dict[str, Any] = {}
    if node.title is not None:
        body["title"] = node.title
    if node.description is not None:
        body["description"] = node.description
    if isinstance(node, DataType):
        body["type"] = str(node.primitive)
    elif isinstance(node, PropertyType):
        body["oneOf"] = [_value_body(value) for value in _sorted(node.one_of)]
    elif isinstance(node, EntityType):
        body["properties"] = _entries_body(node.properties)
        body["links"] = [
            _with_length({"to": reference_body(link.to)}, link.length)
            for link in sorted(node.links, key=str)
        ]
    return RawDeclaration(
        identifier=node.identifier,
        version=node.version,
        kind=node.kind,
        body=body,
    )


def reference_body(ref: TypeRef) -> str | dict[str, Any]:
    if ref.is_exact:
        return str(ref.url)
    payload: dict[str, Any] = {"identifier": ref.identifier, "minVersion": ref.min_version}
    if ref.max_version is not None:
        payload["maxVersion"] = ref.max_version
    return payload


class _Malformed(ValueError):
    pass


def _parse_value(value: object) -> PropertyValue:
    if not isinstance(value, Mapping):
        raise _Malformed(f"property value must be a mapping, got {value!r}")
    if "$ref" in value:
        return DataTypeValue(ref=parse_reference(value["$ref"]))
    match value.get("type"):
        case "object":
            return ObjectValue(properties=_parse_entries(value.get("properties", {})))
        case "array":
            items = value.get("items")
            if not isinstance(items, Mapping):
                raise _Malformed("array value needs an 'items' mapping")
            choices = items.get("oneOf")
            if not isinstance(choices, Sequence) or isinstance(choices, str) or not choices:
                raise _Malformed("array 'items.oneOf' must be a non-empty list")
            return ArrayValue(
                items=frozenset(_parse_value(choice) for choice in choices),
                length=NumericConstraint.parse(value.get("length")),
            )
        case other:
            raise _Malformed(f"unknown property value type {other!r}")


def _parse_entries(value: object) -> frozenset[PropertyEntry]:
    if not isinstance(value, Mapping):
        raise _Malformed("'properties' must be a mapping of base URL to entry")
    entries: set[PropertyEntry] = set()
    for raw_key, entry in value.items():
        key = normalize_base_url(str(raw_key))
        if not isinstance(entry, Mapping):
            raise _Malformed(f"property entry {key} must be a mapping")
        if "$ref" in entry:
            target: TypeRef | PropertyArray = parse_reference(entry["$ref"])
        elif entry.get("type") == "array":
            items = entry.get("items")
            if not isinstance(items, Mapping) or "$ref" not in items:
                raise _Malformed(f"array entry {key} needs 'items.$ref'")
            target = PropertyArray(
                ref=parse_reference(items["$ref"]),
                length=NumericConstraint.parse(entry.get("length")),
            )
        else:
            raise _Malformed(f"property entry {key} needs '$ref' or an array")
        parsed = PropertyEntry(key=key, target=target)
        if parsed.ref.identifier != key:
            raise _Malformed(f"property key {key} does not match its reference {parsed.ref}")
        entries.add(parsed)
    return frozenset(entries)


def _parse_links(value: object) -> frozenset[Link]:
    if not isinstance(value, Sequence) or isinstance(value, str):
        raise _Malformed("'links' must be a list")
    links: dict[str, Link] = {}
    for item in value:
        if not isinstance(item, Mapping) or "to" not in item:
            raise _Malformed(f"link must be a mapping with 'to', got {item!r}")
        link = Link(
            to=parse_reference(item["to"]),
            length=NumericConstraint.parse(item.get("length")),
        )
        if link.to.identifier in links:
            raise _Malformed(f"duplicate link to {link.to.identifier}")
        links[link.to.identifier] = link
    return frozenset(links.values())


def _value_body(value: PropertyValue) -> dict[str, Any]:
    if isinstance(value, DataTypeValue):
        return {"$ref": reference_body(value.ref)}
    if isinstance(value, ObjectValue):
        return {"type": "object", "properties": _entries_body(value.properties)}
    return _with_length(
        {"type": "array", "items": {"oneOf": [_value_body(item) for item in _sorted(value.items)]}},
        value.length,
    )


def _entries_body(entries: Iterable[PropertyEntry]) -> dict[str, Any]:
    body: dict[str, Any] = {}
    for entry in sorted(entries, key=lambda entry: entry.key):
        if isinstance(entry.target, PropertyArray):
            body[entry.key] = _with_length(
                {"type": "array", "items": {"$ref": reference_body(entry.target.ref)}},
                entry.target.length,
            )
        else:
            body[entry.key] = {"$ref": reference_body(entry.target)}
    return body


def _with_length(payload: dict[str, Any], length: NumericConstraint) -> dict[str, Any]:
    if not length.is_unbounded:
        payload["length"] = length.to_payload()
    return payload


def _sorted(values: Iterable[PropertyValue]) -> list[PropertyValue]:
    return sorted(values, key=str)


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise _Malformed(f"'{key}' must be a non-empty string")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise _Malformed(f"'{key}' must be a string")
    return value


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _where(source: str | None) -> str:
    return f" ({source})" if source else ""
