"""Builders for declarations and nodes used across the reconciliation tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from blok.domain.declarations import RawDeclaration, parse_declaration
from blok.domain.model import TypeKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from blok.domain.model import OntologyType

ROOT = "https://types.example.com/@acme/types/"

TEXT = f"{ROOT}data-type/text/"
NUMBER = f"{ROOT}data-type/number/"
NAME = f"{ROOT}property-type/name/"
EMAIL = f"{ROOT}property-type/email/"
AGE = f"{ROOT}property-type/age/"
ADDRESS = f"{ROOT}property-type/address/"
PERSON = f"{ROOT}entity-type/person/"
EMPLOYED_BY = f"{ROOT}entity-type/employed-by/"
COMPANY = f"{ROOT}entity-type/company/"


def url(identifier: str, version: int = 1) -> str:
    return f"{identifier}v/{version}"


def data_type(
    identifier: str,
    version: int = 1,
    *,
    primitive: str = "string",
    title: str | None = None,
) -> RawDeclaration:
    body: dict[str, Any] = {"type": primitive}
    if title is not None:
        body["title"] = title
    return RawDeclaration(
        identifier=identifier, version=version, kind=TypeKind.DATA_TYPE, body=body
    )


def property_type(
    identifier: str,
    version: int = 1,
    *,
    one_of: Iterable[Mapping[str, Any]],
) -> RawDeclaration:
    return RawDeclaration(
        identifier=identifier,
        version=version,
        kind=TypeKind.PROPERTY_TYPE,
        body={"oneOf": list(one_of)},
    )


def entity_type(
    identifier: str,
    version: int = 1,
    *,
    properties: Mapping[str, Any] | None = None,
    links: Iterable[Mapping[str, Any]] = (),
) -> RawDeclaration:
    return RawDeclaration(
        identifier=identifier,
        version=version,
        kind=TypeKind.ENTITY_TYPE,
        body={"properties": dict(properties or {}), "links": list(links)},
    )


def ref(identifier: str, version: int = 1) -> dict[str, Any]:
    return {"$ref": url(identifier, version)}


def prop(identifier: str, version: int = 1) -> dict[str, Any]:
    """Property entry keyed by the property type's base URL."""
    return {identifier: ref(identifier, version)}


def link(identifier: str, version: int = 1, **length: int) -> dict[str, Any]:
    payload: dict[str, Any] = {"to": url(identifier, version)}
    if length:
        payload["length"] = length
    return payload


def group(*declarations: RawDeclaration) -> dict[str, list[RawDeclaration]]:
    grouped: dict[str, list[RawDeclaration]] = {}
    for declaration in declarations:
        grouped.setdefault(declaration.identifier, []).append(declaration)
    return grouped


def nodes(*declarations: RawDeclaration) -> list[OntologyType]:
    return [parse_declaration(declaration) for declaration in declarations]


def person_ontology() -> dict[str, list[RawDeclaration]]:
    """Person with a name property and a link to employed-by."""
    return group(
        data_type(TEXT, title="Text"),
        property_type(NAME, one_of=[ref(TEXT)]),
        entity_type(EMPLOYED_BY),
        entity_type(
            PERSON,
            properties=prop(NAME),
            links=[link(EMPLOYED_BY, greaterThanOrEqualTo=0)],
        ),
    )


def contact_ontology() -> dict[str, list[RawDeclaration]]:
    """Text plus two independent property types built on it."""
    return group(
        data_type(TEXT),
        property_type(EMAIL, one_of=[ref(TEXT)]),
        property_type(NAME, one_of=[ref(TEXT)]),
    )


__all__ = [
    "ADDRESS",
    "AGE",
    "COMPANY",
    "EMAIL",
    "EMPLOYED_BY",
    "NAME",
    "NUMBER",
    "PERSON",
    "ROOT",
    "TEXT",
    "contact_ontology",
    "data_type",
    "entity_type",
    "group",
    "link",
    "nodes",
    "person_ontology",
    "prop",
    "property_type",
    "ref",
    "url",
]
