"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class TypeKind(StrEnum):
    """Discriminator for the three kinds of ontology type."""

    DATA_TYPE = "data-type"
    PROPERTY_TYPE = "property-type"
    ENTITY_TYPE = "entity-type"

    @property
    def rank(self) -> int:
        """Creation order: data types first, entity types last."""
        return _KIND_RANK[self]


_KIND_RANK = {
    TypeKind.DATA_TYPE: 0,
    TypeKind.PROPERTY_TYPE: 1,
    TypeKind.ENTITY_TYPE: 2,
}


class PrimitiveKind(StrEnum):
    """JSON primitive a data type constrains values to."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    OBJECT = "object"
    ARRAY = "array"
