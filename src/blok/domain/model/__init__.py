"""Public domain model surface."""

from __future__ import annotations

from blok.domain.model.constraints import InvalidConstraintError, NumericConstraint
from blok.domain.model.enums import PrimitiveKind, TypeKind
from blok.domain.model.references import TypeRef
from blok.domain.model.types import (
    ArrayValue,
    DataType,
    DataTypeValue,
    EntityType,
    Link,
    ObjectValue,
    OntologyType,
    PropertyArray,
    PropertyEntry,
    PropertyType,
    PropertyValue,
)
from blok.domain.model.urls import InvalidVersionedUrlError, VersionedUrl, normalize_base_url

__all__ = [  # noqa: RUF022
    # identifiers
    "VersionedUrl",
    "InvalidVersionedUrlError",
    "normalize_base_url",
    "TypeRef",
    # constraints
    "NumericConstraint",
    "InvalidConstraintError",
    # enums
    "TypeKind",
    "PrimitiveKind",
    # nodes
    "OntologyType",
    "DataType",
    "PropertyType",
    "EntityType",
    # node parts
    "PropertyValue",
    "DataTypeValue",
    "ObjectValue",
    "ArrayValue",
    "PropertyArray",
    "PropertyEntry",
    "Link",
]
