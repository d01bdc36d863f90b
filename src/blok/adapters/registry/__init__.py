"""Public interface for the registry adapter."""

from __future__ import annotations

from .client import HttpRegistryTransport
from .schema import OntologyTypeSchema, QueryResponse
from .translator import UnsupportedSchemaError, parse_ontology_type, serialize_ontology_type

__all__ = [
    "HttpRegistryTransport",
    "OntologyTypeSchema",
    "QueryResponse",
    "UnsupportedSchemaError",
    "parse_ontology_type",
    "serialize_ontology_type",
]
