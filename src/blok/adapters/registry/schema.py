"""Pydantic models describing the registry's ontology type payloads."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

WireKind = Literal["dataType", "propertyType", "entityType"]


class RegistryBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RefPayload(RegistryBaseModel):
    ref: str = Field(alias="$ref")


class RefArrayPayload(RegistryBaseModel):
    type: Literal["array"] = "array"
    items: RefPayload
    min_items: int | None = Field(default=None, alias="minItems")
    max_items: int | None = Field(default=None, alias="maxItems")


PropertyEntryPayload = RefPayload | RefArrayPayload


class ObjectValuePayload(RegistryBaseModel):
    type: Literal["object"] = "object"
    properties: dict[str, PropertyEntryPayload] = Field(default_factory=dict)


class OneOfPayload(RegistryBaseModel):
    one_of: list[PropertyValuePayload] = Field(alias="oneOf")


class ArrayValuePayload(RegistryBaseModel):
    type: Literal["array"] = "array"
    items: OneOfPayload
    min_items: int | None = Field(default=None, alias="minItems")
    max_items: int | None = Field(default=None, alias="maxItems")


PropertyValuePayload = RefPayload | ObjectValuePayload | ArrayValuePayload


class LinkPayload(RegistryBaseModel):
    type: Literal["array"] = "array"
    min_items: int | None = Field(default=None, alias="minItems")
    max_items: int | None = Field(default=None, alias="maxItems")


class OntologyTypeSchema(RegistryBaseModel):
    """One data, property or entity type schema as the registry stores it."""

    json_schema: str | None = Field(default=None, alias="$schema")
    id: str = Field(alias="$id")
    kind: WireKind
    title: str | None = None
    description: str | None = None
    type: str | None = None
    one_of: list[PropertyValuePayload] | None = Field(default=None, alias="oneOf")
    properties: dict[str, PropertyEntryPayload] | None = None
    links: dict[str, LinkPayload] | None = None


class VertexMetadata(RegistryBaseModel):
    archived: bool = False


class VertexInner(RegistryBaseModel):
    type_schema: OntologyTypeSchema = Field(alias="schema")
    metadata: VertexMetadata = Field(default_factory=VertexMetadata)


class Vertex(RegistryBaseModel):
    kind: str | None = None
    inner: VertexInner


class QueryResponse(RegistryBaseModel):
    """Subgraph answer of a ``*/query`` call; vertices keyed by base URL then revision."""

    vertices: dict[str, dict[str, Vertex]] = Field(default_factory=dict)

    def schemas(self) -> list[tuple[OntologyTypeSchema, bool]]:
        return [
            (vertex.inner.type_schema, vertex.inner.metadata.archived)
            for revisions in self.vertices.values()
            for vertex in revisions.values()
        ]


class ErrorResponse(RegistryBaseModel):
    message: str | None = None
    code: str | None = None


OneOfPayload.model_rebuild()
ObjectValuePayload.model_rebuild()
OntologyTypeSchema.model_rebuild()
