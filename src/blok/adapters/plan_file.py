"""JSON plan files: what ``plan --out`` writes and ``apply`` reads back."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from blok.domain.declarations import RawDeclaration, parse_declaration, to_declaration
from blok.domain.model import InvalidVersionedUrlError, TypeKind, VersionedUrl
from blok.domain.reconciliation import (
    MalformedDeclarationError,
    Operation,
    OperationKind,
    Phase,
    Plan,
    PlanFileError,
)

if TYPE_CHECKING:
    from blok.domain.model import OntologyType

log = getLogger(__name__)

PLAN_FORMAT_VERSION = 1


class _PlanFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class PayloadRecord(_PlanFileModel):
    identifier: str
    version: int = Field(ge=1)
    kind: TypeKind
    body: dict[str, Any] = Field(default_factory=dict)


class OperationRecord(_PlanFileModel):
    op_id: str = Field(alias="id")
    kind: OperationKind
    type_kind: TypeKind = Field(alias="typeKind")
    url: str
    phase: Phase = Phase.SINGLE
    depends_on: list[str] = Field(default_factory=list, alias="dependsOn")
    payload: PayloadRecord | None = None


class PlanDocument(_PlanFileModel):
    format_version: Literal[1] = Field(default=PLAN_FORMAT_VERSION, alias="formatVersion")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), alias="createdAt")
    operations: list[OperationRecord] = Field(default_factory=list)


def plan_to_document(plan: Plan) -> PlanDocument:
    return PlanDocument(
        created_at=plan.created_at,
        operations=[
            OperationRecord(
                op_id=operation.op_id,
                kind=operation.kind,
                type_kind=operation.type_kind,
                url=str(operation.url),
                phase=operation.phase,
                depends_on=list(operation.depends_on),
                payload=_payload_record(operation.payload),
            )
            for operation in plan
        ],
    )


def document_to_plan(document: PlanDocument) -> Plan:
    """Rebuild a ``Plan``; raises ``PlanFileError`` for inconsistent documents."""

    operations: list[Operation] = []
    for record in document.operations:
        try:
            url = VersionedUrl.parse(record.url)
            payload = _payload_node(record.payload)
        except (InvalidVersionedUrlError, MalformedDeclarationError) as exc:
            raise PlanFileError(f"Operation {record.op_id}: {exc}") from exc
        if payload is not None and (payload.url != url or payload.kind is not record.type_kind):
            raise PlanFileError(f"Operation {record.op_id}: payload does not match {url}")
        if payload is None and record.kind is not OperationKind.ARCHIVE:
            raise PlanFileError(f"Operation {record.op_id}: {record.kind} needs a payload")
        operations.append(
            Operation(
                op_id=record.op_id,
                kind=record.kind,
                type_kind=record.type_kind,
                url=url,
                payload=payload,
                depends_on=tuple(record.depends_on),
                phase=record.phase,
            )
        )
    try:
        return Plan(operations=tuple(operations), created_at=document.created_at)
    except ValueError as exc:
        raise PlanFileError(str(exc)) from exc


def dumps_plan(plan: Plan) -> str:
    return plan_to_document(plan).model_dump_json(by_alias=True, exclude_none=True, indent=2)


def loads_plan(text: str) -> Plan:
    try:
        document = PlanDocument.model_validate_json(text)
    except ValidationError as exc:
        raise PlanFileError(f"Invalid plan file: {exc}") from exc
    return document_to_plan(document)


def write_plan(plan: Plan, path: Path | str) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(dumps_plan(plan) + "\n", encoding="utf-8")
    log.info("Wrote plan with %d operations to %s", len(plan), target)
    return target


def read_plan(path: Path | str) -> Plan:
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise PlanFileError(f"Cannot read plan file {source}: {exc}") from exc
    plan = loads_plan(text)
    log.info("Loaded plan with %d operations from %s", len(plan), source)
    return plan


def _payload_record(node: OntologyType | None) -> PayloadRecord | None:
    if node is None:
        return None
    raw = to_declaration(node)
    return PayloadRecord(
        identifier=raw.identifier,
        version=raw.version,
        kind=raw.kind,
        body=dict(raw.body),
    )


def _payload_node(record: PayloadRecord | None) -> OntologyType | None:
    if record is None:
        return None
    raw = RawDeclaration(
        identifier=record.identifier,
        version=record.version,
        kind=record.kind,
        body=record.body,
        source="plan file",
    )
    return parse_declaration(raw)
