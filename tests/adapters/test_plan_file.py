from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from blok.adapters.plan_file import dumps_plan, loads_plan, read_plan, write_plan
from blok.domain.reconciliation import Phase, PlanFileError, TypeGraph
from blok.domain.reconciliation.diff import diff_graphs
from blok.domain.reconciliation.plan import compile_plan
from tests.support.ontology import (
    EMPLOYED_BY,
    NAME,
    PERSON,
    ROOT,
    TEXT,
    data_type,
    entity_type,
    link,
    nodes,
    prop,
    property_type,
    ref,
    url,
)

if TYPE_CHECKING:
    from pathlib import Path

    from blok.domain.reconciliation import Plan


def _plan() -> Plan:
    local = TypeGraph.from_nodes(
        nodes(
            data_type(TEXT),
            property_type(NAME, one_of=[ref(TEXT)]),
            entity_type(PERSON, properties=prop(NAME), links=[link(EMPLOYED_BY, min=0)]),
            entity_type(EMPLOYED_BY, links=[link(PERSON)]),
        )
    )
    remote = TypeGraph.from_nodes(nodes(data_type(f"{ROOT}data-type/legacy/")))
    return compile_plan(diff_graphs(local, remote, managed_prefixes=[ROOT]))


def _document(plan: Plan) -> dict[str, Any]:
    return json.loads(dumps_plan(plan))


def test_plan_file_round_trip(tmp_path: Path) -> None:
    plan = _plan()

    written = write_plan(plan, tmp_path / "plans" / "next.json")
    loaded = read_plan(written)

    assert written.exists()
    assert loaded == plan
    assert [operation.phase for operation in loaded].count(Phase.ATTACH) == 2


def test_plan_document_layout() -> None:
    document = _document(_plan())

    assert document["formatVersion"] == 1
    first = document["operations"][0]
    assert first == {
        "id": f"create:{url(TEXT)}",
        "kind": "create",
        "typeKind": "data-type",
        "url": url(TEXT),
        "phase": "single",
        "dependsOn": [],
        "payload": {
            "identifier": TEXT,
            "version": 1,
            "kind": "data-type",
            "body": {"type": "string"},
        },
    }
    archive = document["operations"][-1]
    assert archive["kind"] == "archive"
    assert "payload" not in archive


def test_invalid_json_is_a_plan_file_error() -> None:
    with pytest.raises(PlanFileError, match="Invalid plan file"):
        loads_plan("{not json")


def test_unknown_format_version_is_rejected() -> None:
    document = _document(_plan()) | {"formatVersion": 2}

    with pytest.raises(PlanFileError, match="Invalid plan file"):
        loads_plan(json.dumps(document))


def test_payload_must_match_operation_url() -> None:
    document = _document(_plan())
    document["operations"][0]["url"] = url(TEXT, 2)

    with pytest.raises(PlanFileError, match="payload does not match"):
        loads_plan(json.dumps(document))


def test_writes_need_a_payload() -> None:
    document = _document(_plan())
    del document["operations"][0]["payload"]

    with pytest.raises(PlanFileError, match="needs a payload"):
        loads_plan(json.dumps(document))


def test_dependencies_must_precede_their_dependents() -> None:
    document = _document(_plan())
    document["operations"].reverse()

    with pytest.raises(PlanFileError, match="does not precede"):
        loads_plan(json.dumps(document))


def test_missing_plan_file(tmp_path: Path) -> None:
    with pytest.raises(PlanFileError, match="Cannot read plan file"):
        read_plan(tmp_path / "absent.json")
