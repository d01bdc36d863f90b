from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

import pytest

from blok.domain.model import EntityType, TypeKind, VersionedUrl
from blok.domain.reconciliation import (
    Operation,
    OperationKind,
    Phase,
    Plan,
    TypeGraph,
    UnsatisfiableDependencyError,
)
from blok.domain.reconciliation.diff import diff_graphs
from blok.domain.reconciliation.plan import compile_plan
from tests.support.ontology import (
    ADDRESS,
    EMPLOYED_BY,
    NAME,
    PERSON,
    ROOT,
    TEXT,
    data_type,
    entity_type,
    link,
    nodes,
    person_ontology,
    prop,
    property_type,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from blok.domain.declarations import RawDeclaration


def _plan(
    local: Sequence[RawDeclaration],
    remote: Sequence[RawDeclaration] = (),
    *,
    prefixes: tuple[str, ...] = (),
) -> Plan:
    change_set = diff_graphs(
        TypeGraph.from_nodes(nodes(*local)),
        TypeGraph.from_nodes(nodes(*remote)),
        managed_prefixes=prefixes,
    )
    return compile_plan(change_set)


def _url(identifier: str, version: int = 1) -> VersionedUrl:
    return VersionedUrl.of(identifier, version)


def test_creates_follow_kind_rank_and_references() -> None:
    declarations = [decl for group in person_ontology().values() for decl in group]

    plan = _plan(declarations)

    assert [operation.op_id for operation in plan] == [
        f"create:{_url(TEXT)}",
        f"create:{_url(NAME)}",
        f"create:{_url(EMPLOYED_BY)}",
        f"create:{_url(PERSON)}",
    ]
    person = plan.operation(f"create:{_url(PERSON)}")
    assert person.depends_on == (f"create:{_url(EMPLOYED_BY)}", f"create:{_url(NAME)}")
    assert plan.dependencies_of(person.op_id) == {
        f"create:{_url(TEXT)}",
        f"create:{_url(NAME)}",
        f"create:{_url(EMPLOYED_BY)}",
    }
    assert plan.counts() == {
        OperationKind.CREATE: 4,
        OperationKind.UPDATE: 0,
        OperationKind.ARCHIVE: 0,
    }


def test_versions_of_one_identifier_are_chained() -> None:
    plan = _plan([data_type(TEXT, 1), data_type(TEXT, 2, primitive="number")])

    first, second = plan
    assert second.depends_on == (first.op_id,)
    assert plan.dependents_of(first.op_id) == {second.op_id}


def test_update_operation_publishes_next_version() -> None:
    plan = _plan([data_type(TEXT, primitive="number")], [data_type(TEXT)])

    (operation,) = plan
    assert operation.kind is OperationKind.UPDATE
    assert operation.url == _url(TEXT, 2)
    assert operation.payload is not None
    assert operation.payload.version == 2


def test_mutual_links_are_split_into_shells_and_attaches() -> None:
    plan = _plan(
        [
            entity_type(PERSON, links=[link(EMPLOYED_BY)]),
            entity_type(EMPLOYED_BY, links=[link(PERSON)]),
        ]
    )

    assert [(operation.op_id, operation.phase) for operation in plan] == [
        (f"create:{_url(EMPLOYED_BY)}", Phase.SHELL),
        (f"create:{_url(PERSON)}", Phase.SHELL),
        (f"update:{_url(EMPLOYED_BY)}:links", Phase.ATTACH),
        (f"update:{_url(PERSON)}:links", Phase.ATTACH),
    ]
    shell = plan.operation(f"create:{_url(PERSON)}")
    attach = plan.operation(f"update:{_url(PERSON)}:links")
    assert isinstance(shell.payload, EntityType)
    assert shell.payload.links == frozenset()
    assert isinstance(attach.payload, EntityType)
    assert len(attach.payload.links) == 1
    assert set(attach.depends_on) == {
        f"create:{_url(PERSON)}",
        f"create:{_url(EMPLOYED_BY)}",
    }


def test_composition_cycle_is_unsatisfiable() -> None:
    address = property_type(ADDRESS, one_of=[{"type": "object", "properties": prop(ADDRESS)}])

    with pytest.raises(UnsatisfiableDependencyError) as exc:
        _plan([address])

    assert exc.value.cycle == (_url(ADDRESS), _url(ADDRESS))


def test_archives_come_last_without_dependencies() -> None:
    legacy = f"{ROOT}data-type/legacy/"
    other = "https://types.example.com/@elsewhere/types/data-type/legacy/"
    plan = _plan(
        [data_type(TEXT)],
        [entity_type(PERSON), data_type(legacy), data_type(other)],
        prefixes=(ROOT,),
    )

    kinds = [operation.kind for operation in plan]
    assert kinds == [OperationKind.CREATE, OperationKind.ARCHIVE, OperationKind.ARCHIVE]
    archives = [operation for operation in plan if operation.kind is OperationKind.ARCHIVE]
    assert [operation.type_kind for operation in archives] == [
        TypeKind.DATA_TYPE,
        TypeKind.ENTITY_TYPE,
    ]
    assert all(operation.depends_on == () for operation in archives)
    assert all(operation.payload is None for operation in archives)


def test_empty_change_set_gives_empty_plan() -> None:
    plan = _plan([data_type(TEXT)], [data_type(TEXT)])

    assert plan.is_empty
    assert len(plan) == 0


def test_plan_rejects_dependencies_that_do_not_precede() -> None:
    later = Operation(
        op_id="create:b",
        kind=OperationKind.CREATE,
        type_kind=TypeKind.DATA_TYPE,
        url=_url(TEXT),
        depends_on=("create:a",),
    )

    with pytest.raises(ValueError, match="does not precede"):
        Plan(operations=(later,))

    with pytest.raises(ValueError, match="Duplicate"):
        Plan(operations=(replace(later, depends_on=()),) * 2)

