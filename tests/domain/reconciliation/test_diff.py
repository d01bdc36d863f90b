from __future__ import annotations

from typing import TYPE_CHECKING

from blok.domain.model import DataTypeValue, PropertyType, TypeRef
from blok.domain.reconciliation import ChangeKind, MembershipDelta, TypeGraph
from blok.domain.reconciliation.diff import ReferencePinner, diff_graphs
from tests.support.ontology import (
    EMAIL,
    NAME,
    PERSON,
    ROOT,
    TEXT,
    data_type,
    entity_type,
    nodes,
    prop,
    property_type,
    ref,
)

if TYPE_CHECKING:
    from blok.domain.declarations import RawDeclaration

OTHER_TEXT = "https://types.example.com/@someone-else/types/data-type/text/"
TEXT_RANGE = {"$ref": {"identifier": TEXT, "minVersion": 1}}


def _graph(*declarations: RawDeclaration) -> TypeGraph:
    return TypeGraph.from_nodes(nodes(*declarations))


def test_identical_graphs_are_unchanged() -> None:
    local = _graph(
        data_type(TEXT, title="Text"),
        property_type(NAME, one_of=[TEXT_RANGE]),
        entity_type(PERSON, properties=prop(NAME)),
    )
    remote = _graph(
        data_type(TEXT, title="Renamed"),
        property_type(NAME, one_of=[ref(TEXT)]),
        entity_type(PERSON, properties=prop(NAME)),
    )

    change_set = diff_graphs(local, remote)

    assert change_set.is_empty
    assert [change.kind for change in change_set] == [ChangeKind.UNCHANGED] * 3
    assert change_set.summary()[ChangeKind.UNCHANGED] == 3


def test_local_only_identifier_creates_every_version() -> None:
    local = _graph(data_type(TEXT, 1), data_type(TEXT, 2, primitive="number"))

    change_set = diff_graphs(local, TypeGraph())

    assert [(change.kind, change.publish_version) for change in change_set] == [
        (ChangeKind.CREATE, 1),
        (ChangeKind.CREATE, 2),
    ]
    assert not change_set.is_empty


def test_changed_type_publishes_next_remote_version_with_deltas() -> None:
    local = _graph(data_type(TEXT, primitive="number"))
    remote = _graph(data_type(TEXT, 1), data_type(TEXT, 2))

    (change,) = diff_graphs(local, remote)

    assert change.kind is ChangeKind.UPDATE
    assert change.publish_version == 3
    assert str(change.url) == f"{TEXT}v/3"
    assert change.deltas == (MembershipDelta(field="type", added=("number",), removed=("string",)),)


def test_range_reference_follows_updated_target() -> None:
    local = _graph(
        data_type(TEXT, primitive="number"),
        property_type(NAME, one_of=[TEXT_RANGE]),
        property_type(EMAIL, one_of=[ref(TEXT)]),
    )
    remote = _graph(
        data_type(TEXT),
        property_type(NAME, one_of=[ref(TEXT)]),
        property_type(EMAIL, one_of=[ref(TEXT)]),
    )

    change_set = diff_graphs(local, remote)

    kinds = {change.identifier: change.kind for change in change_set}
    assert kinds == {
        TEXT: ChangeKind.UPDATE,
        NAME: ChangeKind.UPDATE,
        EMAIL: ChangeKind.UNCHANGED,
    }
    name_change = next(change for change in change_set if change.identifier == NAME)
    payload = change_set.payload_for(name_change)
    assert isinstance(payload, PropertyType)
    assert payload.version == 2
    assert payload.one_of == frozenset({DataTypeValue(ref=TypeRef.to(TEXT, 2))})


def test_remote_only_types_are_removed_within_managed_prefixes() -> None:
    remote = _graph(data_type(TEXT), data_type(OTHER_TEXT))

    change_set = diff_graphs(TypeGraph(), remote, managed_prefixes=[ROOT])

    (change,) = change_set
    assert change.identifier == TEXT
    assert change.kind is ChangeKind.REMOVE
    assert change.publish_version == 1
    assert change.local is None


def test_archived_remote_only_type_is_unchanged() -> None:
    (text,) = nodes(data_type(TEXT))
    remote = TypeGraph.from_nodes([text.as_archived()])

    (change,) = diff_graphs(TypeGraph(), remote)

    assert change.kind is ChangeKind.UNCHANGED


def test_archived_remote_is_republished_when_declared_again() -> None:
    (text,) = nodes(data_type(TEXT))
    remote = TypeGraph.from_nodes([text.as_archived()])

    (change,) = diff_graphs(TypeGraph.from_nodes([text]), remote)

    assert change.kind is ChangeKind.UPDATE
    assert change.publish_version == 2
    assert MembershipDelta(field="archived", removed=("archived",)) in change.deltas


def test_skipped_identifiers_are_left_out_on_both_sides() -> None:
    local = _graph(data_type(TEXT, primitive="number"), property_type(NAME, one_of=[ref(TEXT)]))
    remote = _graph(data_type(TEXT))

    change_set = diff_graphs(local, remote, skip=[TEXT])

    assert [(change.identifier, change.kind) for change in change_set] == [
        (NAME, ChangeKind.CREATE)
    ]


def test_pinner_falls_back_to_remote_for_unknown_local_targets() -> None:
    remote = _graph(data_type(TEXT, 1), data_type(TEXT, 2))
    pinner = ReferencePinner(local=TypeGraph(), remote=remote)

    assert pinner.pin_local(TypeRef.between(TEXT, 1)) == TypeRef.to(TEXT, 2)
    assert pinner.pin_remote(TypeRef.between(NAME, 1)) == TypeRef.between(NAME, 1)


def test_unpublished_local_versions_are_updated_under_their_own_numbers() -> None:
    local = _graph(
        data_type(TEXT, 1),
        data_type(TEXT, 2, primitive="number"),
        data_type(TEXT, 3, primitive="boolean"),
        property_type(NAME, one_of=[ref(TEXT, 2)]),
        property_type(EMAIL, one_of=[TEXT_RANGE]),
    )
    remote = _graph(data_type(TEXT, 1))

    change_set = diff_graphs(local, remote)

    updates = change_set.changes_of(ChangeKind.UPDATE)
    assert [(change.identifier, change.publish_version) for change in updates] == [
        (TEXT, 2),
        (TEXT, 3),
    ]
    assert [str(change_set.payload_for(change).content()) for change in updates] == [
        "number",
        "boolean",
    ]
    name_change = next(change for change in change_set if change.identifier == NAME)
    name_payload = change_set.payload_for(name_change)
    assert isinstance(name_payload, PropertyType)
    assert name_payload.one_of == frozenset({DataTypeValue(ref=TypeRef.to(TEXT, 2))})
    email_change = next(change for change in change_set if change.identifier == EMAIL)
    email_payload = change_set.payload_for(email_change)
    assert isinstance(email_payload, PropertyType)
    assert email_payload.one_of == frozenset({DataTypeValue(ref=TypeRef.to(TEXT, 3))})


def test_local_history_ahead_of_remote_is_never_unchanged() -> None:
    local = _graph(data_type(TEXT, 1), data_type(TEXT, 2))
    remote = _graph(data_type(TEXT, 1))

    (change,) = diff_graphs(local, remote)

    assert change.kind is ChangeKind.UPDATE
    assert change.publish_version == 2
    assert change.deltas == ()


def test_references_to_skipped_identifiers_pin_against_remote() -> None:
    local = _graph(
        data_type(TEXT, 1),
        data_type(TEXT, 2, primitive="number"),
        property_type(NAME, one_of=[TEXT_RANGE]),
    )
    remote = _graph(data_type(TEXT, 1))

    change_set = diff_graphs(local, remote, skip=[TEXT])

    (change,) = change_set
    assert change.kind is ChangeKind.CREATE
    payload = change_set.payload_for(change)
    assert isinstance(payload, PropertyType)
    assert payload.one_of == frozenset({DataTypeValue(ref=TypeRef.to(TEXT, 1))})
