from __future__ import annotations

import pytest

from blok.domain.model import TypeRef, VersionedUrl
from blok.domain.reconciliation import TypeGraph
from tests.support.ontology import (
    NAME,
    PERSON,
    TEXT,
    data_type,
    entity_type,
    nodes,
    prop,
    property_type,
    ref,
)


def _graph() -> TypeGraph:
    return TypeGraph.from_nodes(
        nodes(
            data_type(TEXT, 2),
            data_type(TEXT, 1),
            property_type(NAME, one_of=[{"$ref": {"identifier": TEXT, "minVersion": 1}}]),
            entity_type(PERSON, properties=prop(NAME)),
        )
    )


def test_versions_are_sorted_and_latest_is_highest() -> None:
    graph = _graph()

    assert graph.versions(TEXT) == (1, 2)
    latest = graph.latest(TEXT)
    assert latest is not None
    assert latest.version == 2
    assert [node.version for node in graph.history(TEXT)] == [1, 2]
    assert graph.latest("https://types.example.com/unknown/") is None


def test_resolve_picks_highest_satisfying_version() -> None:
    graph = _graph()

    resolved = graph.resolve(TypeRef.between(TEXT, 1))
    pinned = graph.resolve(TypeRef.to(TEXT, 1))

    assert resolved is not None
    assert resolved.version == 2
    assert pinned is not None
    assert pinned.version == 1
    assert graph.resolve(TypeRef.between(TEXT, 3)) is None


def test_dependencies_and_referrers_follow_resolution() -> None:
    graph = _graph()
    name_url = VersionedUrl.of(NAME, 1)

    assert graph.dependencies(graph.node(name_url)) == (VersionedUrl.of(TEXT, 2),)
    assert graph.referenced_by(VersionedUrl.of(TEXT, 2)) == (name_url,)
    assert graph.referenced_by(VersionedUrl.of(TEXT, 1)) == ()
    assert graph.referenced_by(name_url) == (VersionedUrl.of(PERSON, 1),)


def test_add_is_idempotent_but_rejects_conflicts() -> None:
    graph = _graph()
    (text,) = nodes(data_type(TEXT, 1))
    (number_text,) = nodes(data_type(TEXT, 1, primitive="number"))

    graph.add(text)
    assert len(graph) == 4

    with pytest.raises(ValueError, match="Conflicting"):
        graph.add(number_text)


def test_restricted_to_and_without_filter_identifiers() -> None:
    graph = _graph()

    assert graph.restricted_to([f"{TEXT}"]).identifiers() == (TEXT,)
    assert set(graph.without([PERSON]).identifiers()) == {NAME, TEXT}
    assert VersionedUrl.of(TEXT, 1) in graph
    assert graph.get(VersionedUrl.of(PERSON, 2)) is None

    with pytest.raises(KeyError, match="No type"):
        graph.node(VersionedUrl.of(PERSON, 2))


def test_nodes_iterate_in_url_order() -> None:
    graph = TypeGraph.from_nodes(nodes(property_type(NAME, one_of=[ref(TEXT)]), data_type(TEXT)))

    assert [str(node.url) for node in graph] == sorted(str(node.url) for node in graph)
