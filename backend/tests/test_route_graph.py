from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

from indoor_router.graph_store import InMemoryGraphStore
from indoor_router.models import IndoorEdge, IndoorMap, IndoorNode
from indoor_router.route_graph import build_route_graph, connected_components
from indoor_router.routing_errors import NotFoundError


def _store() -> InMemoryGraphStore:
    maps = [IndoorMap(id="m1", name="Ground"), IndoorMap(id="m2", name="First")]
    nodes = [
        IndoorNode(id="a", map_id="m1", node_id="A"),
        IndoorNode(id="b", map_id="m1", node_id="B"),
        IndoorNode(id="c", map_id="m1", node_id="C"),
        IndoorNode(id="lonely", map_id="m1", node_id="L"),
        IndoorNode(id="z", map_id="m2", node_id="Z"),
    ]
    edges = [
        IndoorEdge(id="ab", map_id="m1", edge_id="AB", from_node_id="a", to_node_id="b", distance=4.0),
        IndoorEdge(
            id="bc",
            map_id="m1",
            edge_id="BC",
            from_node_id="b",
            to_node_id="c",
            distance=2.0,
            is_bidirectional=False,
        ),
        IndoorEdge(id="ab-slow", map_id="m1", edge_id="AB2", from_node_id="a", to_node_id="b", distance=3.0, weight=4.0),
        # Endpoint on another floor; must not enter the m1 snapshot.
        IndoorEdge(id="cz", map_id="m1", edge_id="CZ", from_node_id="c", to_node_id="z", distance=1.0),
    ]
    return InMemoryGraphStore(maps=maps, nodes=nodes, edges=edges)


def test_bidirectional_edges_gain_reverse_direction() -> None:
    graph = build_route_graph(_store(), "m1")

    from_b = graph.outgoing_edges("b")
    assert {(e.edge_id, e.to_node, e.reverse) for e in from_b} == {
        ("ab", "a", True),
        ("ab-slow", "a", True),
        ("bc", "c", False),
    }
    assert all(e.to_node != "b" for e in graph.outgoing_edges("c"))


def test_edges_leaving_the_map_are_skipped() -> None:
    graph = build_route_graph(_store(), "m1")

    assert "z" not in graph.nodes
    assert graph.edge_count == 3
    assert all(e.edge_id != "cz" for out in graph.adjacency.values() for e in out)


def test_outgoing_edges_for_isolated_and_foreign_nodes() -> None:
    graph = build_route_graph(_store(), "m1")

    assert graph.outgoing_edges("lonely") == ()
    with pytest.raises(NotFoundError):
        graph.outgoing_edges("z")
    with pytest.raises(NotFoundError):
        graph.node("missing")


def test_edge_between_prefers_cheapest_record() -> None:
    graph = build_route_graph(_store(), "m1")

    best = graph.edge_between("a", "b")
    assert best is not None
    assert best.edge_id == "ab"
    assert best.cost == pytest.approx(4.0)
    assert graph.edge_between("c", "b") is None


def test_snapshot_does_not_see_later_store_edits() -> None:
    store = _store()
    graph = build_route_graph(store, "m1")
    store.add_edge(IndoorEdge(id="ac", map_id="m1", edge_id="AC", from_node_id="a", to_node_id="c", distance=1.0))

    assert graph.edge_between("a", "c") is None
    assert build_route_graph(store, "m1").edge_between("a", "c") is not None


def test_connected_components_largest_first() -> None:
    graph = build_route_graph(_store(), "m1")

    assert connected_components(graph) == [("a", "b", "c"), ("lonely",)]


def test_snapshot_mappings_are_read_only() -> None:
    graph = build_route_graph(_store(), "m1")

    with pytest.raises(TypeError):
        graph.nodes["x"] = IndoorNode(id="x", map_id="m1", node_id="X")  # type: ignore[index]
    with pytest.raises(TypeError):
        graph.adjacency["a"] = ()  # type: ignore[index]
    with pytest.raises(FrozenInstanceError):
        graph.edge_count = 0  # type: ignore[misc]
