from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from .graph_store import GraphStore
from .logging_utils import log_warning
from .models import IndoorEdge, IndoorNode
from .routing_errors import node_not_found


@dataclass(frozen=True)
class GraphEdge:
    """One traversable direction of a stored edge record."""

    edge_id: str
    from_node: str
    to_node: str
    distance: float
    weight: float
    accessible: bool
    emergency_route: bool
    restricted: bool
    reverse: bool = False

    @property
    def cost(self) -> float:
        return self.distance * self.weight


@dataclass(frozen=True)
class RouteGraph:
    map_id: str
    nodes: Mapping[str, IndoorNode]
    adjacency: Mapping[str, tuple[GraphEdge, ...]]
    edge_count: int

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def node(self, node_id: str) -> IndoorNode:
        found = self.nodes.get(node_id)
        if found is None:
            raise node_not_found(node_id, map_id=self.map_id)
        return found

    def outgoing_edges(self, node_id: str) -> tuple[GraphEdge, ...]:
        if node_id not in self.nodes:
            raise node_not_found(node_id, map_id=self.map_id)
        return self.adjacency.get(node_id, ())

    def edge_between(self, from_node: str, to_node: str) -> GraphEdge | None:
        best: GraphEdge | None = None
        for edge in self.adjacency.get(from_node, ()):
            if edge.to_node != to_node or edge.restricted:
                continue
            if best is None or (edge.cost, edge.edge_id) < (best.cost, best.edge_id):
                best = edge
        return best


def _directions(edge: IndoorEdge) -> Iterable[GraphEdge]:
    yield GraphEdge(
        edge_id=edge.id,
        from_node=edge.from_node_id,
        to_node=edge.to_node_id,
        distance=float(edge.distance),
        weight=float(edge.weight),
        accessible=edge.is_accessible,
        emergency_route=edge.is_emergency_route,
        restricted=edge.is_restricted,
    )
    if edge.is_bidirectional:
        yield GraphEdge(
            edge_id=edge.id,
            from_node=edge.to_node_id,
            to_node=edge.from_node_id,
            distance=float(edge.distance),
            weight=float(edge.weight),
            accessible=edge.is_accessible,
            emergency_route=edge.is_emergency_route,
            restricted=edge.is_restricted,
            reverse=True,
        )


def assemble_route_graph(map_id: str, nodes: Iterable[IndoorNode], edges: Iterable[IndoorEdge]) -> RouteGraph:
    node_index = {n.id: n for n in nodes if n.map_id == map_id}
    adjacency_mut: dict[str, list[GraphEdge]] = {}
    kept = 0
    # Sorted by id so adjacency order never depends on store iteration order.
    for edge in sorted(edges, key=lambda e: e.id):
        if edge.from_node_id not in node_index or edge.to_node_id not in node_index:
            log_warning(
                "route_graph_edge_skipped",
                map_id=map_id,
                edge_id=edge.id,
                from_node_id=edge.from_node_id,
                to_node_id=edge.to_node_id,
                reason_code="data_inconsistency",
            )
            continue
        kept += 1
        for directed in _directions(edge):
            adjacency_mut.setdefault(directed.from_node, []).append(directed)
    return RouteGraph(
        map_id=map_id,
        nodes=MappingProxyType(node_index),
        adjacency=MappingProxyType({node_id: tuple(out) for node_id, out in adjacency_mut.items()}),
        edge_count=kept,
    )


def build_route_graph(store: GraphStore, map_id: str) -> RouteGraph:
    # One batch read per request; the snapshot is never refreshed mid-search.
    return assemble_route_graph(map_id, store.get_map_nodes(map_id), store.get_map_edges(map_id))


def connected_components(graph: RouteGraph) -> list[tuple[str, ...]]:
    """Weakly connected components, largest first."""
    undirected: dict[str, set[str]] = {node_id: set() for node_id in graph.nodes}
    for src, out in graph.adjacency.items():
        for edge in out:
            undirected[src].add(edge.to_node)
            undirected[edge.to_node].add(src)
    seen: set[str] = set()
    components: list[tuple[str, ...]] = []
    for node_id in sorted(graph.nodes):
        if node_id in seen:
            continue
        q: deque[str] = deque([node_id])
        members: list[str] = []
        while q:
            current = q.popleft()
            if current in seen:
                continue
            seen.add(current)
            members.append(current)
            for nxt in undirected.get(current, ()):
                if nxt not in seen:
                    q.append(nxt)
        components.append(tuple(sorted(members)))
    components.sort(key=lambda c: (-len(c), c[0]))
    return components
