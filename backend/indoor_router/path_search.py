from __future__ import annotations

import heapq
import time
from collections.abc import Callable
from dataclasses import dataclass

from .models import RouteType
from .route_graph import GraphEdge, RouteGraph
from .routing_errors import (
    InvalidArgumentError,
    RouteNotFoundError,
    RouteSearchTimeoutError,
    node_not_found,
)

EdgePredicate = Callable[[GraphEdge], bool]


@dataclass(frozen=True)
class PathResult:
    nodes: tuple[str, ...]
    edges: tuple[GraphEdge, ...]
    cost: float
    explored_states: int


def _shortest_admissible(edge: GraphEdge) -> bool:
    return not edge.restricted


def _accessible_admissible(edge: GraphEdge) -> bool:
    return not edge.restricted and edge.accessible


def _evacuation_admissible(edge: GraphEdge) -> bool:
    return not edge.restricted and edge.emergency_route


_PREDICATES: dict[RouteType, EdgePredicate] = {
    RouteType.SHORTEST: _shortest_admissible,
    RouteType.ACCESSIBLE_PATH: _accessible_admissible,
    RouteType.EMERGENCY_EVACUATION: _evacuation_admissible,
}


def admissibility_predicate(route_type: RouteType | str) -> EdgePredicate:
    try:
        return _PREDICATES[RouteType(route_type)]
    except (KeyError, ValueError) as exc:
        raise InvalidArgumentError(
            reason_code="invalid_route_type",
            message=f"unsupported route type: {route_type}",
            details={"route_type": str(route_type)},
        ) from exc


def _rebuild(
    predecessor: dict[str, GraphEdge],
    start: str,
    goal: str,
) -> tuple[tuple[str, ...], tuple[GraphEdge, ...]]:
    edges: list[GraphEdge] = []
    node = goal
    while node != start:
        edge = predecessor[node]
        edges.append(edge)
        node = edge.from_node
    edges.reverse()
    return (start, *(e.to_node for e in edges)), tuple(edges)


def find_shortest_path(
    graph: RouteGraph,
    from_node_id: str,
    to_node_id: str,
    route_type: RouteType | str,
    *,
    deadline_monotonic_s: float | None = None,
    max_state_budget: int | None = None,
) -> PathResult:
    """Minimum-cost admissible path where an edge costs ``distance * weight``.

    Heap entries are ``(cost, seq, node)``; ``seq`` grows with every push so
    equal-cost ties always expand in the same order for the same graph.
    """
    admissible = admissibility_predicate(route_type)
    for node_id in (from_node_id, to_node_id):
        if not graph.has_node(node_id):
            raise node_not_found(node_id, map_id=graph.map_id)

    if from_node_id == to_node_id:
        return PathResult(nodes=(from_node_id,), edges=(), cost=0.0, explored_states=0)

    dist: dict[str, float] = {from_node_id: 0.0}
    predecessor: dict[str, GraphEdge] = {}
    settled: set[str] = set()
    seq = 0
    heap: list[tuple[float, int, str]] = [(0.0, seq, from_node_id)]
    explored = 0

    while heap:
        if deadline_monotonic_s is not None and time.monotonic() >= float(deadline_monotonic_s):
            raise RouteSearchTimeoutError(
                reason_code="route_search_timeout",
                message="route search deadline exceeded",
                details={"explored_states": explored, "map_id": graph.map_id},
            )
        if max_state_budget is not None and max_state_budget > 0 and explored >= max_state_budget:
            raise RouteSearchTimeoutError(
                reason_code="route_search_budget_exceeded",
                message="route search state budget exceeded",
                details={"explored_states": explored, "max_state_budget": max_state_budget},
            )
        cost, _, node = heapq.heappop(heap)
        if node in settled:
            continue
        if cost > dist.get(node, float("inf")):
            continue
        settled.add(node)
        explored += 1
        if node == to_node_id:
            nodes, edges = _rebuild(predecessor, from_node_id, to_node_id)
            return PathResult(nodes=nodes, edges=edges, cost=cost, explored_states=explored)
        for edge in graph.outgoing_edges(node):
            if edge.to_node in settled or not admissible(edge):
                continue
            new_cost = cost + edge.cost
            if new_cost < dist.get(edge.to_node, float("inf")):
                dist[edge.to_node] = new_cost
                predecessor[edge.to_node] = edge
                seq += 1
                heapq.heappush(heap, (new_cost, seq, edge.to_node))

    raise RouteNotFoundError(
        reason_code="route_not_found",
        message=f"no {RouteType(route_type).value} route from {from_node_id} to {to_node_id}",
        details={
            "map_id": graph.map_id,
            "from_node_id": from_node_id,
            "to_node_id": to_node_id,
            "route_type": RouteType(route_type).value,
            "explored_states": explored,
        },
    )
