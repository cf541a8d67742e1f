from __future__ import annotations

import math
from collections.abc import Sequence

from .logging_utils import log_warning
from .models import DifficultyLevel, IndoorNode
from .route_graph import GraphEdge, RouteGraph
from .settings import settings


def _euclidean(a: IndoorNode, b: IndoorNode) -> float:
    return math.hypot(b.local_x - a.local_x, b.local_y - a.local_y)


def _segment_distances(
    path_nodes: Sequence[IndoorNode],
    path_edges: Sequence[GraphEdge] | None = None,
    graph: RouteGraph | None = None,
) -> list[float]:
    if path_edges is not None and len(path_edges) != max(0, len(path_nodes) - 1):
        raise ValueError("path_edges must hold exactly one edge per consecutive node pair")
    out: list[float] = []
    for idx in range(1, len(path_nodes)):
        prev, cur = path_nodes[idx - 1], path_nodes[idx]
        edge: GraphEdge | None = None
        if path_edges is not None:
            edge = path_edges[idx - 1]
        elif graph is not None:
            edge = graph.edge_between(prev.id, cur.id)
        if edge is not None:
            out.append(edge.distance)
            continue
        # Missing record: keep going on straight-line distance and flag it.
        log_warning(
            "route_data_inconsistency",
            reason_code="data_inconsistency",
            from_node_id=prev.id,
            to_node_id=cur.id,
            map_id=cur.map_id,
        )
        out.append(_euclidean(prev, cur))
    return out


def total_distance(
    path_nodes: Sequence[IndoorNode],
    path_edges: Sequence[GraphEdge] | None = None,
    graph: RouteGraph | None = None,
) -> float:
    return float(sum(_segment_distances(path_nodes, path_edges, graph)))


def cumulative_distances(
    path_nodes: Sequence[IndoorNode],
    path_edges: Sequence[GraphEdge] | None = None,
    graph: RouteGraph | None = None,
) -> list[float]:
    """Running distance from the start, one entry per node (first is 0)."""
    if not path_nodes:
        return []
    running = 0.0
    out = [0.0]
    for d in _segment_distances(path_nodes, path_edges, graph):
        running += d
        out.append(running)
    return out


def estimated_time(total: float, average_speed: float | None = None) -> int:
    speed = settings.average_walking_speed_mps if average_speed is None else float(average_speed)
    if speed <= 0.0:
        raise ValueError("average speed must be positive")
    # Half-up rounding so 12.5 s reads as 13 s.
    return int(math.floor(total / speed + 0.5))


def difficulty(path_nodes: Sequence[IndoorNode]) -> DifficultyLevel:
    if len(path_nodes) < 2:
        # Nothing is traversed when already at the destination.
        return DifficultyLevel.EASY
    has_stairs = any(n.is_stairs for n in path_nodes)
    has_elevator = any(n.is_elevator for n in path_nodes)
    if has_stairs and has_elevator:
        return DifficultyLevel.MODERATE
    if has_stairs:
        return DifficultyLevel.DIFFICULT
    return DifficultyLevel.EASY


def is_accessible(path_nodes: Sequence[IndoorNode]) -> bool:
    return all(n.is_accessible for n in path_nodes)
