from __future__ import annotations

import time
import uuid
from datetime import UTC, datetime

from .graph_store import GraphStore
from .instructions import build_instructions, build_waypoints
from .logging_utils import log_event
from .models import GeoJSONLineString, IndoorRoute, RouteType
from .path_search import find_shortest_path
from .position_store import PositionStore
from .route_graph import build_route_graph
from .route_metrics import cumulative_distances, difficulty, estimated_time, is_accessible
from .route_store import RouteStore
from .routing_errors import (
    InvalidArgumentError,
    NotFoundError,
    RouteNotFoundError,
    RouteSearchTimeoutError,
)
from .settings import settings


def _coerce_route_type(route_type: RouteType | str) -> RouteType:
    try:
        return RouteType(route_type)
    except ValueError as exc:
        raise InvalidArgumentError(
            reason_code="invalid_route_type",
            message=f"unsupported route type: {route_type}",
            details={"route_type": str(route_type)},
        ) from exc


def _round_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 2)


def compute_route(
    store: GraphStore,
    route_store: RouteStore,
    map_id: str,
    from_node_id: str,
    to_node_id: str,
    route_type: RouteType | str,
    requested_by: str,
    *,
    timeout_s: float | None = None,
    max_state_budget: int | None = None,
) -> IndoorRoute:
    t0 = time.perf_counter()
    kind = _coerce_route_type(route_type)
    if not str(requested_by or "").strip():
        raise InvalidArgumentError(
            reason_code="invalid_argument",
            message="requested_by must be a non-empty identity",
        )

    store.get_map(map_id)
    origin = store.get_node(from_node_id)
    destination = store.get_node(to_node_id)
    if origin.map_id != destination.map_id or origin.map_id != map_id:
        raise InvalidArgumentError(
            reason_code="cross_map_request",
            message="route endpoints must both lie on the requested map",
            details={
                "map_id": map_id,
                "from_map_id": origin.map_id,
                "to_map_id": destination.map_id,
            },
        )

    graph = build_route_graph(store, map_id)
    load_ms = _round_ms(t0)

    timeout = settings.route_search_timeout_s if timeout_s is None else float(timeout_s)
    budget = settings.route_search_max_state_budget if max_state_budget is None else int(max_state_budget)
    search_start = time.perf_counter()
    try:
        result = find_shortest_path(
            graph,
            origin.id,
            destination.id,
            kind,
            deadline_monotonic_s=time.monotonic() + timeout,
            max_state_budget=budget,
        )
    except RouteNotFoundError as exc:
        log_event(
            "route_not_found",
            map_id=map_id,
            from_node_id=origin.id,
            to_node_id=destination.id,
            route_type=kind.value,
            explored_states=(exc.details or {}).get("explored_states", 0),
        )
        raise
    except RouteSearchTimeoutError as exc:
        log_event(
            "route_search_timeout",
            map_id=map_id,
            from_node_id=origin.id,
            to_node_id=destination.id,
            route_type=kind.value,
            reason_code=exc.reason_code,
            timeout_s=timeout,
            max_state_budget=budget,
        )
        raise
    search_ms = _round_ms(search_start)

    path_nodes = [graph.node(node_id) for node_id in result.nodes]
    cumulative = cumulative_distances(path_nodes, result.edges)
    distance = cumulative[-1]
    speed = settings.average_walking_speed_mps

    coordinates = [(n.longitude, n.latitude) for n in path_nodes]
    if len(coordinates) == 1:
        coordinates = coordinates * 2

    route = IndoorRoute(
        route_id=f"route_{uuid.uuid4().hex}",
        map_id=map_id,
        from_node_id=origin.id,
        to_node_id=destination.id,
        name=f"Route from {origin.label} to {destination.label}",
        description=f"{kind.value} route across {len(path_nodes)} nodes",
        path_node_ids=list(result.nodes),
        edge_ids=[e.edge_id for e in result.edges],
        path=GeoJSONLineString(type="LineString", coordinates=coordinates),
        route_type=kind,
        total_distance=distance,
        estimated_time=estimated_time(distance, speed),
        difficulty_level=difficulty(path_nodes),
        is_accessible=is_accessible(path_nodes),
        is_emergency_route=kind == RouteType.EMERGENCY_EVACUATION,
        is_restricted=False,
        waypoints=build_waypoints(path_nodes),
        instructions=build_instructions(path_nodes, cumulative, speed),
        created_by=str(requested_by).strip(),
        created_at=datetime.now(UTC),
    )
    route_store.save_route(route)

    log_event(
        "route_computed",
        route_id=route.route_id,
        map_id=map_id,
        route_type=kind.value,
        nodes=len(result.nodes),
        total_distance=round(distance, 3),
        explored_states=result.explored_states,
        graph_nodes=len(graph.nodes),
        graph_edges=graph.edge_count,
        load_ms=load_ms,
        search_ms=search_ms,
        duration_ms=_round_ms(t0),
    )
    return route


def route_from_entity(
    store: GraphStore,
    positions: PositionStore,
    route_store: RouteStore,
    map_id: str,
    entity_type: str,
    entity_id: str,
    to_node_id: str,
    route_type: RouteType | str,
    requested_by: str,
    *,
    radius_m: float | None = None,
    timeout_s: float | None = None,
    max_state_budget: int | None = None,
) -> IndoorRoute:
    """Route from an entity's latest reported position to a node."""
    position = positions.get_latest_position(entity_type, entity_id)
    if position is None:
        raise NotFoundError(
            reason_code="position_not_found",
            message=f"no position recorded for {entity_type} {entity_id}",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
    if position.map_id != map_id:
        raise InvalidArgumentError(
            reason_code="cross_map_request",
            message=f"{entity_type} {entity_id} was last seen on another map",
            details={"map_id": map_id, "position_map_id": position.map_id},
        )

    radius = settings.nearest_node_default_radius_m if radius_m is None else float(radius_m)
    start = store.find_nearest_node(map_id, position.longitude, position.latitude, radius)
    if start is None:
        raise NotFoundError(
            reason_code="nearest_node_not_found",
            message=f"no node within {radius:g} m of {entity_type} {entity_id}",
            details={"map_id": map_id, "radius_m": radius},
        )
    return compute_route(
        store,
        route_store,
        map_id,
        start.id,
        to_node_id,
        route_type,
        requested_by,
        timeout_s=timeout_s,
        max_state_budget=max_state_budget,
    )
