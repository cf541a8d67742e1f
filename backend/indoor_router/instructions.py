from __future__ import annotations

from collections.abc import Sequence

from .models import ActionType, IndoorNode, RouteStep, Waypoint
from .route_metrics import estimated_time


def build_waypoints(path_nodes: Sequence[IndoorNode]) -> list[Waypoint]:
    return [
        Waypoint(
            node_id=n.node_id,
            name=n.name or "",
            local_x=n.local_x,
            local_y=n.local_y,
            floor_level=n.floor_level if n.floor_level is not None else 0,
        )
        for n in path_nodes
    ]


def _classify(node: IndoorNode, idx: int, last: int) -> tuple[ActionType, str]:
    if last == 0:
        return ActionType.ARRIVE, f"You are at {node.label}"
    if idx == 0:
        return ActionType.START, f"Start at {node.label}"
    if idx == last:
        return ActionType.ARRIVE, f"Arrive at {node.label}"
    if node.is_stairs:
        return ActionType.GO_UP_STAIRS, "Go up stairs"
    if node.is_elevator:
        return ActionType.TAKE_ELEVATOR, "Take elevator"
    return ActionType.CONTINUE_STRAIGHT, f"Continue to {node.label}"


def build_instructions(
    path_nodes: Sequence[IndoorNode],
    cumulative: Sequence[float] | None = None,
    average_speed: float | None = None,
) -> list[RouteStep]:
    """One step per path node, in path order."""
    if not path_nodes:
        raise ValueError("cannot build instructions for an empty path")
    if cumulative is not None and len(cumulative) != len(path_nodes):
        raise ValueError("cumulative distances must align with path nodes")

    last = len(path_nodes) - 1
    steps: list[RouteStep] = []
    for idx, node in enumerate(path_nodes):
        action, text = _classify(node, idx, last)
        travelled = float(cumulative[idx]) if cumulative is not None else 0.0
        steps.append(
            RouteStep(
                step=idx + 1,
                instruction=text,
                action_type=action,
                node_id=node.node_id,
                local_x=node.local_x,
                local_y=node.local_y,
                floor_level=node.floor_level if node.floor_level is not None else 0,
                distance_from_start=travelled,
                estimated_time_from_start=estimated_time(travelled, average_speed),
                is_critical=node.is_stairs or node.is_elevator or node.is_emergency_exit,
            )
        )
    return steps
