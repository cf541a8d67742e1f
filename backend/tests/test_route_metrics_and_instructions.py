from __future__ import annotations

import logging

import pytest

from indoor_router import route_metrics
from indoor_router.instructions import build_instructions, build_waypoints
from indoor_router.models import ActionType, DifficultyLevel, IndoorEdge, IndoorNode
from indoor_router.route_graph import assemble_route_graph
from indoor_router.settings import settings


def _node(node_id: str, x: float, y: float, **kw: object) -> IndoorNode:
    return IndoorNode(id=node_id, map_id="m", node_id=node_id.upper(), local_x=x, local_y=y, **kw)


def _path() -> list[IndoorNode]:
    return [
        _node("start", 0.0, 0.0, name="Entrance", floor_level=1),
        _node("hall", 3.0, 4.0),
        _node("stairs", 3.0, 10.0, name="Stairwell", is_stairs=True),
        _node("lift", 8.0, 10.0, is_elevator=True),
        _node("exit", 8.0, 20.0, name="East Exit", is_emergency_exit=True),
    ]


def _graph():
    nodes = _path()
    edges = [
        IndoorEdge(id="e1", map_id="m", edge_id="E1", from_node_id="start", to_node_id="hall", distance=7.0),
        IndoorEdge(id="e2", map_id="m", edge_id="E2", from_node_id="hall", to_node_id="stairs", distance=6.0),
        IndoorEdge(id="e3", map_id="m", edge_id="E3", from_node_id="stairs", to_node_id="lift", distance=5.0),
        IndoorEdge(id="e4", map_id="m", edge_id="E4", from_node_id="lift", to_node_id="exit", distance=10.0),
    ]
    return assemble_route_graph("m", nodes, edges)


def test_total_distance_prefers_recorded_edges_over_geometry() -> None:
    graph = _graph()
    nodes = _path()
    edges = [graph.edge_between(a.id, b.id) for a, b in zip(nodes, nodes[1:])]

    assert route_metrics.total_distance(nodes, edges) == pytest.approx(28.0)
    assert route_metrics.total_distance(nodes, graph=graph) == pytest.approx(28.0)
    assert route_metrics.cumulative_distances(nodes, edges) == pytest.approx([0.0, 7.0, 13.0, 18.0, 28.0])


def test_missing_edge_record_falls_back_to_euclidean(caplog: pytest.LogCaptureFixture) -> None:
    nodes = [_node("p", 0.0, 0.0), _node("q", 3.0, 4.0)]
    graph = assemble_route_graph("m", nodes, [])
    logger = logging.getLogger("indoor_router")
    logger.addHandler(caplog.handler)
    try:
        distance = route_metrics.total_distance(nodes, graph=graph)
    finally:
        logger.removeHandler(caplog.handler)

    assert distance == pytest.approx(5.0)
    assert any(r.getMessage() == "route_data_inconsistency" for r in caplog.records)


def test_misaligned_edges_are_rejected() -> None:
    with pytest.raises(ValueError):
        route_metrics.total_distance(_path(), [])


def test_estimated_time_rounds_and_uses_configured_speed(monkeypatch: pytest.MonkeyPatch) -> None:
    assert route_metrics.estimated_time(25.0, 1.4) == 18
    assert route_metrics.estimated_time(0.0, 1.4) == 0
    monkeypatch.setattr(settings, "average_walking_speed_mps", 2.0)
    assert route_metrics.estimated_time(25.0) == 13
    with pytest.raises(ValueError):
        route_metrics.estimated_time(10.0, 0.0)


def test_difficulty_levels() -> None:
    flat = [_node("a", 0, 0), _node("b", 1, 0)]
    stairs = [_node("a", 0, 0), _node("s", 1, 0, is_stairs=True)]
    both = [*stairs, _node("l", 2, 0, is_elevator=True)]
    lift_only = [_node("a", 0, 0), _node("l", 2, 0, is_elevator=True)]

    assert route_metrics.difficulty(flat) == DifficultyLevel.EASY
    assert route_metrics.difficulty(stairs) == DifficultyLevel.DIFFICULT
    assert route_metrics.difficulty(both) == DifficultyLevel.MODERATE
    assert route_metrics.difficulty(lift_only) == DifficultyLevel.EASY
    assert route_metrics.difficulty([_node("s", 0, 0, is_stairs=True)]) == DifficultyLevel.EASY


def test_is_accessible_requires_every_node() -> None:
    assert route_metrics.is_accessible(_path())
    assert not route_metrics.is_accessible([*_path(), _node("x", 0, 0, is_accessible=False)])


def test_waypoints_use_empty_name_and_ground_floor_defaults() -> None:
    waypoints = build_waypoints(_path())

    assert waypoints[0].model_dump(by_alias=True) == {
        "nodeId": "START",
        "name": "Entrance",
        "localX": 0.0,
        "localY": 0.0,
        "floorLevel": 1,
    }
    assert waypoints[1].name == ""
    assert waypoints[1].floor_level == 0


def test_waypoints_and_steps_carry_business_node_id() -> None:
    node = IndoorNode(id="42", map_id="m", node_id="G-101", name="Medical Bay")
    other = IndoorNode(id="43", map_id="m", node_id="G-102")

    assert build_waypoints([node])[0].model_dump(by_alias=True)["nodeId"] == "G-101"
    steps = build_instructions([node, other])
    assert [s.node_id for s in steps] == ["G-101", "G-102"]
    assert steps[1].model_dump(by_alias=True)["nodeId"] == "G-102"


def test_instruction_actions_by_position() -> None:
    path = _path()
    steps = build_instructions(path, route_metrics.cumulative_distances(path, graph=_graph()), 1.4)

    assert len(steps) == len(path)
    assert [s.step for s in steps] == [1, 2, 3, 4, 5]
    assert [s.action_type for s in steps] == [
        ActionType.START,
        ActionType.CONTINUE_STRAIGHT,
        ActionType.GO_UP_STAIRS,
        ActionType.TAKE_ELEVATOR,
        ActionType.ARRIVE,
    ]
    assert [s.instruction for s in steps] == [
        "Start at Entrance",
        "Continue to HALL",
        "Go up stairs",
        "Take elevator",
        "Arrive at East Exit",
    ]
    assert [s.is_critical for s in steps] == [False, False, True, True, True]
    assert steps[-1].distance_from_start == pytest.approx(28.0)
    assert steps[-1].estimated_time_from_start == 20


def test_start_and_end_override_node_kind() -> None:
    path = [_node("s", 0, 0, is_stairs=True), _node("l", 1, 0, is_elevator=True)]
    steps = build_instructions(path)

    assert [s.action_type for s in steps] == [ActionType.START, ActionType.ARRIVE]
    assert steps[0].instruction == "Start at S"


def test_single_node_path_yields_one_arrive_step() -> None:
    steps = build_instructions([_node("here", 1.0, 2.0, name="Shelter Desk")])

    assert len(steps) == 1
    assert steps[0].action_type == ActionType.ARRIVE
    assert steps[0].instruction == "You are at Shelter Desk"
    assert steps[0].model_dump(by_alias=True)["actionType"] == ActionType.ARRIVE


def test_empty_path_is_rejected() -> None:
    with pytest.raises(ValueError):
        build_instructions([])


@pytest.mark.parametrize("length", [1, 2, 3, 7, 20])
def test_instruction_count_matches_path_length(length: int) -> None:
    path = [_node(f"n{i}", float(i), 0.0, is_stairs=(i % 3 == 1)) for i in range(length)]
    assert len(build_instructions(path)) == length
    assert len(build_waypoints(path)) == length
