from __future__ import annotations

import json
from pathlib import Path

import scripts.validate_indoor_graph as validate_indoor_graph

SAMPLE_ASSET = Path(__file__).resolve().parents[1] / "data" / "sample_indoor_graph.json"


def _write(path: Path, payload: dict[str, object]) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_sample_asset_is_valid_and_connected(tmp_path: Path) -> None:
    report = validate_indoor_graph.validate(graph_path=SAMPLE_ASSET)

    assert report["valid"] is True
    assert report["errors"] == []
    assert report["components_by_map"] == {"map-shelter-g": 1}

    out_file = tmp_path / "reports" / "graph_report.json"
    code = validate_indoor_graph.main(["--graph", str(SAMPLE_ASSET), "--out-file", str(out_file)])
    assert code == 0
    assert json.loads(out_file.read_text(encoding="utf-8"))["nodes"] == 8


def test_structural_errors_are_reported(tmp_path: Path) -> None:
    asset = _write(
        tmp_path / "broken.json",
        {
            "maps": [{"id": "m1", "name": "One"}, {"id": "m2", "name": "Two"}],
            "nodes": [
                {"id": "a", "map_id": "m1", "node_id": "A"},
                {"id": "a", "map_id": "m1", "node_id": "A2"},
                {"id": "z", "map_id": "m2", "node_id": "Z"},
                {"id": "q", "map_id": "m9", "node_id": "Q"},
            ],
            "edges": [
                {"id": "dangling", "map_id": "m1", "edge_id": "D", "from_node_id": "a", "to_node_id": "ghost", "distance": 1},
                {"id": "cross", "map_id": "m1", "edge_id": "C", "from_node_id": "a", "to_node_id": "z", "distance": 1},
                {"id": "neg", "map_id": "m1", "edge_id": "N", "from_node_id": "a", "to_node_id": "z", "distance": -2, "weight": "x"},
            ],
        },
    )
    report = validate_indoor_graph.validate(graph_path=asset)
    errors = "\n".join(report["errors"])

    assert report["valid"] is False
    assert "duplicate node id: a" in errors
    assert "node q references unknown map m9" in errors
    assert "edge dangling has dangling endpoint ghost" in errors
    assert "edge cross crosses maps" in errors
    assert "edge neg has negative distance -2" in errors
    assert "edge neg has non-numeric weight" in errors
    assert validate_indoor_graph.main(["--graph", str(asset)]) == 1


def test_fragmented_map_is_a_warning(tmp_path: Path) -> None:
    asset = _write(
        tmp_path / "fragmented.json",
        {
            "maps": [{"id": "m1", "name": "One"}],
            "nodes": [{"id": n, "map_id": "m1", "node_id": n.upper()} for n in ("a", "b", "c")],
            "edges": [{"id": "ab", "map_id": "m1", "edge_id": "AB", "from_node_id": "a", "to_node_id": "b", "distance": 3}],
        },
    )
    report = validate_indoor_graph.validate(graph_path=asset)

    assert report["valid"] is True
    assert report["components_by_map"] == {"m1": 2}
    assert report["warnings"] == ["map m1 is fragmented into 2 components (largest 2 of 3 nodes)"]
