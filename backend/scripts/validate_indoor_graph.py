from __future__ import annotations

import argparse
import json
from collections import Counter
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from indoor_router.models import IndoorEdge, IndoorNode
from indoor_router.route_graph import assemble_route_graph, connected_components


def _load_asset(path: Path) -> dict[str, Any]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise RuntimeError("Indoor graph asset is not a JSON object.")
    return payload


def _records(payload: dict[str, Any], key: str) -> list[dict[str, Any]]:
    raw = payload.get(key, [])
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, dict)]


def _number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _duplicates(items: list[dict[str, Any]], key: str) -> list[str]:
    counts = Counter(str(item.get(key)) for item in items if item.get(key) is not None)
    return sorted(k for k, n in counts.items() if n > 1)


def validate(*, graph_path: Path) -> dict[str, Any]:
    payload = _load_asset(graph_path)
    maps = _records(payload, "maps")
    nodes = _records(payload, "nodes")
    edges = _records(payload, "edges")
    errors: list[str] = []
    warnings: list[str] = []

    for kind, items in (("map", maps), ("node", nodes), ("edge", edges)):
        for dup in _duplicates(items, "id"):
            errors.append(f"duplicate {kind} id: {dup}")

    map_ids = {str(m.get("id")) for m in maps if m.get("id") is not None}
    node_map = {str(n.get("id")): str(n.get("map_id")) for n in nodes if n.get("id") is not None}
    for node_id, map_id in sorted(node_map.items()):
        if map_id not in map_ids:
            errors.append(f"node {node_id} references unknown map {map_id}")

    for edge in edges:
        edge_id = str(edge.get("id"))
        src = str(edge.get("from_node_id"))
        dst = str(edge.get("to_node_id"))
        for endpoint in (src, dst):
            if endpoint not in node_map:
                errors.append(f"edge {edge_id} has dangling endpoint {endpoint}")
        if src == dst:
            errors.append(f"edge {edge_id} is a self-loop on {src}")
        edge_map = str(edge.get("map_id"))
        if src in node_map and dst in node_map and {node_map[src], node_map[dst]} != {edge_map}:
            errors.append(f"edge {edge_id} crosses maps ({node_map[src]} -> {node_map[dst]}, edge map {edge_map})")
        for field in ("distance", "weight"):
            value = _number(edge.get(field, 1.0 if field == "weight" else None))
            if value is None:
                errors.append(f"edge {edge_id} has non-numeric {field}")
            elif value < 0.0:
                errors.append(f"edge {edge_id} has negative {field} {value:g}")

    components_by_map: dict[str, int] = {}
    if not errors:
        try:
            typed_nodes = [IndoorNode.model_validate(n) for n in nodes]
            typed_edges = [IndoorEdge.model_validate(e) for e in edges]
        except ValidationError as exc:
            errors.append(f"record failed schema validation: {exc.error_count()} error(s)")
            typed_nodes, typed_edges = [], []
            map_ids = set()
        for map_id in sorted(map_ids):
            graph = assemble_route_graph(map_id, typed_nodes, typed_edges)
            components = connected_components(graph)
            components_by_map[map_id] = len(components)
            if len(components) > 1:
                warnings.append(
                    f"map {map_id} is fragmented into {len(components)} components "
                    f"(largest {len(components[0])} of {len(graph.nodes)} nodes)"
                )

    return {
        "graph_path": str(graph_path),
        "maps": len(maps),
        "nodes": len(nodes),
        "edges": len(edges),
        "components_by_map": components_by_map,
        "errors": errors,
        "warnings": warnings,
        "valid": not errors,
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate an indoor graph seed asset before loading it.")
    parser.add_argument(
        "--graph",
        type=Path,
        default=Path("backend/data/sample_indoor_graph.json"),
        help="Indoor graph asset JSON path.",
    )
    parser.add_argument("--out-file", type=Path, default=None, help="Optional path for the JSON report.")
    args = parser.parse_args(argv)
    report = validate(graph_path=args.graph)
    rendered = json.dumps(report, indent=2)
    if args.out_file is not None:
        args.out_file.parent.mkdir(parents=True, exist_ok=True)
        args.out_file.write_text(rendered, encoding="utf-8")
    print(rendered)
    return 0 if report["valid"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
