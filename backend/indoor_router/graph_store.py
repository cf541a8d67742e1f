from __future__ import annotations

import json
import math
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from .logging_utils import log_event, log_warning
from .models import IndoorEdge, IndoorMap, IndoorMapType, IndoorNode, IndoorNodeType, IndoorPosition
from .routing_errors import map_not_found, node_not_found

EARTH_RADIUS_M = 6_371_000.0


def _haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)
    a = (
        math.sin(dphi / 2.0) ** 2
        + (math.cos(phi1) * math.cos(phi2) * (math.sin(dlambda / 2.0) ** 2))
    )
    return 2.0 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(max(0.0, a))))


class GraphStore(Protocol):
    """Read side of the map/node/edge persistence the routing core depends on."""

    def get_map(self, map_id: str) -> IndoorMap: ...

    def get_node(self, node_id: str) -> IndoorNode: ...

    def get_outgoing_edges(self, node_id: str) -> list[IndoorEdge]: ...

    def get_map_nodes(self, map_id: str) -> list[IndoorNode]: ...

    def get_map_edges(self, map_id: str) -> list[IndoorEdge]: ...

    def find_nearest_node(
        self,
        map_id: str,
        longitude: float,
        latitude: float,
        radius_m: float,
    ) -> IndoorNode | None: ...


def _parse_records(raw: object, model: type[Any], *, kind: str) -> list[Any]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"indoor graph asset field '{kind}' must be a list")
    out: list[Any] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            log_warning("indoor_graph_record_skipped", kind=kind, index=idx, reason="not_an_object")
            continue
        try:
            out.append(model.model_validate(item))
        except ValidationError as exc:
            log_warning(
                "indoor_graph_record_skipped",
                kind=kind,
                index=idx,
                reason="validation_error",
                error_count=exc.error_count(),
            )
    return out


class InMemoryGraphStore:
    """Reference graph store seeded from a JSON asset.

    All reads return copies of the stored lists under a lock so a caller's
    snapshot never observes later edits.
    """

    def __init__(
        self,
        *,
        maps: Iterable[IndoorMap] = (),
        nodes: Iterable[IndoorNode] = (),
        edges: Iterable[IndoorEdge] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._maps: dict[str, IndoorMap] = {}
        self._nodes: dict[str, IndoorNode] = {}
        self._edges: dict[str, IndoorEdge] = {}
        for m in maps:
            self.add_map(m)
        for n in nodes:
            self.add_node(n)
        for e in edges:
            self.add_edge(e)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> tuple[InMemoryGraphStore, list[IndoorPosition]]:
        store = cls(
            maps=_parse_records(payload.get("maps"), IndoorMap, kind="maps"),
            nodes=_parse_records(payload.get("nodes"), IndoorNode, kind="nodes"),
            edges=_parse_records(payload.get("edges"), IndoorEdge, kind="edges"),
        )
        positions = _parse_records(payload.get("positions"), IndoorPosition, kind="positions")
        return store, positions

    @classmethod
    def from_json(cls, path: str | Path) -> tuple[InMemoryGraphStore, list[IndoorPosition]]:
        asset = Path(path)
        payload = json.loads(asset.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("indoor graph asset must be a JSON object")
        store, positions = cls.from_payload(payload)
        log_event(
            "indoor_graph_loaded",
            source=str(asset),
            maps=len(store._maps),
            nodes=len(store._nodes),
            edges=len(store._edges),
            positions=len(positions),
        )
        return store, positions

    def add_map(self, indoor_map: IndoorMap) -> None:
        with self._lock:
            self._maps[indoor_map.id] = indoor_map

    def add_node(self, node: IndoorNode) -> None:
        with self._lock:
            self._nodes[node.id] = node

    def add_edge(self, edge: IndoorEdge) -> None:
        with self._lock:
            self._edges[edge.id] = edge

    def get_map(self, map_id: str) -> IndoorMap:
        with self._lock:
            found = self._maps.get(map_id)
        if found is None:
            raise map_not_found(map_id)
        return found

    def get_node(self, node_id: str) -> IndoorNode:
        with self._lock:
            found = self._nodes.get(node_id)
        if found is None:
            raise node_not_found(node_id)
        return found

    def get_outgoing_edges(self, node_id: str) -> list[IndoorEdge]:
        # Stored direction only; reverse traversal is the graph model's job.
        with self._lock:
            return [e for e in self._edges.values() if e.from_node_id == node_id]

    def get_map_nodes(self, map_id: str) -> list[IndoorNode]:
        with self._lock:
            return [n for n in self._nodes.values() if n.map_id == map_id]

    def get_map_edges(self, map_id: str) -> list[IndoorEdge]:
        with self._lock:
            return [e for e in self._edges.values() if e.map_id == map_id]

    def list_maps(
        self,
        *,
        facility_id: str | None = None,
        map_type: IndoorMapType | None = None,
        active_only: bool = True,
    ) -> list[IndoorMap]:
        with self._lock:
            maps = list(self._maps.values())
        out = [
            m
            for m in maps
            if (facility_id is None or m.facility_id == facility_id)
            and (map_type is None or m.map_type == map_type)
            and (not active_only or m.is_active)
        ]
        return sorted(out, key=lambda m: (m.facility_id or "", m.floor_number, m.id))

    def list_nodes(
        self,
        map_id: str,
        *,
        node_type: IndoorNodeType | None = None,
        floor_level: int | None = None,
        accessible_only: bool = False,
    ) -> list[IndoorNode]:
        out = [
            n
            for n in self.get_map_nodes(map_id)
            if (node_type is None or n.node_type == node_type)
            and (floor_level is None or n.floor_level == floor_level)
            and (not accessible_only or n.is_accessible)
        ]
        return sorted(out, key=lambda n: n.node_id)

    def find_nearest_node(
        self,
        map_id: str,
        longitude: float,
        latitude: float,
        radius_m: float,
    ) -> IndoorNode | None:
        best: tuple[float, str] | None = None
        best_node: IndoorNode | None = None
        for node in self.get_map_nodes(map_id):
            d = _haversine_m(latitude, longitude, node.latitude, node.longitude)
            if d > radius_m:
                continue
            key = (d, node.id)
            if best is None or key < best:
                best = key
                best_node = node
        return best_node
