from __future__ import annotations

import json
from collections import OrderedDict
from pathlib import Path
from threading import Lock

from .models import IndoorRoute, RouteType
from .routing_errors import NotFoundError
from .settings import settings


def write_route_record(route: IndoorRoute) -> Path:
    out_dir = Path(settings.out_dir) / "routes"
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{route.route_id}.json"
    payload = route.model_dump(mode="json", by_alias=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


class RouteStore:
    def __init__(self, *, max_entries: int, persist: bool = False) -> None:
        self._max_entries = max(1, int(max_entries))
        self._persist = bool(persist)
        self._lock = Lock()
        self._items: OrderedDict[str, IndoorRoute] = OrderedDict()
        self._evictions = 0

    def save_route(self, route: IndoorRoute) -> IndoorRoute:
        with self._lock:
            if route.route_id in self._items:
                self._items.move_to_end(route.route_id)
            self._items[route.route_id] = route
            while len(self._items) > self._max_entries:
                self._items.popitem(last=False)
                self._evictions += 1
        if self._persist:
            write_route_record(route)
        return route

    def get_route(self, route_id: str) -> IndoorRoute:
        with self._lock:
            found = self._items.get(route_id)
        if found is None:
            raise NotFoundError(
                reason_code="route_not_stored",
                message=f"indoor route not found: {route_id}",
                details={"route_id": route_id},
            )
        return found

    def list_routes(
        self,
        map_id: str,
        *,
        route_type: RouteType | None = None,
        accessible_only: bool = False,
        emergency_only: bool = False,
    ) -> list[IndoorRoute]:
        with self._lock:
            items = list(self._items.values())
        out = [
            r
            for r in items
            if r.map_id == map_id
            and (route_type is None or r.route_type == route_type)
            and (not accessible_only or r.is_accessible)
            and (not emergency_only or r.is_emergency_route)
        ]
        return sorted(out, key=lambda r: r.created_at, reverse=True)

    def clear(self) -> int:
        with self._lock:
            cleared = len(self._items)
            self._items.clear()
            return cleared

    def snapshot(self) -> dict[str, int | bool]:
        with self._lock:
            return {
                "size": len(self._items),
                "evictions": self._evictions,
                "max_entries": self._max_entries,
                "persist": self._persist,
            }


ROUTE_STORE = RouteStore(
    max_entries=settings.route_store_max_entries,
    persist=settings.route_store_persist,
)
