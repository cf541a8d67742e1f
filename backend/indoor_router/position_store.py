from __future__ import annotations

import threading
from collections.abc import Iterable

from .models import IndoorPosition, PositioningMethod


class PositionStore:
    """Latest-known positions per entity, read by routing and never written by it."""

    def __init__(self, positions: Iterable[IndoorPosition] = ()) -> None:
        self._lock = threading.Lock()
        self._items: list[IndoorPosition] = []
        for p in positions:
            self.record_position(p)

    def record_position(self, position: IndoorPosition) -> None:
        with self._lock:
            self._items.append(position)

    def get_latest_position(self, entity_type: str, entity_id: str) -> IndoorPosition | None:
        with self._lock:
            matches = [
                p
                for p in self._items
                if p.entity_type == entity_type and p.entity_id == entity_id and p.is_valid
            ]
        if not matches:
            return None
        return max(matches, key=lambda p: p.timestamp)

    def list_positions(
        self,
        map_id: str,
        *,
        floor_level: int | None = None,
        positioning_method: PositioningMethod | None = None,
        valid_only: bool = True,
    ) -> list[IndoorPosition]:
        with self._lock:
            items = list(self._items)
        out = [
            p
            for p in items
            if p.map_id == map_id
            and (floor_level is None or p.floor_level == floor_level)
            and (positioning_method is None or p.positioning_method == positioning_method)
            and (not valid_only or p.is_valid)
        ]
        return sorted(out, key=lambda p: p.timestamp, reverse=True)
