from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "map_not_found",
        "node_not_found",
        "route_not_stored",
        "position_not_found",
        "nearest_node_not_found",
        "cross_map_request",
        "invalid_route_type",
        "invalid_argument",
        "route_not_found",
        "route_search_timeout",
        "route_search_budget_exceeded",
        "data_inconsistency",
        "routing_error",
    }
)


@dataclass
class IndoorRoutingError(ValueError):
    reason_code: str
    message: str
    details: dict[str, Any] | None = field(default=None)

    status_code: ClassVar[int] = 500
    default_reason_code: ClassVar[str] = "routing_error"

    def __post_init__(self) -> None:
        self.reason_code = normalize_reason_code(self.reason_code, default=self.default_reason_code)

    def __str__(self) -> str:
        return self.message

    def to_payload(self) -> dict[str, Any]:
        return {
            "reason_code": self.reason_code,
            "message": self.message,
            "details": self.details or {},
        }


@dataclass
class NotFoundError(IndoorRoutingError):
    """A referenced map, node, route or position does not exist."""

    status_code: ClassVar[int] = 404
    default_reason_code: ClassVar[str] = "node_not_found"


@dataclass
class InvalidArgumentError(IndoorRoutingError):
    status_code: ClassVar[int] = 400
    default_reason_code: ClassVar[str] = "invalid_argument"


@dataclass
class RouteNotFoundError(IndoorRoutingError):
    """The graph has no path satisfying the route type's admissibility rule.

    Kept apart from NotFoundError so clients can suggest another route type.
    """

    status_code: ClassVar[int] = 422
    default_reason_code: ClassVar[str] = "route_not_found"


@dataclass
class RouteSearchTimeoutError(IndoorRoutingError):
    status_code: ClassVar[int] = 504
    default_reason_code: ClassVar[str] = "route_search_timeout"


def normalize_reason_code(reason_code: str, *, default: str = "routing_error") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default


def map_not_found(map_id: str) -> NotFoundError:
    return NotFoundError(
        reason_code="map_not_found",
        message=f"indoor map not found: {map_id}",
        details={"map_id": map_id},
    )


def node_not_found(node_id: str, *, map_id: str | None = None) -> NotFoundError:
    details: dict[str, Any] = {"node_id": node_id}
    if map_id is not None:
        details["map_id"] = map_id
        message = f"node {node_id} not found on map {map_id}"
    else:
        message = f"indoor node not found: {node_id}"
    return NotFoundError(reason_code="node_not_found", message=message, details=details)
