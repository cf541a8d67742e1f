from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class IndoorMapType(str, Enum):
    EMERGENCY_SHELTER = "EMERGENCY_SHELTER"
    HOSPITAL = "HOSPITAL"
    WAREHOUSE = "WAREHOUSE"
    OFFICE_BUILDING = "OFFICE_BUILDING"
    SCHOOL = "SCHOOL"
    SHOPPING_CENTER = "SHOPPING_CENTER"
    RESIDENTIAL = "RESIDENTIAL"
    INDUSTRIAL = "INDUSTRIAL"
    UNDERGROUND = "UNDERGROUND"
    MULTI_LEVEL = "MULTI_LEVEL"
    TEMPORARY_STRUCTURE = "TEMPORARY_STRUCTURE"
    CUSTOM = "CUSTOM"


class IndoorNodeType(str, Enum):
    ROOM = "ROOM"
    CORRIDOR = "CORRIDOR"
    JUNCTION = "JUNCTION"
    STAIRS = "STAIRS"
    ELEVATOR = "ELEVATOR"
    ENTRANCE = "ENTRANCE"
    EXIT = "EXIT"
    EMERGENCY_EXIT = "EMERGENCY_EXIT"
    RESTROOM = "RESTROOM"
    ELEVATOR_SHAFT = "ELEVATOR_SHAFT"
    MECHANICAL_ROOM = "MECHANICAL_ROOM"
    STORAGE_ROOM = "STORAGE_ROOM"
    OFFICE = "OFFICE"
    MEETING_ROOM = "MEETING_ROOM"
    CAFETERIA = "CAFETERIA"
    LOBBY = "LOBBY"
    PARKING = "PARKING"
    LOADING_DOCK = "LOADING_DOCK"
    CUSTOM = "CUSTOM"


class IndoorEdgeType(str, Enum):
    CORRIDOR = "CORRIDOR"
    DOORWAY = "DOORWAY"
    STAIRS = "STAIRS"
    ELEVATOR = "ELEVATOR"
    RAMP = "RAMP"
    ESCALATOR = "ESCALATOR"
    OUTDOOR = "OUTDOOR"
    CUSTOM = "CUSTOM"


class PositioningMethod(str, Enum):
    WIFI_FINGERPRINTING = "WIFI_FINGERPRINTING"
    BLUETOOTH_BEACONS = "BLUETOOTH_BEACONS"
    UWB = "UWB"
    INFRARED = "INFRARED"
    MAGNETIC_FIELD = "MAGNETIC_FIELD"
    VISUAL_LANDMARKS = "VISUAL_LANDMARKS"
    PEDESTRIAN_DEAD_RECKONING = "PEDESTRIAN_DEAD_RECKONING"
    INERTIAL_NAVIGATION = "INERTIAL_NAVIGATION"
    CELLULAR = "CELLULAR"
    MANUAL_INPUT = "MANUAL_INPUT"
    QR_CODE = "QR_CODE"
    NFC = "NFC"
    CUSTOM = "CUSTOM"


class RouteType(str, Enum):
    SHORTEST = "SHORTEST"
    ACCESSIBLE_PATH = "ACCESSIBLE_PATH"
    EMERGENCY_EVACUATION = "EMERGENCY_EVACUATION"

    @classmethod
    def _missing_(cls, value: object) -> RouteType | None:
        # Older web clients send SHORTEST_PATH and lower-case names.
        if not isinstance(value, str):
            return None
        normalized = value.strip().upper()
        if normalized == "SHORTEST_PATH":
            return cls.SHORTEST
        for member in cls:
            if member.value == normalized:
                return member
        return None


class DifficultyLevel(str, Enum):
    EASY = "EASY"
    MODERATE = "MODERATE"
    DIFFICULT = "DIFFICULT"


class ActionType(str, Enum):
    START = "START"
    CONTINUE_STRAIGHT = "CONTINUE_STRAIGHT"
    GO_UP_STAIRS = "GO_UP_STAIRS"
    TAKE_ELEVATOR = "TAKE_ELEVATOR"
    ARRIVE = "ARRIVE"


class GeoJSONLineString(BaseModel):
    type: Literal["LineString"]
    coordinates: list[tuple[float, float]]  # [lon, lat]


class IndoorMap(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str | None = None
    facility_id: str | None = None
    facility_name: str | None = None
    floor_number: int = 0
    floor_name: str | None = None
    map_type: IndoorMapType = IndoorMapType.CUSTOM
    coordinate_system: str = "local"
    scale_factor: float = Field(default=1.0, gt=0.0)
    # Closed ring of [lon, lat] pairs; owned by the map, not built here.
    bounds: list[tuple[float, float]] = Field(default_factory=list)
    is_active: bool = True


class IndoorNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    map_id: str
    node_id: str
    name: str | None = None
    longitude: float = Field(default=0.0, ge=-180, le=180)
    latitude: float = Field(default=0.0, ge=-90, le=90)
    local_x: float = 0.0
    local_y: float = 0.0
    node_type: IndoorNodeType = IndoorNodeType.JUNCTION
    is_accessible: bool = True
    capacity: int | None = Field(default=None, ge=0)
    current_occupancy: int | None = Field(default=None, ge=0)
    floor_level: int | None = None
    is_emergency_exit: bool = False
    is_elevator: bool = False
    is_stairs: bool = False

    @property
    def label(self) -> str:
        return self.name if self.name else self.node_id


class IndoorEdge(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    map_id: str
    edge_id: str
    from_node_id: str
    to_node_id: str
    name: str | None = None
    # Ordered intermediate [lon, lat] points between the endpoints.
    path: list[tuple[float, float]] = Field(default_factory=list)
    edge_type: IndoorEdgeType = IndoorEdgeType.CORRIDOR
    is_accessible: bool = True
    is_bidirectional: bool = True
    distance: float = Field(..., ge=0.0)
    width: float | None = Field(default=None, ge=0.0)
    height: float | None = Field(default=None, ge=0.0)
    weight: float = Field(default=1.0, ge=0.0)
    max_speed: float | None = Field(default=None, ge=0.0)
    is_emergency_route: bool = False
    is_restricted: bool = False
    restriction_type: str | None = None

    @field_validator("distance", "weight")
    @classmethod
    def _finite(cls, v: float) -> float:
        if v != v or v in (float("inf"), float("-inf")):
            raise ValueError("edge distance and weight must be finite")
        return v

    @model_validator(mode="after")
    def _distinct_endpoints(self) -> IndoorEdge:
        if self.from_node_id == self.to_node_id:
            raise ValueError("edge endpoints must be two different nodes")
        return self


class IndoorPosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    map_id: str
    entity_type: str
    entity_id: str
    entity_name: str | None = None
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)
    local_x: float | None = None
    local_y: float | None = None
    floor_level: int | None = None
    heading: float | None = None
    speed: float | None = Field(default=None, ge=0.0)
    accuracy: float | None = Field(default=None, ge=0.0)
    positioning_method: PositioningMethod = PositioningMethod.MANUAL_INPUT
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    is_valid: bool = True


class _CamelModel(BaseModel):
    """Route payload records keep the camelCase keys consumers already parse."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Waypoint(_CamelModel):
    node_id: str
    name: str = ""
    local_x: float
    local_y: float
    floor_level: int = 0


class RouteStep(_CamelModel):
    step: int = Field(..., ge=1)
    instruction: str
    action_type: ActionType
    node_id: str
    local_x: float
    local_y: float
    floor_level: int = 0
    distance_from_start: float = Field(default=0.0, ge=0.0)
    estimated_time_from_start: int = Field(default=0, ge=0)
    is_critical: bool = False


class IndoorRoute(BaseModel):
    model_config = ConfigDict(frozen=True)

    route_id: str
    map_id: str
    from_node_id: str
    to_node_id: str
    name: str
    description: str = ""
    path_node_ids: list[str]
    edge_ids: list[str] = Field(default_factory=list)
    path: GeoJSONLineString
    route_type: RouteType
    total_distance: float = Field(..., ge=0.0)
    estimated_time: int = Field(..., ge=0)
    difficulty_level: DifficultyLevel
    is_accessible: bool
    is_emergency_route: bool
    is_restricted: bool = False
    waypoints: list[Waypoint]
    instructions: list[RouteStep]
    created_by: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class _RouteRequest(_CamelModel):
    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_route_type(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        key = "routeType" if "routeType" in data else "route_type"
        raw = data.get(key)
        if isinstance(raw, str):
            normalized = raw.strip().upper()
            data = {**data, key: "SHORTEST" if normalized == "SHORTEST_PATH" else normalized}
        return data


class RouteCalculateRequest(_RouteRequest):
    from_node_id: str = Field(..., min_length=1)
    to_node_id: str = Field(..., min_length=1)
    route_type: RouteType = RouteType.SHORTEST
    created_by: str = Field(..., min_length=1, max_length=128)


class EntityRouteRequest(_RouteRequest):
    entity_type: str = Field(..., min_length=1)
    entity_id: str = Field(..., min_length=1)
    to_node_id: str = Field(..., min_length=1)
    route_type: RouteType = RouteType.SHORTEST
    created_by: str = Field(..., min_length=1, max_length=128)
    radius: float | None = Field(default=None, gt=0.0, le=10_000.0)


class MapListResponse(BaseModel):
    maps: list[IndoorMap]


class NodeListResponse(BaseModel):
    nodes: list[IndoorNode]


class RouteListResponse(BaseModel):
    routes: list[IndoorRoute]


class MapStatistics(BaseModel):
    map_id: str
    total_nodes: int
    accessible_nodes: int
    emergency_exits: int
    stairs: int
    elevators: int
    total_edges: int
    accessible_edges: int
    bidirectional_edges: int
    emergency_route_edges: int
    restricted_edges: int
    total_routes: int
    avg_edge_distance: float | None = None
    avg_edge_weight: float | None = None


class PositionListResponse(BaseModel):
    positions: list[IndoorPosition]


class PositionStatistics(BaseModel):
    map_id: str
    total_positions: int
    valid_positions: int
    wifi_positions: int
    bluetooth_positions: int
    uwb_positions: int
    avg_accuracy: float | None = None
    avg_speed: float | None = None
