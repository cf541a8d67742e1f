from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .graph_store import InMemoryGraphStore
from .logging_utils import log_event
from .models import (
    EntityRouteRequest,
    IndoorMap,
    IndoorMapType,
    IndoorNode,
    IndoorNodeType,
    IndoorPosition,
    IndoorRoute,
    MapListResponse,
    MapStatistics,
    NodeListResponse,
    PositionListResponse,
    PositionStatistics,
    PositioningMethod,
    RouteCalculateRequest,
    RouteListResponse,
    RouteType,
)
from .position_store import PositionStore
from .rbac import Role, role_dependency
from .route_assembler import compute_route, route_from_entity
from .route_store import ROUTE_STORE, RouteStore
from .routing_errors import IndoorRoutingError, NotFoundError
from .settings import settings


def _load_reference_stores() -> tuple[InMemoryGraphStore, PositionStore]:
    path = settings.indoor_graph_asset_path.strip()
    if not path:
        return InMemoryGraphStore(), PositionStore()
    store, positions = InMemoryGraphStore.from_json(path)
    return store, PositionStore(positions)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.graph_store, app.state.positions = _load_reference_stores()
    app.state.routes = ROUTE_STORE
    yield


app = FastAPI(title="Indoor Routing Engine", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IndoorRoutingError)
async def routing_error_handler(request: Request, exc: IndoorRoutingError) -> JSONResponse:
    log_event(
        "route_request_failed",
        path=request.url.path,
        status_code=exc.status_code,
        reason_code=exc.reason_code,
        error_message=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def graph_store(request: Request) -> InMemoryGraphStore:
    store: InMemoryGraphStore | None = getattr(request.app.state, "graph_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="graph store not initialised")
    return store


def position_store(request: Request) -> PositionStore:
    positions: PositionStore | None = getattr(request.app.state, "positions", None)
    if positions is None:
        raise HTTPException(status_code=503, detail="position store not initialised")
    return positions


def route_store(request: Request) -> RouteStore:
    routes: RouteStore | None = getattr(request.app.state, "routes", None)
    return routes if routes is not None else ROUTE_STORE


GraphStoreDep = Annotated[InMemoryGraphStore, Depends(graph_store)]
PositionStoreDep = Annotated[PositionStore, Depends(position_store)]
RouteStoreDep = Annotated[RouteStore, Depends(route_store)]
ResponderDep = Annotated[Role, Depends(role_dependency("responder"))]
AdminDep = Annotated[Role, Depends(role_dependency("admin"))]


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Indoor routing engine is running. Visit /docs for the API UI.", "docs": "/docs"}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/maps", response_model=MapListResponse)
async def list_maps(
    store: GraphStoreDep,
    _: ResponderDep,
    facility_id: Annotated[str | None, Query(alias="facilityId")] = None,
    map_type: Annotated[IndoorMapType | None, Query(alias="mapType")] = None,
    active_only: Annotated[bool, Query(alias="activeOnly")] = True,
) -> MapListResponse:
    return MapListResponse(maps=store.list_maps(facility_id=facility_id, map_type=map_type, active_only=active_only))


@app.get("/maps/{map_id}", response_model=IndoorMap)
async def get_map(map_id: str, store: GraphStoreDep, _: ResponderDep) -> IndoorMap:
    return store.get_map(map_id)


@app.get("/maps/{map_id}/nodes", response_model=NodeListResponse)
async def list_nodes(
    map_id: str,
    store: GraphStoreDep,
    _: ResponderDep,
    node_type: Annotated[IndoorNodeType | None, Query(alias="nodeType")] = None,
    floor_level: Annotated[int | None, Query(alias="floorLevel")] = None,
    accessible_only: Annotated[bool, Query(alias="accessibleOnly")] = False,
) -> NodeListResponse:
    store.get_map(map_id)
    nodes = store.list_nodes(map_id, node_type=node_type, floor_level=floor_level, accessible_only=accessible_only)
    return NodeListResponse(nodes=nodes)


@app.get("/maps/{map_id}/nodes/nearest", response_model=IndoorNode)
async def nearest_node(
    map_id: str,
    store: GraphStoreDep,
    _: ResponderDep,
    longitude: Annotated[float, Query(ge=-180, le=180)],
    latitude: Annotated[float, Query(ge=-90, le=90)],
    radius: Annotated[float | None, Query(gt=0, le=10_000)] = None,
) -> IndoorNode:
    store.get_map(map_id)
    radius_m = settings.nearest_node_default_radius_m if radius is None else radius
    found = store.find_nearest_node(map_id, longitude, latitude, radius_m)
    if found is None:
        raise NotFoundError(
            reason_code="nearest_node_not_found",
            message=f"no node within {radius_m:g} m",
            details={"map_id": map_id, "radius_m": radius_m},
        )
    return found


@app.post("/maps/{map_id}/routes/calculate", response_model=IndoorRoute)
async def calculate_route(
    map_id: str,
    req: RouteCalculateRequest,
    store: GraphStoreDep,
    routes: RouteStoreDep,
    _: ResponderDep,
) -> IndoorRoute:
    return await asyncio.to_thread(
        compute_route,
        store,
        routes,
        map_id,
        req.from_node_id,
        req.to_node_id,
        req.route_type,
        req.created_by,
    )


@app.post("/maps/{map_id}/routes/from-entity", response_model=IndoorRoute)
async def calculate_route_from_entity(
    map_id: str,
    req: EntityRouteRequest,
    store: GraphStoreDep,
    positions: PositionStoreDep,
    routes: RouteStoreDep,
    _: ResponderDep,
) -> IndoorRoute:
    return await asyncio.to_thread(
        route_from_entity,
        store,
        positions,
        routes,
        map_id,
        req.entity_type,
        req.entity_id,
        req.to_node_id,
        req.route_type,
        req.created_by,
        radius_m=req.radius,
    )


@app.get("/maps/{map_id}/routes", response_model=RouteListResponse)
async def list_routes(
    map_id: str,
    routes: RouteStoreDep,
    _: ResponderDep,
    route_type: Annotated[RouteType | None, Query(alias="routeType")] = None,
    accessible_only: Annotated[bool, Query(alias="accessibleOnly")] = False,
    emergency_only: Annotated[bool, Query(alias="emergencyOnly")] = False,
) -> RouteListResponse:
    return RouteListResponse(
        routes=routes.list_routes(
            map_id,
            route_type=route_type,
            accessible_only=accessible_only,
            emergency_only=emergency_only,
        )
    )


@app.get("/routes/{route_id}", response_model=IndoorRoute)
async def get_route(route_id: str, routes: RouteStoreDep, _: ResponderDep) -> IndoorRoute:
    return routes.get_route(route_id)


@app.get("/positions/latest", response_model=IndoorPosition)
async def latest_position(
    positions: PositionStoreDep,
    _: ResponderDep,
    entity_type: Annotated[str, Query(alias="entityType", min_length=1)],
    entity_id: Annotated[str, Query(alias="entityId", min_length=1)],
) -> IndoorPosition:
    found = positions.get_latest_position(entity_type, entity_id)
    if found is None:
        raise NotFoundError(
            reason_code="position_not_found",
            message=f"no position recorded for {entity_type} {entity_id}",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
    return found


@app.get("/maps/{map_id}/statistics", response_model=MapStatistics)
async def map_statistics(
    map_id: str,
    store: GraphStoreDep,
    routes: RouteStoreDep,
    _: AdminDep,
) -> MapStatistics:
    store.get_map(map_id)
    nodes = store.get_map_nodes(map_id)
    edges = store.get_map_edges(map_id)
    return MapStatistics(
        map_id=map_id,
        total_nodes=len(nodes),
        accessible_nodes=sum(1 for n in nodes if n.is_accessible),
        emergency_exits=sum(1 for n in nodes if n.is_emergency_exit),
        stairs=sum(1 for n in nodes if n.is_stairs),
        elevators=sum(1 for n in nodes if n.is_elevator),
        total_edges=len(edges),
        accessible_edges=sum(1 for e in edges if e.is_accessible),
        bidirectional_edges=sum(1 for e in edges if e.is_bidirectional),
        emergency_route_edges=sum(1 for e in edges if e.is_emergency_route),
        restricted_edges=sum(1 for e in edges if e.is_restricted),
        total_routes=len(routes.list_routes(map_id)),
        avg_edge_distance=(sum(e.distance for e in edges) / len(edges)) if edges else None,
        avg_edge_weight=(sum(e.weight for e in edges) / len(edges)) if edges else None,
    )


@app.get("/maps/{map_id}/positions", response_model=PositionListResponse)
async def list_positions(
    map_id: str,
    store: GraphStoreDep,
    positions: PositionStoreDep,
    _: ResponderDep,
    floor_level: Annotated[int | None, Query(alias="floorLevel")] = None,
    positioning_method: Annotated[PositioningMethod | None, Query(alias="positioningMethod")] = None,
    valid_only: Annotated[bool, Query(alias="validOnly")] = True,
) -> PositionListResponse:
    store.get_map(map_id)
    return PositionListResponse(
        positions=positions.list_positions(
            map_id,
            floor_level=floor_level,
            positioning_method=positioning_method,
            valid_only=valid_only,
        )
    )


def _mean(values: list[float]) -> float | None:
    return (sum(values) / len(values)) if values else None


@app.get("/maps/{map_id}/positions/statistics", response_model=PositionStatistics)
async def position_statistics(
    map_id: str,
    store: GraphStoreDep,
    positions: PositionStoreDep,
    _: AdminDep,
) -> PositionStatistics:
    store.get_map(map_id)
    items = positions.list_positions(map_id, valid_only=False)
    by_method = [p.positioning_method for p in items]
    return PositionStatistics(
        map_id=map_id,
        total_positions=len(items),
        valid_positions=sum(1 for p in items if p.is_valid),
        wifi_positions=by_method.count(PositioningMethod.WIFI_FINGERPRINTING),
        bluetooth_positions=by_method.count(PositioningMethod.BLUETOOTH_BEACONS),
        uwb_positions=by_method.count(PositioningMethod.UWB),
        avg_accuracy=_mean([p.accuracy for p in items if p.accuracy is not None]),
        avg_speed=_mean([p.speed for p in items if p.speed is not None]),
    )


@app.get("/admin/route-store")
async def route_store_stats(routes: RouteStoreDep, _: AdminDep) -> dict[str, int | bool]:
    return routes.snapshot()


@app.delete("/admin/route-store")
async def clear_route_store(routes: RouteStoreDep, _: AdminDep) -> dict[str, int]:
    cleared = routes.clear()
    log_event("route_store_cleared", cleared=cleared)
    return {"cleared": cleared}
