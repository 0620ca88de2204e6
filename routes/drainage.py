# ─────────────────────────────────────────────────────────────────
# routes/drainage.py — Drainage Nodes & Sensor Data
#
# Mounted at /api/drainage.
#
# Reads are open (a token is optional). Creating and editing nodes
# needs an operator or admin; deleting needs an admin. Deleting is
# a soft delete: the node stays in the store with isActive = False
# and can still be fetched by id.
#
# Sensor samples go through sensors.apply_sensor_reading so the
# operational status is ALWAYS re-derived before anyone is told.
# ─────────────────────────────────────────────────────────────────

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from auth import current_user, optional_user, require_role
from config import Settings
from database import Store
from deps import get_broadcaster, get_settings, get_store
from errors import Conflict, NotFound, ValidationFailed, ok
from ids import utcnow
from models import MaintenanceRecord, NodeCreate, NodeUpdate, OperationalStatus, SensorReading
from notifications import ADMIN_ROOM, NODE_CREATED, NODE_UPDATED, Broadcaster
from sensors import apply_sensor_reading, write_readings
from status import average_water_level, count_node_statuses, refresh_operational_status

logger = logging.getLogger("routes.drainage")

router = APIRouter(prefix="/api/drainage", tags=["Drainage"])


def _pagination(total: int) -> dict:
    # Single page; no windowing
    return {"current": 1, "pages": 1, "total": total}


def _active_nodes(store: Store) -> list:
    return store.nodes.find(lambda n: n.get("isActive"))


def _get_node(store: Store, node_id: str) -> dict:
    node = store.nodes.get_by_id(node_id.upper())
    if node is None:
        raise NotFound("Node not found")
    return node


# ─────────────────────────────────────────────────────────────────
# READS
# ─────────────────────────────────────────────────────────────────

@router.get("", dependencies=[Depends(optional_user)])
async def list_nodes(
    status: Optional[str] = None,
    type: Optional[str] = None,
    ward: Optional[str] = None,
    district: Optional[str] = None,
    store: Store = Depends(get_store),
):
    """Active nodes, optionally filtered by status / type / ward / district."""

    nodes = _active_nodes(store)
    if status:
        nodes = [n for n in nodes if n["currentStatus"].get("operationalStatus") == status]
    if type:
        nodes = [n for n in nodes if n.get("type") == type]
    if ward:
        nodes = [n for n in nodes if (n.get("location") or {}).get("ward") == ward]
    if district:
        nodes = [n for n in nodes if (n.get("location") or {}).get("district") == district]

    return ok({"nodes": nodes, "pagination": _pagination(len(nodes))})


@router.get("/statistics", dependencies=[Depends(optional_user)])
async def node_statistics(store: Store = Depends(get_store)):
    nodes = _active_nodes(store)
    return ok({
        "totalNodes": len(nodes),
        "statusCounts": count_node_statuses(nodes),
        "avgWaterLevel": average_water_level(nodes),
        "criticalNodes": [n for n in nodes if n["currentStatus"].get("operationalStatus") == "critical"],
    })


@router.get("/status/{status}", dependencies=[Depends(optional_user)])
async def nodes_by_status(
    status: OperationalStatus,
    store: Store = Depends(get_store),
):
    nodes = [n for n in _active_nodes(store) if n["currentStatus"].get("operationalStatus") == status]
    return ok({"nodes": nodes, "count": len(nodes)})


@router.get("/nearby", dependencies=[Depends(optional_user)])
async def nearby_nodes(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: float = Query(1000, gt=0),
    store: Store = Depends(get_store),
):
    """
    Stub: coordinates are required but not used for filtering yet,
    every active node is returned.
    """

    if lat is None or lng is None:
        raise ValidationFailed("Lat/lng required")
    nodes = _active_nodes(store)
    return ok({"nodes": nodes, "count": len(nodes)})


@router.get("/{node_id}", dependencies=[Depends(optional_user)])
async def get_node(node_id: str, store: Store = Depends(get_store)):
    # Soft-deleted nodes are still returned here
    return ok({"node": _get_node(store, node_id)})


# ─────────────────────────────────────────────────────────────────
# WRITES
# ─────────────────────────────────────────────────────────────────

@router.post("", status_code=201)
async def create_node(
    body: NodeCreate,
    store: Store = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    user: dict = Depends(require_role("admin", "operator")),
):
    if store.nodes.get_by_id(body.nodeId):
        raise Conflict(f"Node '{body.nodeId}' already exists")

    now = utcnow()
    data = body.model_dump(exclude_none=True, exclude={"readings"})
    node = {
        **data,
        "currentStatus": {},
        "maintenanceHistory": [],
        "isActive": True,
        "createdBy": user["id"],
        "createdAt": now,
        "updatedAt": now,
    }
    if body.readings:
        write_readings(node, body.readings.readings())
    else:
        refresh_operational_status(node)

    store.nodes.insert(node)
    logger.info(f"✅ Node created: {node['nodeId']} ({node['type']}) by {user['username']}")

    broadcaster.emit_to(ADMIN_ROOM, NODE_CREATED, node)
    return ok({"node": node}, message="Node created")


@router.put("/{node_id}")
async def update_node(
    node_id: str,
    body: NodeUpdate,
    store: Store = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    user: dict = Depends(require_role("admin", "operator")),
):
    node = _get_node(store, node_id)

    changes = body.model_dump(exclude_unset=True, exclude={"readings"})
    node.update(changes)
    if body.readings:
        write_readings(node, body.readings.readings())
    node["updatedAt"] = utcnow()

    logger.info(f"✏️  Node {node['nodeId']} updated: {sorted(changes) + (['readings'] if body.readings else [])}")

    broadcaster.emit_to(ADMIN_ROOM, NODE_UPDATED, node)
    return ok({"node": node}, message="Node updated")


@router.delete("/{node_id}")
async def delete_node(
    node_id: str,
    store: Store = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    user: dict = Depends(require_role("admin")),
):
    node = _get_node(store, node_id)
    node["isActive"] = False
    node["updatedAt"] = utcnow()

    logger.info(f"🗑️  Node {node['nodeId']} deactivated by {user['username']}")

    broadcaster.emit_to(ADMIN_ROOM, NODE_UPDATED, {"nodeId": node["nodeId"], "isActive": False})
    return ok(message="Node deleted")


@router.post("/{node_id}/sensor-data")
async def update_sensor_data(
    node_id: str,
    body: SensorReading,
    store: Store = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    settings: Settings = Depends(get_settings),
    user: dict = Depends(current_user),
):
    node_id = node_id.upper()
    if body.nodeId and body.nodeId.upper() != node_id:
        raise ValidationFailed("nodeId in body does not match the URL")

    node = apply_sensor_reading(
        store,
        broadcaster,
        node_id,
        body.readings(),
        auto_alert=settings.auto_sensor_alerts,
    )
    return ok({"node": node})


@router.post("/{node_id}/maintenance")
async def add_maintenance_record(
    node_id: str,
    body: MaintenanceRecord,
    store: Store = Depends(get_store),
    user: dict = Depends(require_role("admin", "operator")),
):
    node = _get_node(store, node_id)
    record = {**body.model_dump(exclude_none=True), "date": utcnow(), "performedBy": user["id"]}
    node.setdefault("maintenanceHistory", []).append(record)

    logger.info(f"🛠️  Maintenance ({record['type']}) logged on {node['nodeId']}")
    return ok({"node": node}, message="Maintenance record added")
