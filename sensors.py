# ─────────────────────────────────────────────────────────────────
# sensors.py — Sensor Reading Pipeline
#
# This is the ONLY place a live sensor sample is written to a node.
# apply_sensor_reading() always does the three steps together:
#
#   1. write the readings onto node["currentStatus"]
#   2. recompute operationalStatus from the new readings
#   3. push one `sensor-update` to every connected client
#
# There is no await between the steps, so no other handler and no
# listener can ever see a fresh reading next to a stale status.
#
# When a sample pushes a node INTO critical, a sensor-sourced alert
# is raised as well (see raise_threshold_alert).
# ─────────────────────────────────────────────────────────────────

import logging
from typing import Optional

from alerts import raise_alert
from database import Store
from errors import NotFound
from ids import utcnow
from notifications import SENSOR_UPDATE, Broadcaster
from status import (
    BLOCKAGE_LEVEL_CRITICAL,
    CRITICAL,
    WATER_LEVEL_CRITICAL,
    reading,
    refresh_operational_status,
)

logger = logging.getLogger("sensors")

READING_FIELDS = ("waterLevel", "blockageLevel", "flowRate")


def write_readings(node: dict, readings: dict) -> str:
    """
    Writes whichever readings are present and re-derives the status.
    Returns the new operational status.
    """

    current = node.setdefault("currentStatus", {})
    now = utcnow()
    for field in READING_FIELDS:
        value = readings.get(field)
        if value is not None:
            block = current.get(field) or {}
            block["current"] = value
            block["lastUpdated"] = now
            current[field] = block
    node["updatedAt"] = now
    return refresh_operational_status(node)


def apply_sensor_reading(
    store: Store,
    broadcaster: Broadcaster,
    node_id: str,
    readings: dict,
    auto_alert: bool = True,
) -> dict:
    node = store.nodes.get_by_id(node_id)
    if node is None:
        raise NotFound("Node not found")

    previous = (node.get("currentStatus") or {}).get("operationalStatus")
    status = write_readings(node, readings)

    if status != previous:
        logger.warning(f"⚠️  {node_id} status {previous} → {status}")
    logger.info(f"📡 Sensor data for {node_id}: {readings} → {status}")

    broadcaster.emit(SENSOR_UPDATE, {"nodeId": node["nodeId"], **node["currentStatus"]})

    if auto_alert and status == CRITICAL and previous != CRITICAL:
        raise_threshold_alert(store, broadcaster, node)

    return node


def raise_threshold_alert(store: Store, broadcaster: Broadcaster, node: dict) -> Optional[dict]:
    """Raises the alert for a node that just crossed into critical."""

    current = node.get("currentStatus") or {}
    water = reading(current, "waterLevel")
    blockage = reading(current, "blockageLevel")

    if water >= WATER_LEVEL_CRITICAL:
        alert_type = "flood_warning"
        title = f"Critical Water Level at {node.get('name', node['nodeId'])}"
        message = (
            f"Water level {water}% has exceeded the critical threshold "
            f"({WATER_LEVEL_CRITICAL}%) at {node['nodeId']}. Immediate attention required."
        )
    else:
        alert_type = "drainage_blockage"
        title = f"Critical Blockage at {node.get('name', node['nodeId'])}"
        message = (
            f"Blockage level {blockage}% has exceeded the critical threshold "
            f"({BLOCKAGE_LEVEL_CRITICAL}%) at {node['nodeId']}. Maintenance required."
        )

    return raise_alert(store, broadcaster, {
        "type": alert_type,
        "severity": "critical",
        "title": title,
        "message": message,
        "location": node.get("location"),
        "source": "sensor",
        "sourceDetails": {"nodeId": node["nodeId"], "automaticTrigger": True},
        "priority": 5,
        "targetAudience": ["all_citizens", "emergency_services"],
    })
