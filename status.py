# ─────────────────────────────────────────────────────────────────
# status.py — Operational Status Rules
#
# Turns raw sensor readings into the normal / warning / critical
# label shown on every dashboard, and tallies those labels across
# the current set of nodes and alerts.
#
# Pure functions only: nothing here touches the store or the
# broadcaster, so the rules can be tested in isolation.
# ─────────────────────────────────────────────────────────────────

from typing import Dict, Iterable, Optional

# Thresholds are percentages (0-100). A reading AT a threshold
# belongs to the higher bucket.
WATER_LEVEL_CRITICAL = 85
WATER_LEVEL_WARNING = 70
BLOCKAGE_LEVEL_CRITICAL = 50
BLOCKAGE_LEVEL_WARNING = 30

NORMAL = "normal"
WARNING = "warning"
CRITICAL = "critical"

OPERATIONAL_STATUSES = (NORMAL, WARNING, CRITICAL)
ALERT_SEVERITIES = ("low", "medium", "high", "critical")


def evaluate_status(water_level: Optional[float], blockage_level: Optional[float]) -> str:
    """
    Classifies a single pair of readings.

        water >= 85 or blockage >= 50  → critical
        water >= 70 or blockage >= 30  → warning
        otherwise                      → normal

    Missing readings count as 0. No smoothing and no history: the
    label depends on this one sample only.
    """

    water = water_level or 0
    blockage = blockage_level or 0

    if water >= WATER_LEVEL_CRITICAL or blockage >= BLOCKAGE_LEVEL_CRITICAL:
        return CRITICAL
    if water >= WATER_LEVEL_WARNING or blockage >= BLOCKAGE_LEVEL_WARNING:
        return WARNING
    return NORMAL


def reading(current_status: dict, key: str) -> float:
    """Returns the `current` value of one reading block, 0 if absent."""
    block = (current_status or {}).get(key) or {}
    return block.get("current") or 0


def derive_status(current_status: dict) -> str:
    return evaluate_status(
        reading(current_status, "waterLevel"),
        reading(current_status, "blockageLevel"),
    )


def refresh_operational_status(node: dict) -> str:
    """
    Recomputes and stores `operationalStatus` on a node in place.
    Call this after ANY write to the node's readings.
    """

    current = node.setdefault("currentStatus", {})
    current["operationalStatus"] = derive_status(current)
    return current["operationalStatus"]


def count_node_statuses(nodes: Iterable[dict]) -> Dict[str, int]:
    counts = {status: 0 for status in OPERATIONAL_STATUSES}
    for node in nodes:
        status = (node.get("currentStatus") or {}).get("operationalStatus") or NORMAL
        if status in counts:
            counts[status] += 1
    return counts


def count_alert_severities(alerts: Iterable[dict]) -> Dict[str, int]:
    counts = {severity: 0 for severity in ALERT_SEVERITIES}
    for alert in alerts:
        severity = alert.get("severity")
        if severity in counts:
            counts[severity] += 1
    return counts


def average_water_level(nodes: Iterable[dict]) -> int:
    nodes = list(nodes)
    total = sum(reading(n.get("currentStatus"), "waterLevel") for n in nodes)
    return round(total / (len(nodes) or 1))
