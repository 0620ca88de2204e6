# ─────────────────────────────────────────────────────────────────
# database.py — In-Memory Storage
#
# This file owns all data storage for the application. One Store
# object holds the four collections (users, drainage nodes, alerts,
# citizen reports). It is created once per app in main.py and handed
# to every route through a dependency, so there is no module-level
# mutable state.
#
# Records are plain dicts keyed the way they appear on the wire
# (camelCase). Route handlers mutate the dicts they get back
# directly. Nothing survives a restart.
# ─────────────────────────────────────────────────────────────────

import logging
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from ids import IdGenerator, new_object_id, utcnow
from status import refresh_operational_status

logger = logging.getLogger("database")

Predicate = Callable[[dict], bool]


class Collection:
    """
    An insertion-ordered list of records with a lookup key.

    `key` names the human-facing identifier field used by
    `get_by_id` (e.g. "nodeId" for drainage nodes).
    """

    def __init__(self, name: str, key: str):
        self.name = name
        self.key = key
        self._items: List[dict] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def insert(self, record: dict) -> dict:
        record.setdefault("_id", new_object_id())
        self._items.append(record)
        return record

    def all(self) -> List[dict]:
        return list(self._items)

    def find(self, predicate: Optional[Predicate] = None) -> List[dict]:
        if predicate is None:
            return list(self._items)
        return [item for item in self._items if predicate(item)]

    def find_one(self, predicate: Predicate) -> Optional[dict]:
        for item in self._items:
            if predicate(item):
                return item
        return None

    def get_by_id(self, value: str) -> Optional[dict]:
        return self.find_one(lambda item: item.get(self.key) == value)

    def clear(self) -> None:
        self._items.clear()


class Store:
    """The four process-lifetime collections plus the id service."""

    def __init__(self, ids: Optional[IdGenerator] = None):
        self.ids = ids or IdGenerator()
        self.users = Collection("users", "_id")
        self.nodes = Collection("drainageNodes", "nodeId")
        self.alerts = Collection("alerts", "alertId")
        self.reports = Collection("citizenReports", "reportId")

    def collections(self) -> Dict[str, Collection]:
        return {c.name: c for c in (self.users, self.nodes, self.alerts, self.reports)}

    def reset(self) -> None:
        for collection in self.collections().values():
            collection.clear()

    # ── SEED DATA ─────────────────────────────────────────────────

    def seed(self, password_hash: str) -> None:
        """
        Repopulates the collections with the fixed demo records.

        Both seed users share one password hash (admin123), hashed
        once by the caller.
        """

        self.reset()
        now = utcnow()

        for user in _seed_users(password_hash, now):
            self.users.insert(user)

        for node in _seed_nodes(now):
            refresh_operational_status(node)
            self.nodes.insert(node)

        for alert in _seed_alerts(now):
            alert["alertId"] = self.ids.alert_id()
            self.alerts.insert(alert)

        logger.info("✅ Sample data loaded:")
        logger.info(f"   👤 {len(self.users)} users (admin@hydronexus.com / admin123)")
        logger.info(f"   🔧 {len(self.nodes)} drainage nodes")
        logger.info(f"   🚨 {len(self.alerts)} alerts")


def _seed_users(password_hash: str, now) -> List[dict]:
    return [
        {
            "_id": "admin001",
            "username": "admin",
            "email": "admin@hydronexus.com",
            "password": password_hash,
            "role": "admin",
            "profile": {"firstName": "System", "lastName": "Administrator"},
            "preferences": {"notifications": {"email": True, "push": True}},
            "isActive": True,
            "createdAt": now,
        },
        {
            "_id": "user001",
            "username": "citizen",
            "email": "citizen@example.com",
            "password": password_hash,
            "role": "citizen",
            "profile": {"firstName": "Test", "lastName": "User"},
            "preferences": {"notifications": {"email": True, "push": True}},
            "isActive": True,
            "createdAt": now,
        },
    ]


def _node(_id, node_id, name, node_type, lat, lng, address, ward, district,
          specifications, water, blockage, flow, priority, now) -> dict:
    return {
        "_id": _id,
        "nodeId": node_id,
        "name": name,
        "type": node_type,
        "location": {
            "coordinates": {"lat": lat, "lng": lng},
            "address": address,
            "ward": ward,
            "district": district,
        },
        "specifications": specifications,
        "currentStatus": {
            "waterLevel": {"current": water, "lastUpdated": now},
            "blockageLevel": {"current": blockage, "lastUpdated": now},
            "flowRate": {"current": flow, "lastUpdated": now},
        },
        "maintenanceHistory": [],
        "isActive": True,
        "priority": priority,
        "createdAt": now,
        "updatedAt": now,
    }


def _seed_nodes(now) -> List[dict]:
    return [
        _node("node001", "DN0001", "Main Street Storm Drain", "storm_drain",
              28.6139, 77.2090, "Main Street, Central Delhi", "Central Ward", "Central Delhi",
              {"capacity": 50, "diameter": 1.5, "depth": 3.0, "material": "concrete"},
              25, 15, 120, "medium", now),
        _node("node002", "DN0002", "Park Avenue Catch Basin", "catch_basin",
              28.6129, 77.2095, "Park Avenue, Central Delhi", "Central Ward", "Central Delhi",
              {"capacity": 25, "diameter": 1.0, "depth": 2.5, "material": "concrete"},
              75, 35, 85, "high", now),
        _node("node003", "DN0003", "Industrial Zone Pump Station", "pump_station",
              28.6149, 77.2085, "Industrial Zone, Delhi", "Industrial Ward", "East Delhi",
              {"capacity": 200, "material": "steel"},
              90, 55, 180, "critical", now),
        _node("node004", "DN0004", "Riverside Culvert", "culvert",
              28.6159, 77.2100, "Riverside Road, Delhi", "River Ward", "North Delhi",
              {"capacity": 100, "diameter": 2.0, "depth": 4.0, "material": "concrete"},
              45, 10, 150, "medium", now),
        _node("node005", "DN0005", "Market Area Channel", "channel",
              28.6120, 77.2110, "Market Street, Delhi", "Commercial Ward", "South Delhi",
              {"capacity": 75, "depth": 2.0, "material": "brick"},
              60, 25, 100, "medium", now),
    ]


def _seed_alerts(now) -> List[dict]:
    return [
        {
            "_id": "alert001",
            "type": "flood_warning",
            "severity": "critical",
            "title": "Critical Water Level at Industrial Zone",
            "message": "Water level has exceeded critical threshold at DN0003. Immediate attention required.",
            "location": {
                "coordinates": {"lat": 28.6149, "lng": 77.2085},
                "address": "Industrial Zone, Delhi",
                "ward": "Industrial Ward",
                "district": "East Delhi",
            },
            "source": "sensor",
            "sourceDetails": {"nodeId": "DN0003", "automaticTrigger": True},
            "status": "active",
            "priority": 5,
            "targetAudience": ["all_citizens", "emergency_services"],
            "timeline": {"createdAt": now - timedelta(hours=1)},
        },
        {
            "_id": "alert002",
            "type": "drainage_blockage",
            "severity": "high",
            "title": "Blockage Detected at Park Avenue",
            "message": "Blockage level above warning threshold at DN0002. Maintenance team notified.",
            "location": {
                "coordinates": {"lat": 28.6129, "lng": 77.2095},
                "address": "Park Avenue, Central Delhi",
                "ward": "Central Ward",
                "district": "Central Delhi",
            },
            "source": "sensor",
            "sourceDetails": {"nodeId": "DN0002", "automaticTrigger": True},
            "status": "acknowledged",
            "priority": 4,
            "targetAudience": ["admin_only", "maintenance_crew"],
            "timeline": {
                "createdAt": now - timedelta(hours=2),
                "acknowledgedAt": now - timedelta(hours=1),
            },
        },
    ]
