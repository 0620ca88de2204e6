# ─────────────────────────────────────────────────────────────────
# alerts.py — Raising & Progressing Alerts
#
# All alert bookkeeping lives here: building the record, stamping
# the timeline, storing it and pushing it to listeners. The HTTP
# routes in routes/alerts.py and the sensor pipeline in sensors.py
# both go through these two functions, so an alert always reaches
# the dashboards the same way no matter who raised it.
# ─────────────────────────────────────────────────────────────────

import logging
from typing import Optional

from database import Store
from ids import utcnow
from models import PUBLIC_ALERT_STATUSES, PUBLIC_AUDIENCES
from notifications import ALERT_UPDATED, NEW_ALERT, Broadcaster

logger = logging.getLogger("alerts")


def is_public(alert: dict) -> bool:
    """Still open and addressed to residents."""
    return alert.get("status") in PUBLIC_ALERT_STATUSES and any(
        t in PUBLIC_AUDIENCES for t in alert.get("targetAudience") or []
    )


def raise_alert(store: Store, broadcaster: Broadcaster, fields: dict) -> dict:
    """
    Stores a new alert in the `active` state and broadcasts it
    to every connected client as `new-alert`.
    """

    alert = {
        **fields,
        "alertId": store.ids.alert_id(),
        "source": fields.get("source") or "admin",
        "status": "active",
        "timeline": {"createdAt": utcnow()},
    }
    alert.setdefault("priority", 3)
    alert.setdefault("targetAudience", ["all_citizens"])
    store.alerts.insert(alert)

    log = logger.critical if alert.get("severity") == "critical" else logger.warning
    log(f"🚨 ALERT {alert['alertId']} [{alert.get('severity')}] {alert.get('title')} (source: {alert['source']})")

    broadcaster.emit(NEW_ALERT, alert)
    return alert


def set_alert_status(
    store: Store,
    broadcaster: Broadcaster,
    alert: dict,
    status: str,
    actor_id: Optional[str] = None,
) -> dict:
    """
    Moves an alert to a new status and stamps the timeline.

    Any status may follow any other; the order is not enforced.
    """

    previous = alert.get("status")
    alert["status"] = status
    timeline = alert.setdefault("timeline", {})
    now = utcnow()
    if status == "acknowledged":
        timeline["acknowledgedAt"] = now
        timeline["acknowledgedBy"] = actor_id
    elif status == "resolved":
        timeline["resolvedAt"] = now
        timeline["resolvedBy"] = actor_id
    elif status == "cancelled":
        timeline["cancelledAt"] = now

    logger.info(f"🔁 Alert {alert['alertId']}: {previous} → {status}")
    broadcaster.emit(ALERT_UPDATED, {"alertId": alert["alertId"], "status": status})
    return alert
