# ─────────────────────────────────────────────────────────────────
# routes/alerts.py — Alert Endpoints
#
# Mounted at /api/alerts. The public / active / location / statistics
# views need no token. Listing everything and fetching one alert
# needs a signed-in user; creating and progressing alerts needs an
# operator or admin.
# ─────────────────────────────────────────────────────────────────

from typing import Optional

from fastapi import APIRouter, Depends

from alerts import is_public, raise_alert, set_alert_status
from auth import current_user, optional_user, require_role
from database import Store
from deps import get_broadcaster, get_store
from errors import NotFound, ok
from models import OPEN_ALERT_STATUSES, PUBLIC_ALERT_STATUSES, AlertCreate, AlertStatusUpdate
from notifications import Broadcaster
from status import count_alert_severities

router = APIRouter(prefix="/api/alerts", tags=["Alerts"])

PUBLIC_LIMIT = 50


def _created_at(alert: dict):
    return (alert.get("timeline") or {}).get("createdAt")


def _newest_first(alerts: list) -> list:
    # Alerts without a timestamp sort last
    dated = [a for a in alerts if _created_at(a) is not None]
    undated = [a for a in alerts if _created_at(a) is None]
    return sorted(dated, key=_created_at, reverse=True) + undated


@router.get("/public")
async def public_alerts(store: Store = Depends(get_store)):
    alerts = store.alerts.find(is_public)[:PUBLIC_LIMIT]
    return ok({"alerts": alerts, "count": len(alerts)})


@router.get("/active", dependencies=[Depends(optional_user)])
async def active_alerts(store: Store = Depends(get_store)):
    alerts = store.alerts.find(lambda a: a.get("status") in OPEN_ALERT_STATUSES)
    return ok({"alerts": alerts, "count": len(alerts)})


@router.get("/location", dependencies=[Depends(optional_user)])
async def alerts_by_location(
    ward: Optional[str] = None,
    district: Optional[str] = None,
    store: Store = Depends(get_store),
):
    alerts = store.alerts.find(lambda a: a.get("status") in PUBLIC_ALERT_STATUSES)
    if ward:
        alerts = [a for a in alerts if (a.get("location") or {}).get("ward") == ward]
    if district:
        alerts = [a for a in alerts if (a.get("location") or {}).get("district") == district]
    return ok({"alerts": alerts, "count": len(alerts)})


@router.get("/statistics", dependencies=[Depends(optional_user)])
async def alert_statistics(store: Store = Depends(get_store)):
    alerts = store.alerts.all()
    open_count = sum(1 for a in alerts if a.get("status") in OPEN_ALERT_STATUSES)
    return ok({
        "totalAlerts": len(alerts),
        "activeAlerts": open_count,
        "resolvedAlerts": len(alerts) - open_count,
        "severityCounts": count_alert_severities(alerts),
        "recentAlerts": list(reversed(alerts[-10:])),
    })


@router.get("")
async def list_alerts(
    status: Optional[str] = None,
    severity: Optional[str] = None,
    type: Optional[str] = None,
    store: Store = Depends(get_store),
    user: dict = Depends(current_user),
):
    alerts = store.alerts.all()
    if status:
        alerts = [a for a in alerts if a.get("status") == status]
    if severity:
        alerts = [a for a in alerts if a.get("severity") == severity]
    if type:
        alerts = [a for a in alerts if a.get("type") == type]

    alerts = _newest_first(alerts)
    return ok({"alerts": alerts, "pagination": {"current": 1, "pages": 1, "total": len(alerts)}})


@router.get("/{alert_id}")
async def get_alert(alert_id: str, store: Store = Depends(get_store), user: dict = Depends(current_user)):
    alert = store.alerts.get_by_id(alert_id.upper())
    if alert is None:
        raise NotFound("Alert not found")
    return ok({"alert": alert})


@router.post("", status_code=201)
async def create_alert(
    body: AlertCreate,
    store: Store = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    user: dict = Depends(require_role("admin", "operator")),
):
    fields = body.model_dump(exclude_none=True)
    fields["sourceDetails"] = {**(fields.get("sourceDetails") or {}), "userId": user["id"]}
    alert = raise_alert(store, broadcaster, fields)
    return ok({"alert": alert}, message="Alert created")


@router.put("/{alert_id}/status")
async def update_alert_status(
    alert_id: str,
    body: AlertStatusUpdate,
    store: Store = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    user: dict = Depends(require_role("admin", "operator")),
):
    alert = store.alerts.get_by_id(alert_id.upper())
    if alert is None:
        raise NotFound("Alert not found")

    set_alert_status(store, broadcaster, alert, body.status, actor_id=user["id"])
    if body.note:
        alert.setdefault("notes", []).append({"by": user["id"], "note": body.note})
    return ok({"alert": alert}, message="Alert updated")
