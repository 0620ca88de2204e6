# ─────────────────────────────────────────────────────────────────
# routes/admin.py — Admin Console
#
# Mounted at /api/admin. Every route here sits behind the admin
# role gate (set once on the router), so a citizen or operator is
# turned away with 403 before any handler runs.
# ─────────────────────────────────────────────────────────────────

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from auth import public_user, require_role
from database import Store
from deps import get_broadcaster, get_store
from errors import NotFound, ValidationFailed, ok
from ids import utcnow
from models import (
    OPEN_ALERT_STATUSES,
    PENDING_REPORT_STATUSES,
    BroadcastMessage,
    ReportStatusUpdate,
    RoleUpdate,
)
from notifications import ADMIN_ROOM, BROADCAST, REPORT_UPDATED, Broadcaster
from status import count_node_statuses

logger = logging.getLogger("routes.admin")

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[Depends(require_role("admin"))],
)

admin_user = require_role("admin")


def _get_user(store: Store, user_id: str) -> dict:
    user = store.users.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    return user


@router.get("/dashboard")
async def dashboard(store: Store = Depends(get_store)):
    open_alerts = store.alerts.find(lambda a: a.get("status") in OPEN_ALERT_STATUSES)
    pending = store.reports.find(lambda r: r["status"] in PENDING_REPORT_STATUSES)
    active_nodes = store.nodes.find(lambda n: n.get("isActive"))
    critical = [n for n in active_nodes if n["currentStatus"].get("operationalStatus") == "critical"]

    return ok({
        "stats": {
            "totalUsers": len(store.users),
            "totalNodes": len(active_nodes),
            "activeAlerts": len(open_alerts),
            "pendingReports": len(pending),
        },
        "criticalNodes": critical[:10],
        "recentAlerts": open_alerts[:5],
        "recentReports": pending[:5],
    })


# ─────────────────────────────────────────────────────────────────
# USERS
# ─────────────────────────────────────────────────────────────────

@router.get("/users")
async def list_users(
    role: Optional[str] = None,
    status: Optional[str] = None,
    store: Store = Depends(get_store),
):
    users = [public_user(u) for u in store.users.all()]
    if role:
        users = [u for u in users if u.get("role") == role]
    if status:
        users = [u for u in users if u.get("isActive") == (status == "active")]
    return ok({"users": users, "pagination": {"current": 1, "pages": 1, "total": len(users)}})


@router.put("/users/{user_id}/role")
async def update_user_role(user_id: str, body: RoleUpdate, store: Store = Depends(get_store)):
    user = _get_user(store, user_id)
    previous = user.get("role")
    user["role"] = body.role
    user["updatedAt"] = utcnow()

    logger.info(f"👤 Role of '{user['username']}': {previous} → {body.role}")
    return ok({"user": public_user(user)}, message="Role updated")


@router.put("/users/{user_id}/deactivate")
async def deactivate_user(user_id: str, store: Store = Depends(get_store), admin: dict = Depends(admin_user)):
    if user_id == admin["id"]:
        raise ValidationFailed("Cannot deactivate yourself")

    user = _get_user(store, user_id)
    user["isActive"] = False
    user["updatedAt"] = utcnow()

    logger.info(f"🚫 User '{user['username']}' deactivated by {admin['username']}")
    return ok(message="User deactivated")


@router.get("/analytics")
async def analytics(store: Store = Depends(get_store)):
    today = utcnow().date().isoformat()
    statuses = count_node_statuses(store.nodes.find(lambda n: n.get("isActive")))

    return ok({
        "alertsOverTime": [{"_id": today, "count": len(store.alerts)}],
        "reportsOverTime": [{"_id": today, "count": len(store.reports)}],
        "nodeStatusDistribution": [{"_id": k, "count": v} for k, v in statuses.items()],
        "avgResponseTime": 0,
    })


# ─────────────────────────────────────────────────────────────────
# REPORTS
# ─────────────────────────────────────────────────────────────────

@router.get("/reports")
async def list_reports(
    status: Optional[str] = None,
    severity: Optional[str] = None,
    store: Store = Depends(get_store),
):
    reports = store.reports.all()
    if status:
        reports = [r for r in reports if r["status"] == status]
    if severity:
        reports = [r for r in reports if r.get("severity") == severity]
    return ok({"reports": reports, "pagination": {"current": 1, "pages": 1, "total": len(reports)}})


@router.put("/reports/{report_id}/status")
async def update_report_status(
    report_id: str,
    body: ReportStatusUpdate,
    store: Store = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    admin: dict = Depends(admin_user),
):
    """
    Moves a report to any status (transitions are not restricted)
    and records the change in the report's public update log.
    """

    report = store.reports.get_by_id(report_id.upper())
    if report is None:
        raise NotFound("Report not found")

    previous = report["status"]
    now = utcnow()
    report["status"] = body.status
    if body.adminNotes:
        report["adminNotes"] = body.adminNotes

    report.setdefault("updates", []).append({
        "timestamp": now,
        "updatedBy": admin["id"],
        "status": body.status,
        "message": body.message or f"Status changed from {previous} to {body.status}",
        "isPublic": True,
    })

    if body.status == "resolved":
        report["resolution"] = {
            **(report.get("resolution") or {}),
            "resolvedAt": now,
            "resolvedBy": admin["id"],
            "resolutionNotes": body.resolutionNotes,
        }

    logger.info(f"🔁 Report {report['reportId']}: {previous} → {body.status}")

    broadcaster.emit_to(ADMIN_ROOM, REPORT_UPDATED, {"reportId": report["reportId"], "status": report["status"]})
    return ok({"report": report}, message="Report updated")


@router.post("/broadcast")
async def broadcast_message(
    body: BroadcastMessage,
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    delivered = broadcaster.emit(BROADCAST, {
        "message": body.message,
        "type": body.type,
        "timestamp": utcnow(),
    })
    return ok({"delivered": delivered}, message="Broadcast sent")
