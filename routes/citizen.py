# ─────────────────────────────────────────────────────────────────
# routes/citizen.py — Citizen Reports & Local Status
#
# Mounted at /api/citizen.
#
# A report belongs to the user who filed it: only that user or an
# admin may read the full record. Anyone holding the report id can
# follow its progress through /reports/track/{id}, which exposes a
# public subset of fields only.
# ─────────────────────────────────────────────────────────────────

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from alerts import is_public
from auth import current_user, optional_user
from database import Store
from deps import get_broadcaster, get_store
from errors import Forbidden, NotFound, ValidationFailed, ok
from ids import utcnow
from models import PUBLIC_ALERT_STATUSES, AreaSubscription, Feedback, ReportCreate
from notifications import ADMIN_ROOM, NEW_REPORT, Broadcaster
from status import count_node_statuses, reading

logger = logging.getLogger("routes.citizen")

router = APIRouter(prefix="/api/citizen", tags=["Citizen"])


def _newest_first(reports: list) -> list:
    return sorted(reports, key=lambda r: r["createdAt"], reverse=True)


def _get_report(store: Store, report_id: str) -> dict:
    report = store.reports.get_by_id(report_id.upper())
    if report is None:
        raise NotFound("Report not found")
    return report


# ─────────────────────────────────────────────────────────────────
# PUBLIC VIEWS
# ─────────────────────────────────────────────────────────────────

@router.get("/alerts/local", dependencies=[Depends(optional_user)])
async def local_alerts(store: Store = Depends(get_store)):
    alerts = store.alerts.find(is_public)[:20]
    return ok({"alerts": alerts, "count": len(alerts)})


@router.get("/nodes/nearby", dependencies=[Depends(optional_user)])
async def nearby_node_status(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: float = Query(2000, gt=0),
    store: Store = Depends(get_store),
):
    """Trimmed view of every active node; no distance filtering yet."""

    if lat is None or lng is None:
        raise ValidationFailed("Latitude and longitude are required")

    nodes = [
        {
            "nodeId": n["nodeId"],
            "name": n.get("name"),
            "type": n.get("type"),
            "status": (n.get("currentStatus") or {}).get("operationalStatus", "unknown"),
            "waterLevel": reading(n.get("currentStatus"), "waterLevel"),
            "location": n.get("location"),
        }
        for n in store.nodes.find(lambda n: n.get("isActive"))
    ]
    return ok({"nodes": nodes, "count": len(nodes)})


@router.get("/reports/track/{report_id}")
async def track_report(report_id: str, store: Store = Depends(get_store)):
    report = _get_report(store, report_id)
    return ok({
        "reportId": report["reportId"],
        "status": report["status"],
        "priority": report.get("priority"),
        "createdAt": report["createdAt"],
        "updates": [u for u in report.get("updates", []) if u.get("isPublic", True)],
        "resolution": report.get("resolution") if report["status"] == "resolved" else None,
    })


# ─────────────────────────────────────────────────────────────────
# SIGNED-IN CITIZEN
# ─────────────────────────────────────────────────────────────────

@router.get("/dashboard")
async def citizen_dashboard(user: dict = Depends(current_user), store: Store = Depends(get_store)):
    mine = _newest_first(store.reports.find(lambda r: r["submittedBy"] == user["id"]))
    resolved = sum(1 for r in mine if r["status"] == "resolved")
    open_alerts = store.alerts.find(lambda a: a.get("status") in PUBLIC_ALERT_STATUSES)

    return ok({
        "myStats": {
            "totalReports": len(mine),
            "resolvedReports": resolved,
            "pendingReports": len(mine) - resolved,
        },
        "recentReports": mine[:5],
        "activeAlerts": open_alerts[:5],
        "systemStatus": count_node_statuses(store.nodes.find(lambda n: n.get("isActive"))),
    })


@router.post("/reports", status_code=201)
async def submit_report(
    body: ReportCreate,
    user: dict = Depends(current_user),
    store: Store = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    report = store.reports.insert({
        **body.model_dump(exclude_none=True),
        "reportId": store.ids.report_id(),
        "submittedBy": user["id"],
        "status": "submitted",
        "updates": [],
        "createdAt": utcnow(),
    })

    logger.info(f"📝 Report {report['reportId']} ({report['reportType']}/{report['severity']}) from {user['username']}")

    broadcaster.emit_to(ADMIN_ROOM, NEW_REPORT, {
        "reportId": report["reportId"],
        "type": report["reportType"],
        "severity": report["severity"],
        "title": report["title"],
        "location": report["location"],
    })

    return ok(
        {"report": {"reportId": report["reportId"], "status": report["status"], "createdAt": report["createdAt"]}},
        message="Report submitted successfully",
    )


@router.get("/reports")
async def my_reports(
    status: Optional[str] = None,
    user: dict = Depends(current_user),
    store: Store = Depends(get_store),
):
    reports = store.reports.find(lambda r: r["submittedBy"] == user["id"])
    if status:
        reports = [r for r in reports if r["status"] == status]
    reports = _newest_first(reports)
    return ok({"reports": reports, "pagination": {"current": 1, "pages": 1, "total": len(reports)}})


@router.get("/reports/{report_id}")
async def get_report(report_id: str, user: dict = Depends(current_user), store: Store = Depends(get_store)):
    report = _get_report(store, report_id)
    if report["submittedBy"] != user["id"] and user.get("role") != "admin":
        raise Forbidden("Not authorized to view this report")
    return ok({"report": report})


@router.post("/reports/{report_id}/feedback")
async def add_feedback(
    report_id: str,
    body: Feedback,
    user: dict = Depends(current_user),
    store: Store = Depends(get_store),
):
    report = store.reports.find_one(
        lambda r: r["reportId"] == report_id.upper() and r["submittedBy"] == user["id"]
    )
    if report is None:
        raise NotFound("Report not found")
    if report["status"] != "resolved":
        raise ValidationFailed("Can only provide feedback for resolved reports")

    report["feedback"] = {**body.model_dump(exclude_none=True), "submittedAt": utcnow()}
    logger.info(f"⭐ Feedback on {report['reportId']}: {body.rating}/5")
    return ok(message="Feedback submitted successfully")


@router.post("/subscribe")
async def subscribe_to_area(
    body: AreaSubscription,
    user: dict = Depends(current_user),
    store: Store = Depends(get_store),
):
    account = store.users.get_by_id(user["id"])
    if account is None:
        raise NotFound("User not found")

    area = {"radius": body.radius, "ward": body.ward, "district": body.district}
    if body.lat is not None and body.lng is not None:
        area["coordinates"] = {"lat": body.lat, "lng": body.lng}
    account.setdefault("preferences", {})["alertArea"] = area

    return ok(message="Successfully subscribed to area alerts")
