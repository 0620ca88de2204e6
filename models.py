# ─────────────────────────────────────────────────────────────────
# models.py — Request Schemas (Pydantic)
#
# Every JSON body the API accepts is described here. Pydantic
# rejects missing fields, wrong types, out-of-range numbers and
# unknown enum values before a handler runs, so a rejected request
# never touches the store and never fires a notification.
#
# Field names are camelCase because that is the wire format the
# dashboards already speak.
# ─────────────────────────────────────────────────────────────────

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

# ── ENUMS ─────────────────────────────────────────────────────────

Role = Literal["citizen", "operator", "admin"]

NodeType = Literal["storm_drain", "catch_basin", "culvert", "channel", "pump_station", "retention_pond"]
Material = Literal["concrete", "steel", "plastic", "brick", "composite"]
Priority = Literal["low", "medium", "high", "critical"]
OperationalStatus = Literal["normal", "warning", "critical"]
MaintenanceType = Literal["cleaning", "repair", "replacement", "inspection", "calibration"]

AlertType = Literal[
    "flood_warning",
    "drainage_blockage",
    "overflow_risk",
    "maintenance_required",
    "sensor_malfunction",
    "emergency",
    "weather_alert",
    "citizen_report",
]
AlertSeverity = Literal["low", "medium", "high", "critical"]
AlertSource = Literal["system", "citizen", "admin", "sensor", "weather_api"]
AlertStatus = Literal["active", "acknowledged", "investigating", "resolved", "cancelled"]
Audience = Literal["all_citizens", "local_residents", "emergency_services", "admin_only", "maintenance_crew"]

ReportType = Literal[
    "drainage_blockage",
    "flooding",
    "overflow",
    "broken_infrastructure",
    "maintenance_needed",
    "debris_accumulation",
    "unusual_water_flow",
    "emergency",
    "other",
]
ReportSeverity = Literal["low", "medium", "high", "emergency"]
ReportStatus = Literal[
    "submitted",
    "under_review",
    "verified",
    "assigned",
    "in_progress",
    "resolved",
    "rejected",
    "duplicate",
]

# Statuses that still need attention
OPEN_ALERT_STATUSES = ("active", "acknowledged", "investigating")
PUBLIC_ALERT_STATUSES = ("active", "acknowledged")
PUBLIC_AUDIENCES = ("all_citizens", "local_residents")
PENDING_REPORT_STATUSES = ("submitted", "under_review")

NODE_ID_PATTERN = r"^DN[0-9]{4}$"


class Schema(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


# ── SHARED SHAPES ─────────────────────────────────────────────────

class Coordinates(Schema):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Location(Schema):
    coordinates: Optional[Coordinates] = None
    address: Optional[str] = None
    landmark: Optional[str] = None
    ward: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None


class PinnedLocation(Location):
    """A location where coordinates are mandatory."""
    coordinates: Coordinates


# ── AUTH ──────────────────────────────────────────────────────────

class RegisterRequest(Schema):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    profile: Optional[dict] = None


class LoginRequest(Schema):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(Schema):
    profile: Optional[dict] = None
    preferences: Optional[dict] = None


class PasswordChange(Schema):
    currentPassword: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=6)


# ── DRAINAGE NODES ────────────────────────────────────────────────

class SensorReading(Schema):
    """
    One sensor sample. Any subset of the three readings may be sent,
    but at least one must be present.
    """

    nodeId: Optional[str] = None
    waterLevel: Optional[float] = Field(None, ge=0, le=100)
    blockageLevel: Optional[float] = Field(None, ge=0, le=100)
    flowRate: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def _has_reading(self):
        if self.waterLevel is None and self.blockageLevel is None and self.flowRate is None:
            raise ValueError("At least one of waterLevel, blockageLevel or flowRate is required")
        return self

    def readings(self) -> dict:
        return self.model_dump(exclude_none=True, exclude={"nodeId"})


class Specifications(Schema):
    capacity: float = Field(..., gt=0)
    diameter: Optional[float] = Field(None, gt=0)
    depth: Optional[float] = Field(None, gt=0)
    material: Optional[Material] = None
    installationDate: Optional[datetime] = None


class NodeCreate(Schema):
    nodeId: str = Field(..., pattern=NODE_ID_PATTERN)
    name: str = Field(..., min_length=1)
    type: NodeType
    location: PinnedLocation
    specifications: Specifications
    priority: Priority = "medium"
    readings: Optional[SensorReading] = None

    @field_validator("nodeId", mode="before")
    @classmethod
    def _upper(cls, value):
        return value.strip().upper() if isinstance(value, str) else value


class NodeUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1)
    type: Optional[NodeType] = None
    location: Optional[PinnedLocation] = None
    specifications: Optional[Specifications] = None
    priority: Optional[Priority] = None
    isActive: Optional[bool] = None
    readings: Optional[SensorReading] = None

    # Omit a field to leave it alone; null never clears a stored value
    @model_validator(mode="before")
    @classmethod
    def _no_nulls(cls, data):
        if isinstance(data, dict):
            nulled = sorted(k for k, v in data.items() if v is None)
            if nulled:
                raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return data


class MaintenanceRecord(Schema):
    type: MaintenanceType
    description: str = Field(..., min_length=1)
    cost: Optional[float] = Field(None, ge=0)
    nextMaintenanceDate: Optional[datetime] = None


# ── ALERTS ────────────────────────────────────────────────────────

class AlertCreate(Schema):
    type: AlertType
    severity: AlertSeverity
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    location: Optional[Location] = None
    source: AlertSource = "admin"
    sourceDetails: Optional[dict] = None
    priority: int = Field(3, ge=1, le=5)
    targetAudience: List[Audience] = Field(default_factory=lambda: ["all_citizens"])


class AlertStatusUpdate(Schema):
    status: AlertStatus
    note: Optional[str] = None


# ── CITIZEN REPORTS ───────────────────────────────────────────────

class ReportCreate(Schema):
    reportType: ReportType
    severity: ReportSeverity
    title: str = Field(..., min_length=1, max_length=150)
    description: str = Field(..., min_length=1, max_length=1000)
    location: PinnedLocation
    contactInfo: Optional[dict] = None
    priority: int = Field(3, ge=1, le=5)


class Feedback(Schema):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class AreaSubscription(Schema):
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    radius: float = Field(5000, gt=0)
    ward: Optional[str] = None
    district: Optional[str] = None


# ── ADMIN ─────────────────────────────────────────────────────────

class RoleUpdate(Schema):
    role: Role


class ReportStatusUpdate(Schema):
    status: ReportStatus
    adminNotes: Optional[str] = None
    message: Optional[str] = None
    resolutionNotes: Optional[str] = None


class BroadcastMessage(Schema):
    message: str = Field(..., min_length=1)
    type: Literal["info", "warning", "critical", "success"] = "info"
