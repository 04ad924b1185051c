"""
Equipment assets: maintenance schedules, maintenance records and fault reports.
"""
import enum
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import case, or_
from sqlalchemy.orm import Session

from ..models.models import Asset, FaultReport, MaintenanceRecord, MaintenanceSchedule, User
from .audit import create_audit_log
from .common import local_today, paginate, row_to_dict, user_brief, utcnow
from .notifications import NotificationType, create_notification, notify_supervisors


logger = structlog.get_logger(__name__)


class AssetStatus(str, enum.Enum):
    IN_USE = "IN_USE"
    MAINTENANCE = "MAINTENANCE"
    RETIRED = "RETIRED"
    DISPOSED = "DISPOSED"


class AssetCondition(str, enum.Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"


class MaintenanceFrequency(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class MaintenanceType(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    UNSCHEDULED = "UNSCHEDULED"
    REPAIR = "REPAIR"


class FaultSeverity(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class FaultStatus(str, enum.Enum):
    REPORTED = "REPORTED"
    INVESTIGATING = "INVESTIGATING"
    IN_REPAIR = "IN_REPAIR"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


FREQUENCY_DAYS = {"DAILY": 1, "WEEKLY": 7, "MONTHLY": 30, "QUARTERLY": 90, "YEARLY": 365}
SEVERITY_RANK = {"LOW": 1, "MEDIUM": 2, "HIGH": 3, "CRITICAL": 4}
OPEN_FAULT_STATUSES = ("REPORTED", "INVESTIGATING", "IN_REPAIR")

_severity_rank = case(SEVERITY_RANK, value=FaultReport.severity, else_=0)


def get_asset_or_404(db: Session, asset_id: uuid.UUID) -> Asset:
    asset = db.query(Asset).filter(Asset.id == asset_id).first()
    if not asset:
        raise HTTPException(status_code=404, detail="Asset not found")
    return asset


def serialize_schedule(s: MaintenanceSchedule) -> Dict:
    data = row_to_dict(s)
    data["assignee"] = {"id": s.assignee.id, "name": s.assignee.name} if s.assignee else None
    return data


def serialize_record(r: MaintenanceRecord) -> Dict:
    data = row_to_dict(r)
    data["performed_by"] = {"id": r.performed_by.id, "name": r.performed_by.name} if r.performed_by else None
    return data


def serialize_fault(f: FaultReport, with_asset: bool = False) -> Dict:
    data = row_to_dict(f)
    data["reporter"] = {"id": f.reporter.id, "name": f.reporter.name} if f.reporter else None
    data["resolved_by"] = {"id": f.resolved_by.id, "name": f.resolved_by.name} if f.resolved_by else None
    if with_asset:
        data["asset"] = {"id": f.asset.id, "asset_no": f.asset.asset_no, "name": f.asset.name}
    return data


# ---------- assets ----------
def list_assets(
    db: Session,
    category: Optional[str] = None,
    status: Optional[str] = None,
    location: Optional[str] = None,
    department: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(Asset).filter(Asset.is_active.is_(True))
    if category:
        q = q.filter(Asset.category == category)
    if status:
        q = q.filter(Asset.status == status)
    if location:
        q = q.filter(Asset.location.ilike(f"%{location}%"))
    if department:
        q = q.filter(Asset.department == department)
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Asset.name.ilike(pattern), Asset.asset_no.ilike(pattern), Asset.serial_no.ilike(pattern)))
    q = q.order_by(Asset.asset_no.asc())
    return paginate(q, page, limit, row_to_dict)


def get_asset(db: Session, asset_id: uuid.UUID) -> Dict:
    asset = get_asset_or_404(db, asset_id)
    data = row_to_dict(asset)
    data["vendor"] = {"id": asset.vendor.id, "name": asset.vendor.name, "code": asset.vendor.code} if asset.vendor else None
    data["schedules"] = [serialize_schedule(s) for s in asset.schedules]
    data["records"] = [serialize_record(r) for r in asset.records[:10]]
    data["faults"] = [serialize_fault(f) for f in asset.faults[:5]]
    return data


def create_asset(db: Session, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    if db.query(Asset.id).filter(Asset.asset_no == data["asset_no"]).first():
        raise HTTPException(status_code=400, detail="Asset number already exists")
    asset = Asset(**data)
    db.add(asset)
    db.commit()
    db.refresh(asset)
    create_audit_log(db, "ASSET_CREATE", actor_id, target_id=asset.id, target_type="ASSET", metadata={"asset_no": asset.asset_no, "name": asset.name})
    return row_to_dict(asset)


def update_asset(db: Session, asset_id: uuid.UUID, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    asset = get_asset_or_404(db, asset_id)
    if data.get("asset_no") and data["asset_no"] != asset.asset_no:
        if db.query(Asset.id).filter(Asset.asset_no == data["asset_no"]).first():
            raise HTTPException(status_code=400, detail="Asset number already exists")
    for key, value in data.items():
        setattr(asset, key, value)
    db.commit()
    db.refresh(asset)
    create_audit_log(db, "ASSET_UPDATE", actor_id, target_id=asset.id, target_type="ASSET", metadata={"fields": sorted(data.keys())})
    return row_to_dict(asset)


def expiring_warranties(db: Session, days: int = 30) -> List[Dict]:
    today = local_today()
    rows = (
        db.query(Asset)
        .filter(
            Asset.is_active.is_(True),
            Asset.warranty_expiry >= today,
            Asset.warranty_expiry <= today + timedelta(days=days),
        )
        .order_by(Asset.warranty_expiry.asc())
        .all()
    )
    out = []
    for a in rows:
        data = row_to_dict(a)
        data["days_left"] = (a.warranty_expiry - today).days
        out.append(data)
    return out


# ---------- maintenance ----------
def create_schedule(db: Session, asset_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    get_asset_or_404(db, asset_id)
    frequency = data["frequency"]
    schedule = MaintenanceSchedule(
        asset_id=asset_id,
        name=data["name"],
        frequency=frequency,
        frequency_days=FREQUENCY_DAYS[frequency],
        next_due_at=data.get("next_due_at") or utcnow(),
        assignee_id=data.get("assignee_id"),
        notes=data.get("notes"),
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return serialize_schedule(schedule)


def update_schedule(db: Session, schedule_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    schedule = db.query(MaintenanceSchedule).filter(MaintenanceSchedule.id == schedule_id).first()
    if not schedule:
        raise HTTPException(status_code=404, detail="Maintenance schedule not found")
    for key, value in data.items():
        setattr(schedule, key, value)
    if data.get("frequency"):
        schedule.frequency_days = FREQUENCY_DAYS[data["frequency"]]
    db.commit()
    db.refresh(schedule)
    return serialize_schedule(schedule)


def upcoming_maintenance(db: Session, days: int = 7) -> List[Dict]:
    horizon = utcnow() + timedelta(days=days)
    rows = (
        db.query(MaintenanceSchedule)
        .join(Asset, Asset.id == MaintenanceSchedule.asset_id)
        .filter(MaintenanceSchedule.is_active.is_(True), Asset.is_active.is_(True), MaintenanceSchedule.next_due_at <= horizon)
        .order_by(MaintenanceSchedule.next_due_at.asc())
        .all()
    )
    out = []
    for s in rows:
        data = serialize_schedule(s)
        data["asset"] = {"id": s.asset.id, "asset_no": s.asset.asset_no, "name": s.asset.name}
        out.append(data)
    return out


def create_record(db: Session, asset_id: uuid.UUID, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    get_asset_or_404(db, asset_id)
    now = utcnow()
    schedule = None
    if data.get("schedule_id"):
        schedule = (
            db.query(MaintenanceSchedule)
            .filter(MaintenanceSchedule.id == data["schedule_id"], MaintenanceSchedule.asset_id == asset_id)
            .first()
        )
        if not schedule:
            raise HTTPException(status_code=404, detail="Maintenance schedule not found")
    record = MaintenanceRecord(
        asset_id=asset_id,
        schedule_id=data.get("schedule_id"),
        type=data.get("type") or MaintenanceType.SCHEDULED.value,
        description=data.get("description") or "",
        performed_by_id=data.get("performed_by_id") or actor_id,
        performed_at=data.get("performed_at") or now,
        cost=data.get("cost"),
        notes=data.get("notes"),
    )
    db.add(record)
    if schedule is not None:
        schedule.last_done_at = now
        schedule.next_due_at = now + timedelta(days=schedule.frequency_days)
    db.commit()
    db.refresh(record)
    return serialize_record(record)


# ---------- faults ----------
def report_fault(db: Session, asset_id: uuid.UUID, description: str, severity: Optional[str], reporter: User) -> Dict:
    asset = get_asset_or_404(db, asset_id)
    fault = FaultReport(
        asset_id=asset_id,
        reporter_id=reporter.id,
        description=description,
        severity=severity or FaultSeverity.MEDIUM.value,
        status=FaultStatus.REPORTED.value,
    )
    db.add(fault)
    db.commit()
    db.refresh(fault)
    logger.info("asset_fault_reported", asset_id=str(asset.id), severity=fault.severity)
    notify_supervisors(
        db,
        NotificationType.ASSET_FAULT_REPORTED,
        "設備故障通報",
        f"{asset.name}（{asset.asset_no}）：{description[:100]}",
        {"asset_id": asset.id, "fault_id": fault.id},
        exclude=reporter.id,
    )
    return serialize_fault(fault, with_asset=True)


def list_faults(
    db: Session,
    asset_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    severity: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(FaultReport)
    if asset_id:
        q = q.filter(FaultReport.asset_id == asset_id)
    if status:
        q = q.filter(FaultReport.status == status)
    if severity:
        q = q.filter(FaultReport.severity == severity)
    q = q.order_by(_severity_rank.desc(), FaultReport.created_at.desc())
    return paginate(q, page, limit, lambda f: serialize_fault(f, with_asset=True))


def _get_fault_or_404(db: Session, fault_id: uuid.UUID) -> FaultReport:
    fault = db.query(FaultReport).filter(FaultReport.id == fault_id).first()
    if not fault:
        raise HTTPException(status_code=404, detail="Fault report not found")
    return fault


def update_fault_status(db: Session, fault_id: uuid.UUID, status: str) -> Dict:
    fault = _get_fault_or_404(db, fault_id)
    fault.status = status
    db.commit()
    db.refresh(fault)
    return serialize_fault(fault, with_asset=True)


def resolve_fault(db: Session, fault_id: uuid.UUID, resolution: str, resolver: User) -> Dict:
    fault = _get_fault_or_404(db, fault_id)
    fault.status = FaultStatus.RESOLVED.value
    fault.resolution = resolution
    fault.resolved_by_id = resolver.id
    fault.resolved_at = utcnow()
    db.commit()
    db.refresh(fault)
    if fault.reporter_id != resolver.id:
        create_notification(
            db,
            fault.reporter_id,
            NotificationType.ASSET_FAULT_REPORTED,
            "故障已排除",
            f"{fault.asset.name} 的故障回報已處理完成",
            {"asset_id": fault.asset_id, "fault_id": fault.id},
        )
    return serialize_fault(fault, with_asset=True)


def open_faults(db: Session, limit: int = 10) -> List[Dict]:
    rows = (
        db.query(FaultReport)
        .filter(FaultReport.status.in_(OPEN_FAULT_STATUSES))
        .order_by(_severity_rank.desc(), FaultReport.created_at.desc())
        .limit(limit)
        .all()
    )
    return [serialize_fault(f, with_asset=True) for f in rows]


def open_fault_count(db: Session) -> int:
    return db.query(FaultReport).filter(FaultReport.status.in_(OPEN_FAULT_STATUSES)).count()


def asset_stats(db: Session) -> Dict:
    today = local_today()
    active = db.query(Asset).filter(Asset.is_active.is_(True))
    return {
        "total_assets": active.count(),
        "in_use_assets": active.filter(Asset.status == AssetStatus.IN_USE.value).count(),
        "maintenance_assets": active.filter(Asset.status == AssetStatus.MAINTENANCE.value).count(),
        "expiring_warranty": active.filter(Asset.warranty_expiry >= today, Asset.warranty_expiry <= today + timedelta(days=30)).count(),
        "upcoming_maintenance": db.query(MaintenanceSchedule)
        .filter(MaintenanceSchedule.is_active.is_(True), MaintenanceSchedule.next_due_at <= utcnow() + timedelta(days=7))
        .count(),
        "open_faults": open_fault_count(db),
    }
