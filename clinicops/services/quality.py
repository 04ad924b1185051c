"""
Quality: incident reporting with follow-ups and patient complaints.
"""
import enum
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.orm import Session

from .. import cache as cache_keys
from ..auth.security import is_supervisor
from ..cache import cache
from ..models.models import Complaint, Incident, IncidentFollowUp, IncidentType, User
from .audit import create_audit_log
from .common import day_start, generate_number, local_today, month_bounds, paginate, row_to_dict, user_brief, utcnow
from .handover import HandoverPriority, create_handover
from .notifications import NotificationType, create_notification, notify_supervisors


logger = structlog.get_logger(__name__)


class IncidentSeverity(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class IncidentStatus(str, enum.Enum):
    REPORTED = "REPORTED"
    INVESTIGATING = "INVESTIGATING"
    ACTION_REQUIRED = "ACTION_REQUIRED"
    CLOSED = "CLOSED"


class ComplaintSource(str, enum.Enum):
    PATIENT = "PATIENT"
    FAMILY = "FAMILY"
    INTERNAL = "INTERNAL"
    EXTERNAL = "EXTERNAL"


class ComplaintStatus(str, enum.Enum):
    RECEIVED = "RECEIVED"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


OPEN_INCIDENT_STATUSES = ("REPORTED", "INVESTIGATING", "ACTION_REQUIRED")
OPEN_COMPLAINT_STATUSES = ("RECEIVED", "INVESTIGATING")


# ---------- incident types ----------
def list_incident_types(db: Session) -> List[Dict]:
    return cache.wrap(
        cache_keys.INCIDENT_TYPES,
        lambda: [
            row_to_dict(t)
            for t in db.query(IncidentType).filter(IncidentType.is_active.is_(True)).order_by(IncidentType.name.asc()).all()
        ],
        cache_keys.TTL_LONG,
    )


def create_incident_type(db: Session, data: Dict[str, Any]) -> Dict:
    if db.query(IncidentType.id).filter(IncidentType.name == data["name"]).first():
        raise HTTPException(status_code=400, detail="Incident type already exists")
    t = IncidentType(**data)
    db.add(t)
    db.commit()
    db.refresh(t)
    cache.delete(cache_keys.INCIDENT_TYPES)
    return row_to_dict(t)


def update_incident_type(db: Session, type_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    t = db.query(IncidentType).filter(IncidentType.id == type_id).first()
    if not t:
        raise HTTPException(status_code=404, detail="Incident type not found")
    for key, value in data.items():
        setattr(t, key, value)
    db.commit()
    db.refresh(t)
    cache.delete(cache_keys.INCIDENT_TYPES)
    return row_to_dict(t)


# ---------- incidents ----------
def serialize_incident(i: Incident, detail: bool = False) -> Dict:
    data = row_to_dict(i)
    data["type"] = {"id": i.type.id, "name": i.type.name} if i.type else None
    data["reporter"] = {"id": i.reporter.id, "name": i.reporter.name} if i.reporter else None
    data["handler"] = {"id": i.handler.id, "name": i.handler.name} if i.handler else None
    if detail:
        data["follow_ups"] = [
            {**row_to_dict(f), "author": {"id": f.author.id, "name": f.author.name} if f.author else None}
            for f in i.follow_ups
        ]
    return data


def get_incident_or_404(db: Session, incident_id: uuid.UUID) -> Incident:
    incident = db.query(Incident).filter(Incident.id == incident_id).first()
    if not incident:
        raise HTTPException(status_code=404, detail="Incident not found")
    return incident


def list_incidents(
    db: Session,
    viewer: User,
    type_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    severity: Optional[str] = None,
    is_near_miss: Optional[bool] = None,
    reporter_id: Optional[uuid.UUID] = None,
    handler_id: Optional[uuid.UUID] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(Incident)
    if not is_supervisor(viewer):
        q = q.filter(Incident.reporter_id == viewer.id)
    elif reporter_id:
        q = q.filter(Incident.reporter_id == reporter_id)
    if type_id:
        q = q.filter(Incident.type_id == type_id)
    if status:
        q = q.filter(Incident.status == status)
    if severity:
        q = q.filter(Incident.severity == severity)
    if is_near_miss is not None:
        q = q.filter(Incident.is_near_miss.is_(is_near_miss))
    if handler_id:
        q = q.filter(Incident.handler_id == handler_id)
    if start:
        q = q.filter(Incident.occurred_at >= start)
    if end:
        q = q.filter(Incident.occurred_at <= end)
    q = q.order_by(Incident.occurred_at.desc())
    return paginate(q, page, limit, serialize_incident)


def get_incident(db: Session, incident_id: uuid.UUID, viewer: User) -> Dict:
    incident = get_incident_or_404(db, incident_id)
    if incident.reporter_id != viewer.id and not is_supervisor(viewer):
        raise HTTPException(status_code=403, detail="You can only view incidents you reported")
    return serialize_incident(incident, detail=True)


def report_incident(db: Session, data: Dict[str, Any], reporter: User) -> Dict:
    severity = data.pop("severity", None)
    incident_type = None
    if data.get("type_id"):
        incident_type = db.query(IncidentType).filter(IncidentType.id == data["type_id"]).first()
        if not incident_type:
            raise HTTPException(status_code=404, detail="Incident type not found")
    if not severity:
        severity = incident_type.default_severity if incident_type else IncidentSeverity.MEDIUM.value
    incident = Incident(
        incident_no=generate_number("INC"),
        reporter_id=reporter.id,
        severity=severity,
        status=IncidentStatus.REPORTED.value,
        **data,
    )
    db.add(incident)
    db.commit()
    db.refresh(incident)
    logger.info("incident_reported", incident_no=incident.incident_no, severity=incident.severity, near_miss=incident.is_near_miss)
    notify_supervisors(
        db,
        NotificationType.INCIDENT_REPORTED,
        "Near-miss 事件通報" if incident.is_near_miss else "異常事件通報",
        f"{incident.incident_no}：{incident.title}",
        {"incident_id": incident.id, "severity": incident.severity},
        exclude=reporter.id,
    )
    return serialize_incident(incident, detail=True)


def update_incident(db: Session, incident_id: uuid.UUID, data: Dict[str, Any], actor: User) -> Dict:
    incident = get_incident_or_404(db, incident_id)
    previous_handler = incident.handler_id
    for key, value in data.items():
        setattr(incident, key, value)
    if data.get("status") == IncidentStatus.CLOSED.value and incident.closed_at is None:
        incident.closed_at = utcnow()
    db.commit()
    db.refresh(incident)
    if incident.handler_id and incident.handler_id != previous_handler:
        create_notification(
            db,
            incident.handler_id,
            NotificationType.INCIDENT_ASSIGNED,
            "事件指派",
            f"您被指派處理事件 {incident.incident_no}：{incident.title}",
            {"incident_id": incident.id},
        )
    create_audit_log(db, "INCIDENT_UPDATE", actor.id, target_id=incident.id, target_type="INCIDENT", metadata={"fields": sorted(data.keys())})
    return serialize_incident(incident, detail=True)


def add_follow_up(db: Session, incident_id: uuid.UUID, content: str, action_taken: Optional[str], author: User) -> Dict:
    get_incident_or_404(db, incident_id)
    f = IncidentFollowUp(incident_id=incident_id, author_id=author.id, content=content, action_taken=action_taken)
    db.add(f)
    db.commit()
    db.refresh(f)
    data = row_to_dict(f)
    data["author"] = {"id": author.id, "name": author.name}
    return data


def create_task_from_incident(db: Session, incident_id: uuid.UUID, actor: User) -> Dict:
    """Open a HIGH priority handover carrying the incident's corrective action."""
    incident = get_incident_or_404(db, incident_id)
    task = create_handover(
        db,
        {
            "title": f"改善措施：{incident.title}",
            "content": (
                f"事件編號：{incident.incident_no}\n\n"
                f"原因：{incident.root_cause or '待分析'}\n\n"
                f"矯正措施：{incident.corrective_action or '待定'}"
            ),
            "priority": HandoverPriority.HIGH.value,
            "assignee_id": incident.handler_id,
            "related_incident_id": incident.id,
        },
        actor,
    )
    incident.status = IncidentStatus.ACTION_REQUIRED.value
    incident.task_id = task["id"]
    db.commit()
    return task


# ---------- complaints ----------
def serialize_complaint(c: Complaint) -> Dict:
    data = row_to_dict(c)
    data["handler"] = {"id": c.handler.id, "name": c.handler.name} if c.handler else None
    data["created_by"] = {"id": c.created_by.id, "name": c.created_by.name} if c.created_by else None
    return data


def get_complaint_or_404(db: Session, complaint_id: uuid.UUID) -> Complaint:
    c = db.query(Complaint).filter(Complaint.id == complaint_id).first()
    if not c:
        raise HTTPException(status_code=404, detail="Complaint not found")
    return c


def list_complaints(
    db: Session,
    source: Optional[str] = None,
    status: Optional[str] = None,
    handler_id: Optional[uuid.UUID] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(Complaint)
    if source:
        q = q.filter(Complaint.source == source)
    if status:
        q = q.filter(Complaint.status == status)
    if handler_id:
        q = q.filter(Complaint.handler_id == handler_id)
    q = q.order_by(Complaint.created_at.desc())
    return paginate(q, page, limit, serialize_complaint)


def get_complaint(db: Session, complaint_id: uuid.UUID) -> Dict:
    return serialize_complaint(get_complaint_or_404(db, complaint_id))


def create_complaint(db: Session, data: Dict[str, Any], actor: User) -> Dict:
    c = Complaint(
        complaint_no=generate_number("CPL"),
        created_by_id=actor.id,
        status=ComplaintStatus.RECEIVED.value,
        **data,
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    notify_supervisors(
        db,
        NotificationType.COMPLAINT_RECEIVED,
        "收到客訴",
        f"{c.complaint_no}：{c.subject}",
        {"complaint_id": c.id},
        exclude=actor.id,
    )
    return serialize_complaint(c)


def update_complaint(db: Session, complaint_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    c = get_complaint_or_404(db, complaint_id)
    for key, value in data.items():
        setattr(c, key, value)
    if data.get("status") == ComplaintStatus.CLOSED.value and c.closed_at is None:
        c.closed_at = utcnow()
    db.commit()
    db.refresh(c)
    return serialize_complaint(c)


# ---------- stats ----------
def quality_stats(db: Session) -> Dict:
    today = local_today()
    start, end = month_bounds(today.year, today.month)
    month_start, month_end = day_start(start), day_start(end)
    return {
        "open_incidents": db.query(Incident).filter(Incident.status.in_(OPEN_INCIDENT_STATUSES)).count(),
        "near_miss_count": db.query(Incident).filter(Incident.is_near_miss.is_(True)).count(),
        "open_complaints": db.query(Complaint).filter(Complaint.status.in_(OPEN_COMPLAINT_STATUSES)).count(),
        "monthly_incidents": db.query(Incident)
        .filter(Incident.occurred_at >= month_start, Incident.occurred_at < month_end)
        .count(),
        "monthly_complaints": db.query(Complaint)
        .filter(Complaint.created_at >= month_start, Complaint.created_at < month_end)
        .count(),
    }


def incident_trends(db: Session, months: int = 6) -> List[Dict]:
    """Incident counts per type name for the last ``months`` months, oldest first."""
    today = local_today()
    year, month = today.year, today.month
    periods = []
    for _ in range(months):
        periods.append((year, month))
        year, month = (year - 1, 12) if month == 1 else (year, month - 1)
    periods.reverse()

    first = month_bounds(*periods[0])[0]
    last = month_bounds(*periods[-1])[1]
    rows = (
        db.query(Incident.occurred_at, IncidentType.name)
        .outerjoin(IncidentType, IncidentType.id == Incident.type_id)
        .filter(Incident.occurred_at >= day_start(first), Incident.occurred_at < day_start(last))
        .all()
    )
    buckets = {p: {} for p in periods}
    for occurred_at, type_name in rows:
        counts = buckets[(occurred_at.year, occurred_at.month)]
        name = type_name or "未分類"
        counts[name] = counts.get(name, 0) + 1
    return [
        {"month": f"{y}-{m:02d}", "counts": counts, "total": sum(counts.values())}
        for (y, m), counts in buckets.items()
    ]
