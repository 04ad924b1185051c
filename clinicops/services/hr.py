"""
HR: employee profiles, certifications, skills and leave requests.
"""
import enum
import uuid
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from .. import cache as cache_keys
from ..auth.security import is_supervisor
from ..cache import cache
from ..config import settings
from ..models.models import (
    Certification,
    EmployeeProfile,
    LeaveRequest,
    SkillDefinition,
    User,
    UserSkill,
)
from .audit import create_audit_log
from .common import local_today, paginate, row_to_dict, user_brief, utcnow
from .notifications import NotificationType, create_notification, notify_supervisors


logger = structlog.get_logger(__name__)


class CertificationStatus(str, enum.Enum):
    VALID = "VALID"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRED = "EXPIRED"


class SkillLevel(str, enum.Enum):
    BASIC = "BASIC"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"


class LeaveType(str, enum.Enum):
    ANNUAL = "ANNUAL"
    SICK = "SICK"
    PERSONAL = "PERSONAL"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"
    MARRIAGE = "MARRIAGE"
    BEREAVEMENT = "BEREAVEMENT"
    UNPAID = "UNPAID"


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


LEAVE_TYPE_LABELS = {
    "ANNUAL": "特休",
    "SICK": "病假",
    "PERSONAL": "事假",
    "MATERNITY": "產假",
    "PATERNITY": "陪產假",
    "MARRIAGE": "婚假",
    "BEREAVEMENT": "喪假",
    "UNPAID": "無薪假",
}


def certification_status(expiry_date: Optional[date], today: Optional[date] = None) -> str:
    if expiry_date is None:
        return CertificationStatus.VALID.value
    today = today or local_today()
    if expiry_date < today:
        return CertificationStatus.EXPIRED.value
    if expiry_date <= today + timedelta(days=settings.certification_expiring_days):
        return CertificationStatus.EXPIRING_SOON.value
    return CertificationStatus.VALID.value


def _get_user_or_404(db: Session, user_id: uuid.UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ---------- employees ----------
def list_employees(db: Session) -> List[Dict]:
    users = db.query(User).filter(User.is_active.is_(True)).order_by(User.name.asc()).all()
    cert_counts = dict(db.query(Certification.user_id, func.count(Certification.id)).group_by(Certification.user_id).all())
    skill_counts = dict(db.query(UserSkill.user_id, func.count(UserSkill.id)).group_by(UserSkill.user_id).all())
    out = []
    for u in users:
        data = user_brief(u)
        data["profile"] = row_to_dict(u.profile, exclude=("user_id",))
        data["certification_count"] = cert_counts.get(u.id, 0)
        data["skill_count"] = skill_counts.get(u.id, 0)
        out.append(data)
    return out


def get_employee(db: Session, user_id: uuid.UUID, viewer: User) -> Dict:
    if viewer.id != user_id and not is_supervisor(viewer):
        raise HTTPException(status_code=403, detail="You can only view your own employee record")
    user = _get_user_or_404(db, user_id)
    data = user_brief(user)
    data["is_active"] = user.is_active
    data["profile"] = row_to_dict(user.profile, exclude=("user_id",))
    data["certifications"] = [row_to_dict(c) for c in sorted(user.certifications, key=lambda c: c.expiry_date or date.max)]
    data["skills"] = [serialize_user_skill(s) for s in user.skills]
    return data


def create_profile(db: Session, user_id: uuid.UUID, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    _get_user_or_404(db, user_id)
    if db.query(EmployeeProfile.id).filter(EmployeeProfile.user_id == user_id).first():
        raise HTTPException(status_code=400, detail="Employee profile already exists")
    profile = EmployeeProfile(user_id=user_id, **data)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    create_audit_log(db, "EMPLOYEE_PROFILE_CREATE", actor_id, target_id=user_id, target_type="USER")
    return row_to_dict(profile)


def update_profile(db: Session, user_id: uuid.UUID, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    _get_user_or_404(db, user_id)
    profile = db.query(EmployeeProfile).filter(EmployeeProfile.user_id == user_id).first()
    if profile is None:
        profile = EmployeeProfile(user_id=user_id)
        db.add(profile)
    for key, value in data.items():
        setattr(profile, key, value)
    db.commit()
    db.refresh(profile)
    create_audit_log(db, "EMPLOYEE_PROFILE_UPDATE", actor_id, target_id=user_id, target_type="USER", metadata={"fields": sorted(data.keys())})
    return row_to_dict(profile)


# ---------- certifications ----------
def _get_cert_or_404(db: Session, cert_id: uuid.UUID) -> Certification:
    cert = db.query(Certification).filter(Certification.id == cert_id).first()
    if not cert:
        raise HTTPException(status_code=404, detail="Certification not found")
    return cert


def create_certification(db: Session, user_id: uuid.UUID, data: Dict[str, Any], actor_id: uuid.UUID) -> Dict:
    _get_user_or_404(db, user_id)
    if not data.get("status"):
        data["status"] = certification_status(data.get("expiry_date"))
    cert = Certification(user_id=user_id, **data)
    db.add(cert)
    db.commit()
    db.refresh(cert)
    create_audit_log(db, "CERTIFICATION_CREATE", actor_id, target_id=cert.id, target_type="CERTIFICATION", metadata={"user_id": user_id, "name": cert.name})
    return row_to_dict(cert)


def update_certification(db: Session, cert_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    cert = _get_cert_or_404(db, cert_id)
    for key, value in data.items():
        setattr(cert, key, value)
    if "expiry_date" in data and not data.get("status"):
        cert.status = certification_status(cert.expiry_date)
    db.commit()
    db.refresh(cert)
    return row_to_dict(cert)


def delete_certification(db: Session, cert_id: uuid.UUID, actor_id: uuid.UUID) -> Dict:
    cert = _get_cert_or_404(db, cert_id)
    meta = {"user_id": cert.user_id, "name": cert.name}
    db.delete(cert)
    db.commit()
    create_audit_log(db, "CERTIFICATION_DELETE", actor_id, target_id=cert_id, target_type="CERTIFICATION", metadata=meta)
    return {"success": True}


def expiring_certifications(db: Session, days: int = 30) -> List[Dict]:
    today = local_today()
    rows = (
        db.query(Certification)
        .filter(Certification.expiry_date >= today, Certification.expiry_date <= today + timedelta(days=days))
        .order_by(Certification.expiry_date.asc())
        .all()
    )
    out = []
    for c in rows:
        data = row_to_dict(c)
        data["days_left"] = (c.expiry_date - today).days
        data["user"] = user_brief(c.user)
        out.append(data)
    return out


def notify_expiring_certifications(db: Session, days: int = 30) -> int:
    """Remind holders of certifications expiring within ``days``."""
    sent = 0
    for c in expiring_certifications(db, days):
        create_notification(
            db,
            c["user_id"],
            NotificationType.CERTIFICATION_EXPIRING,
            "證照即將到期",
            f"{c['name']} 將於 {c['expiry_date'].isoformat()} 到期",
            {"certification_id": c["id"]},
            commit=False,
        )
        sent += 1
    db.commit()
    return sent


# ---------- skills ----------
def list_skill_definitions(db: Session) -> List[Dict]:
    return cache.wrap(
        cache_keys.SKILL_DEFINITIONS,
        lambda: [row_to_dict(s) for s in db.query(SkillDefinition).order_by(SkillDefinition.category.asc(), SkillDefinition.name.asc()).all()],
        cache_keys.TTL_LONG,
    )


def create_skill_definition(db: Session, name: str, description: Optional[str], category: Optional[str]) -> Dict:
    if db.query(SkillDefinition.id).filter(SkillDefinition.name == name).first():
        raise HTTPException(status_code=400, detail="Skill already exists")
    skill = SkillDefinition(name=name, description=description, category=category)
    db.add(skill)
    db.commit()
    db.refresh(skill)
    cache.delete(cache_keys.SKILL_DEFINITIONS)
    return row_to_dict(skill)


def serialize_user_skill(us: UserSkill) -> Dict:
    data = row_to_dict(us)
    data["skill"] = row_to_dict(us.skill)
    return data


def assign_skill(db: Session, user_id: uuid.UUID, skill_id: uuid.UUID, level: str, certified_at: Optional[date], notes: Optional[str]) -> Dict:
    _get_user_or_404(db, user_id)
    if not db.query(SkillDefinition.id).filter(SkillDefinition.id == skill_id).first():
        raise HTTPException(status_code=404, detail="Skill not found")
    if db.query(UserSkill.id).filter(UserSkill.user_id == user_id, UserSkill.skill_id == skill_id).first():
        raise HTTPException(status_code=400, detail="User already has this skill")
    us = UserSkill(user_id=user_id, skill_id=skill_id, level=level or SkillLevel.BASIC.value, certified_at=certified_at, notes=notes)
    db.add(us)
    db.commit()
    db.refresh(us)
    return serialize_user_skill(us)


def _get_user_skill_or_404(db: Session, user_skill_id: uuid.UUID) -> UserSkill:
    us = db.query(UserSkill).filter(UserSkill.id == user_skill_id).first()
    if not us:
        raise HTTPException(status_code=404, detail="User skill not found")
    return us


def update_user_skill(db: Session, user_skill_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    us = _get_user_skill_or_404(db, user_skill_id)
    for key, value in data.items():
        setattr(us, key, value)
    db.commit()
    db.refresh(us)
    return serialize_user_skill(us)


def remove_user_skill(db: Session, user_skill_id: uuid.UUID) -> Dict:
    us = _get_user_skill_or_404(db, user_skill_id)
    db.delete(us)
    db.commit()
    return {"success": True}


# ---------- leaves ----------
def serialize_leave(lr: LeaveRequest) -> Dict:
    data = row_to_dict(lr)
    data["type_label"] = LEAVE_TYPE_LABELS.get(lr.type, lr.type)
    data["user"] = user_brief(lr.user)
    data["approved_by"] = {"id": lr.approved_by.id, "name": lr.approved_by.name} if lr.approved_by else None
    data["cover_user"] = user_brief(lr.cover_user)
    return data


def list_leaves(
    db: Session,
    viewer: User,
    user_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(LeaveRequest)
    if not is_supervisor(viewer):
        q = q.filter(LeaveRequest.user_id == viewer.id)
    elif user_id:
        q = q.filter(LeaveRequest.user_id == user_id)
    if status:
        q = q.filter(LeaveRequest.status == status)
    # Overlap with [start_date, end_date]
    if start_date:
        q = q.filter(LeaveRequest.end_date >= start_date)
    if end_date:
        q = q.filter(LeaveRequest.start_date <= end_date)
    q = q.order_by(LeaveRequest.start_date.desc(), LeaveRequest.created_at.desc())
    return paginate(q, page, limit, serialize_leave)


def create_leave(db: Session, user: User, data: Dict[str, Any]) -> Dict:
    if data["end_date"] < data["start_date"]:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    cover_user_id = data.get("cover_user_id")
    if cover_user_id is not None:
        if cover_user_id == user.id:
            raise HTTPException(status_code=400, detail="Cover user must be someone else")
        cover = _get_user_or_404(db, cover_user_id)
        if not cover.is_active:
            raise HTTPException(status_code=400, detail="Cover user is not active")
    days = data.get("days")
    if days is None:
        days = (data["end_date"] - data["start_date"]).days + 1
    lr = LeaveRequest(
        user_id=user.id,
        type=data["type"],
        start_date=data["start_date"],
        end_date=data["end_date"],
        days=days,
        reason=data.get("reason"),
        cover_user_id=cover_user_id,
        status=LeaveStatus.PENDING.value,
    )
    db.add(lr)
    db.commit()
    db.refresh(lr)
    notify_supervisors(
        db,
        NotificationType.LEAVE_REQUEST,
        "請假申請",
        f"{user.name} 申請{LEAVE_TYPE_LABELS.get(lr.type, lr.type)} {lr.start_date.isoformat()} ~ {lr.end_date.isoformat()}",
        {"leave_id": lr.id},
        exclude=user.id,
    )
    return serialize_leave(lr)


def _get_leave_or_404(db: Session, leave_id: uuid.UUID) -> LeaveRequest:
    lr = db.query(LeaveRequest).filter(LeaveRequest.id == leave_id).first()
    if not lr:
        raise HTTPException(status_code=404, detail="Leave request not found")
    return lr


def review_leave(db: Session, leave_id: uuid.UUID, approve: bool, reviewer: User, note: Optional[str] = None) -> Dict:
    lr = _get_leave_or_404(db, leave_id)
    if lr.status != LeaveStatus.PENDING.value:
        raise HTTPException(status_code=400, detail="Leave request is not pending")
    lr.status = LeaveStatus.APPROVED.value if approve else LeaveStatus.REJECTED.value
    lr.approved_by_id = reviewer.id
    lr.approved_at = utcnow()
    lr.review_note = note
    db.commit()
    db.refresh(lr)
    create_notification(
        db,
        lr.user_id,
        NotificationType.LEAVE_APPROVED,
        "請假審核結果",
        f"您的{LEAVE_TYPE_LABELS.get(lr.type, lr.type)}申請已{'核准' if approve else '駁回'}",
        {"leave_id": lr.id, "status": lr.status},
    )
    create_audit_log(db, "LEAVE_REVIEW", reviewer.id, target_id=lr.id, target_type="LEAVE_REQUEST", metadata={"status": lr.status})
    return serialize_leave(lr)


def cancel_leave(db: Session, leave_id: uuid.UUID, user: User) -> Dict:
    lr = _get_leave_or_404(db, leave_id)
    if lr.user_id != user.id:
        raise HTTPException(status_code=403, detail="You can only cancel your own leave requests")
    if lr.status != LeaveStatus.PENDING.value:
        raise HTTPException(status_code=400, detail="Only pending leaves can be cancelled")
    lr.status = LeaveStatus.CANCELLED.value
    db.commit()
    db.refresh(lr)
    return serialize_leave(lr)


def hr_stats(db: Session) -> Dict:
    today = local_today()
    return {
        "total_employees": db.query(User).count(),
        "active_employees": db.query(User).filter(User.is_active.is_(True)).count(),
        "expiring_certifications": db.query(Certification)
        .filter(Certification.expiry_date >= today, Certification.expiry_date <= today + timedelta(days=settings.certification_expiring_days))
        .count(),
        "pending_leaves": db.query(LeaveRequest).filter(LeaveRequest.status == LeaveStatus.PENDING.value).count(),
        "today_leaves": db.query(LeaveRequest)
        .filter(
            and_(
                LeaveRequest.status == LeaveStatus.APPROVED.value,
                LeaveRequest.start_date <= today,
                LeaveRequest.end_date >= today,
            )
        )
        .count(),
    }
