"""
Shift scheduling: the per-shift roster (MORNING/AFTERNOON/NIGHT) and the
monthly department grid with three activity periods per day.
"""
import calendar
import enum
import re
import uuid
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models.models import ScheduleEntry, Shift, User
from .audit import create_audit_log
from .common import local_today, month_bounds, row_to_dict
from .notifications import NotificationType, create_notification


logger = structlog.get_logger(__name__)


class ShiftType(str, enum.Enum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    NIGHT = "NIGHT"


SHIFT_TYPE_LABELS = {"MORNING": "早班", "AFTERNOON": "午班", "NIGHT": "晚班"}
SHIFT_TYPE_HOURS = {"MORNING": "08:00-16:00", "AFTERNOON": "16:00-24:00", "NIGHT": "00:00-08:00"}


class ScheduleDepartment(str, enum.Enum):
    SPORTS_MEDICINE = "SPORTS_MEDICINE"
    CLINIC = "CLINIC"


DEPARTMENT_LABELS = {"SPORTS_MEDICINE": "運醫", "CLINIC": "診所"}


class ShiftCode(str, enum.Enum):
    GM = "GM"
    BX = "BX"
    BE = "BE"
    OF = "OF"
    ZZ = "ZZ"
    QQ = "QQ"
    NN = "NN"


SHIFT_CODE_LABELS = {
    "GM": "全日班",
    "BX": "早晚班",
    "BE": "櫃台班",
    "OF": "公休",
    "ZZ": "休假",
    "QQ": "假日",
    "NN": "國假",
}
NON_WORKING_SHIFT_CODES = ("OF", "ZZ", "QQ", "NN")


class ActivityType(str, enum.Enum):
    SPORTS = "SPORTS"
    ELECTRO = "ELECTRO"
    NURSING = "NURSING"
    ASSISTANT = "ASSISTANT"
    RECEPTION = "RECEPTION"
    ADMIN_WORK = "ADMIN_WORK"
    NAT_HOLIDAY = "NAT_HOLIDAY"
    HOLIDAY = "HOLIDAY"
    DAY_OFF = "DAY_OFF"


ACTIVITY_LABELS = {
    "SPORTS": "運",
    "ELECTRO": "電",
    "NURSING": "護",
    "ASSISTANT": "助",
    "RECEPTION": "櫃",
    "ADMIN_WORK": "行",
    "NAT_HOLIDAY": "國",
    "HOLIDAY": "假",
    "DAY_OFF": "休",
}
PERIODS = ("period_a", "period_b", "period_c")

_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})$")


# ---------- shifts ----------
def serialize_shift(s: Shift) -> Dict:
    data = row_to_dict(s)
    data["type_label"] = SHIFT_TYPE_LABELS.get(s.type, s.type)
    data["hours"] = SHIFT_TYPE_HOURS.get(s.type)
    data["user"] = {"id": s.user.id, "name": s.user.name, "role": s.user.role} if s.user else None
    return data


def get_shift_or_404(db: Session, shift_id: uuid.UUID) -> Shift:
    shift = db.query(Shift).filter(Shift.id == shift_id).first()
    if not shift:
        raise HTTPException(status_code=404, detail="Shift not found")
    return shift


def _ensure_user(db: Session, user_id: uuid.UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _shift_exists(db: Session, day: date, shift_type: str, user_id: uuid.UUID, exclude_id: Optional[uuid.UUID] = None) -> bool:
    q = db.query(Shift.id).filter(Shift.date == day, Shift.type == shift_type, Shift.user_id == user_id)
    if exclude_id:
        q = q.filter(Shift.id != exclude_id)
    return q.first() is not None


def list_shifts(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    user_id: Optional[uuid.UUID] = None,
    shift_type: Optional[str] = None,
) -> List[Dict]:
    q = db.query(Shift)
    if start:
        q = q.filter(Shift.date >= start)
    if end:
        q = q.filter(Shift.date <= end)
    if user_id:
        q = q.filter(Shift.user_id == user_id)
    if shift_type:
        q = q.filter(Shift.type == shift_type)
    return [serialize_shift(s) for s in q.order_by(Shift.date.asc(), Shift.type.asc()).all()]


def get_shift(db: Session, shift_id: uuid.UUID) -> Dict:
    shift = get_shift_or_404(db, shift_id)
    data = serialize_shift(shift)
    data["handovers"] = [
        {"id": h.id, "title": h.title, "status": h.status, "priority": h.priority} for h in shift.handovers
    ]
    return data


def create_shift(db: Session, day: date, shift_type: str, user_id: uuid.UUID, notes: Optional[str]) -> Dict:
    _ensure_user(db, user_id)
    if _shift_exists(db, day, shift_type, user_id):
        raise HTTPException(status_code=400, detail="Shift already exists for this user")
    shift = Shift(date=day, type=shift_type, user_id=user_id, notes=notes)
    db.add(shift)
    db.commit()
    db.refresh(shift)
    create_notification(
        db,
        user_id,
        NotificationType.SHIFT_ASSIGNED,
        "新班次指派",
        f"您已被安排於 {day.isoformat()} {SHIFT_TYPE_LABELS.get(shift_type, shift_type)}",
        {"shift_id": shift.id},
    )
    return serialize_shift(shift)


def update_shift(db: Session, shift_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    shift = get_shift_or_404(db, shift_id)
    old_user_id, old_date, old_type = shift.user_id, shift.date, shift.type
    if data.get("user_id"):
        _ensure_user(db, data["user_id"])
    new_date = data.get("date") or shift.date
    new_type = data.get("type") or shift.type
    new_user = data.get("user_id") or shift.user_id
    if _shift_exists(db, new_date, new_type, new_user, exclude_id=shift.id):
        raise HTTPException(status_code=400, detail="Shift already exists for this user")
    shift.date, shift.type, shift.user_id = new_date, new_type, new_user
    if "notes" in data:
        shift.notes = data["notes"]
    db.commit()
    db.refresh(shift)

    create_notification(
        db,
        shift.user_id,
        NotificationType.SHIFT_CHANGED,
        "班次變更",
        f"您的班次已更新：{shift.date.isoformat()} {SHIFT_TYPE_LABELS.get(shift.type, shift.type)}",
        {"shift_id": shift.id},
    )
    if shift.user_id != old_user_id:
        create_notification(
            db,
            old_user_id,
            NotificationType.SHIFT_CHANGED,
            "班次變更",
            f"您原本 {old_date.isoformat()} {SHIFT_TYPE_LABELS.get(old_type, old_type)} 的班次已被調整",
            {"shift_id": shift.id},
        )
    return serialize_shift(shift)


def delete_shift(db: Session, shift_id: uuid.UUID) -> Dict:
    shift = get_shift_or_404(db, shift_id)
    db.delete(shift)
    db.commit()
    return {"success": True}


def today_shifts(db: Session) -> List[Dict]:
    rows = db.query(Shift).filter(Shift.date == local_today()).order_by(Shift.type.asc()).all()
    return [serialize_shift(s) for s in rows]


def weekly_schedule(db: Session, start: Optional[date] = None) -> Dict:
    start = start or local_today()
    end = start + timedelta(days=7)
    rows = (
        db.query(Shift)
        .filter(Shift.date >= start, Shift.date < end)
        .order_by(Shift.date.asc(), Shift.type.asc())
        .all()
    )
    days = {}
    for i in range(7):
        d = start + timedelta(days=i)
        days[d] = {"date": d, "shifts": {t.value: [] for t in ShiftType}}
    for s in rows:
        days[s.date]["shifts"].setdefault(s.type, []).append(serialize_shift(s))
    return {"start_date": start, "end_date": end, "schedule": list(days.values())}


def parse_month(month: str):
    m = _MONTH_RE.match(month or "")
    if not m or not 1 <= int(m.group(2)) <= 12:
        raise HTTPException(status_code=400, detail="month must be in YYYY-MM format")
    return int(m.group(1)), int(m.group(2))


def user_shifts(db: Session, user_id: uuid.UUID, month: Optional[str] = None) -> List[Dict]:
    q = db.query(Shift).filter(Shift.user_id == user_id)
    if month:
        start, end = month_bounds(*parse_month(month))
        q = q.filter(Shift.date >= start, Shift.date < end)
    return [serialize_shift(s) for s in q.order_by(Shift.date.asc()).all()]


# ---------- monthly grid ----------
def serialize_entry(e: ScheduleEntry) -> Dict:
    data = row_to_dict(e)
    data["user"] = {"id": e.user.id, "name": e.user.name, "position": e.user.position} if e.user else None
    return data


def month_entries(db: Session, year: int, month: int, department: Optional[str]) -> List[ScheduleEntry]:
    start, end = month_bounds(year, month)
    q = (
        db.query(ScheduleEntry)
        .join(User, User.id == ScheduleEntry.user_id)
        .filter(ScheduleEntry.date >= start, ScheduleEntry.date < end)
    )
    if department:
        q = q.filter(ScheduleEntry.department == department)
    return q.order_by(User.name.asc(), ScheduleEntry.date.asc()).all()


def monthly_schedule(db: Session, year: int, month: int, department: Optional[str] = None) -> Dict:
    entries = month_entries(db, year, month, department)
    staff = {}
    for e in entries:
        if e.user_id not in staff:
            staff[e.user_id] = {"user_id": e.user_id, "name": e.user.name, "position": e.user.position}
    return {
        "year": year,
        "month": month,
        "department": department,
        "days_in_month": calendar.monthrange(year, month)[1],
        "entries": [serialize_entry(e) for e in entries],
        "staff": list(staff.values()),
    }


def bulk_upsert(db: Session, year: int, month: int, entries: List[Dict[str, Any]], actor_id: uuid.UUID) -> Dict:
    start, end = month_bounds(year, month)
    for item in entries:
        if not start <= item["date"] < end:
            raise HTTPException(status_code=400, detail=f"Entry date {item['date'].isoformat()} is outside {year}-{month:02d}")
    user_ids = {item["user_id"] for item in entries}
    known = {row[0] for row in db.query(User.id).filter(User.id.in_(user_ids)).all()} if user_ids else set()
    if user_ids - known:
        raise HTTPException(status_code=400, detail="Unknown user in schedule entries")

    upserted = 0
    try:
        for item in entries:
            entry = (
                db.query(ScheduleEntry)
                .filter(
                    ScheduleEntry.date == item["date"],
                    ScheduleEntry.user_id == item["user_id"],
                    ScheduleEntry.department == item["department"],
                )
                .first()
            )
            if entry is None:
                entry = ScheduleEntry(date=item["date"], user_id=item["user_id"], department=item["department"])
                db.add(entry)
            entry.shift_code = item.get("shift_code")
            for period in PERIODS:
                entry_value = item.get(period)
                setattr(entry, period, None if entry.shift_code in NON_WORKING_SHIFT_CODES else entry_value)
            entry.notes = item.get("notes")
            db.flush()
            upserted += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    create_audit_log(db, "SCHEDULE_BULK_UPSERT", actor_id, target_type="SCHEDULE", metadata={"year": year, "month": month, "count": upserted})
    logger.info("schedule_bulk_upsert", year=year, month=month, count=upserted)
    return {"upserted": upserted}


def delete_entry(db: Session, entry_id: uuid.UUID) -> Dict:
    entry = db.query(ScheduleEntry).filter(ScheduleEntry.id == entry_id).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Schedule entry not found")
    db.delete(entry)
    db.commit()
    return {"success": True}


def monthly_stats(db: Session, year: int, month: int, department: Optional[str] = None) -> List[Dict]:
    per_user: Dict[uuid.UUID, Dict] = {}
    for e in month_entries(db, year, month, department):
        row = per_user.get(e.user_id)
        if row is None:
            row = {
                "user_id": e.user_id,
                "user_name": e.user.name,
                "position": e.user.position,
                "stats": {**{a.value: 0 for a in ActivityType}, **{c: 0 for c in NON_WORKING_SHIFT_CODES}},
                "working_days": 0,
                "off_days": 0,
                "total_days": 0,
            }
            per_user[e.user_id] = row
        row["total_days"] += 1
        if e.shift_code in NON_WORKING_SHIFT_CODES:
            row["off_days"] += 1
            row["stats"][e.shift_code] += 1
        elif e.shift_code:
            row["working_days"] += 1
        for period in PERIODS:
            value = getattr(e, period)
            if value in row["stats"]:
                row["stats"][value] += 1
    return list(per_user.values())


def department_staff(db: Session, department: Optional[str] = None) -> List[Dict]:
    users = db.query(User).filter(User.is_active.is_(True)).order_by(User.name.asc()).all()
    pairs = db.query(ScheduleEntry.user_id, ScheduleEntry.department).distinct().all()
    departments: Dict[uuid.UUID, set] = {}
    for user_id, dept in pairs:
        departments.setdefault(user_id, set()).add(dept)
    out = []
    for u in users:
        depts = sorted(departments.get(u.id, set()))
        if department and department not in depts:
            continue
        out.append({"id": u.id, "name": u.name, "position": u.position, "role": u.role, "departments": depts})
    return out
