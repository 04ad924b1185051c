import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.hr import (
    CertificationCreate,
    CertificationUpdate,
    LeaveCreate,
    LeaveReview,
    ProfileIn,
    SkillCreate,
    UserSkillAssign,
    UserSkillUpdate,
)
from ..services import hr as svc
from ..services.hr import LeaveStatus


router = APIRouter(prefix="/hr", tags=["hr"])


@router.get("/stats")
def stats(db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.hr_stats(db)


# ----- employees -----
@router.get("/employees")
def list_employees(db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.list_employees(db)


@router.get("/employees/{user_id}")
def get_employee(user_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.get_employee(db, user_id, me)


@router.post("/employees/{user_id}/profile", status_code=201)
def create_profile(user_id: uuid.UUID, body: ProfileIn, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.create_profile(db, user_id, body.model_dump(), me.id)


@router.patch("/employees/{user_id}/profile")
def update_profile(user_id: uuid.UUID, body: ProfileIn, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.update_profile(db, user_id, body.model_dump(exclude_unset=True), me.id)


# ----- certifications -----
@router.get("/certifications/expiring")
def expiring(days: int = Query(30, ge=1, le=365), db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.expiring_certifications(db, days)


@router.post("/employees/{user_id}/certifications", status_code=201)
def create_certification(user_id: uuid.UUID, body: CertificationCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.create_certification(db, user_id, body.model_dump(), me.id)


@router.patch("/certifications/{cert_id}")
def update_certification(cert_id: uuid.UUID, body: CertificationUpdate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.update_certification(db, cert_id, body.model_dump(exclude_unset=True))


@router.delete("/certifications/{cert_id}")
def delete_certification(cert_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.delete_certification(db, cert_id, me.id)


@router.post("/certifications/notify-expiring")
def notify_expiring(days: int = Query(30, ge=1, le=365), db: Session = Depends(get_db), _=Depends(require_roles("ADMIN"))):
    return {"sent": svc.notify_expiring_certifications(db, days)}


# ----- skills -----
@router.get("/skills")
def list_skills(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.list_skill_definitions(db)


@router.post("/skills", status_code=201)
def create_skill(body: SkillCreate, db: Session = Depends(get_db), _=Depends(require_roles("ADMIN"))):
    return svc.create_skill_definition(db, body.name, body.description, body.category)


@router.post("/employees/{user_id}/skills", status_code=201)
def assign_skill(user_id: uuid.UUID, body: UserSkillAssign, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.assign_skill(db, user_id, body.skill_id, body.level, body.certified_at, body.notes)


@router.patch("/user-skills/{user_skill_id}")
def update_user_skill(user_skill_id: uuid.UUID, body: UserSkillUpdate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.update_user_skill(db, user_skill_id, body.model_dump(exclude_unset=True))


@router.delete("/user-skills/{user_skill_id}")
def remove_user_skill(user_skill_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.remove_user_skill(db, user_skill_id)


# ----- leaves -----
@router.get("/leaves")
def list_leaves(
    user_id: Optional[uuid.UUID] = None,
    status: Optional[LeaveStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return svc.list_leaves(db, me, user_id, status.value if status else None, start_date, end_date, page, limit)


@router.post("/leaves", status_code=201)
def create_leave(body: LeaveCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.create_leave(db, me, body.model_dump())


@router.post("/leaves/{leave_id}/approve")
def approve_leave(leave_id: uuid.UUID, body: Optional[LeaveReview] = None, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.review_leave(db, leave_id, True, me, body.note if body else None)


@router.post("/leaves/{leave_id}/reject")
def reject_leave(leave_id: uuid.UUID, body: Optional[LeaveReview] = None, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.review_leave(db, leave_id, False, me, body.note if body else None)


@router.post("/leaves/{leave_id}/cancel")
def cancel_leave(leave_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.cancel_leave(db, leave_id, me)
