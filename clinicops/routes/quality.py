import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.quality import (
    ComplaintCreate,
    ComplaintUpdate,
    FollowUpCreate,
    IncidentCreate,
    IncidentTypeCreate,
    IncidentTypeUpdate,
    IncidentUpdate,
)
from ..services import quality as svc
from ..services.quality import ComplaintSource, ComplaintStatus, IncidentSeverity, IncidentStatus


router = APIRouter(prefix="/quality", tags=["quality"])


@router.get("/stats")
def stats(db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.quality_stats(db)


@router.get("/trends")
def trends(months: int = Query(6, ge=1, le=24), db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.incident_trends(db, months)


# ----- incident types -----
@router.get("/incident-types")
def list_incident_types(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.list_incident_types(db)


@router.post("/incident-types", status_code=201)
def create_incident_type(body: IncidentTypeCreate, db: Session = Depends(get_db), _=Depends(require_roles("ADMIN"))):
    return svc.create_incident_type(db, body.model_dump())


@router.patch("/incident-types/{type_id}")
def update_incident_type(type_id: uuid.UUID, body: IncidentTypeUpdate, db: Session = Depends(get_db), _=Depends(require_roles("ADMIN"))):
    return svc.update_incident_type(db, type_id, body.model_dump(exclude_unset=True))


# ----- incidents -----
@router.get("/incidents")
def list_incidents(
    type_id: Optional[uuid.UUID] = None,
    status: Optional[IncidentStatus] = None,
    severity: Optional[IncidentSeverity] = None,
    is_near_miss: Optional[bool] = None,
    reporter_id: Optional[uuid.UUID] = None,
    handler_id: Optional[uuid.UUID] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return svc.list_incidents(
        db,
        me,
        type_id,
        status.value if status else None,
        severity.value if severity else None,
        is_near_miss,
        reporter_id,
        handler_id,
        start,
        end,
        page,
        limit,
    )


@router.post("/incidents", status_code=201)
def report_incident(body: IncidentCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.report_incident(db, body.model_dump(), me)


@router.get("/incidents/{incident_id}")
def get_incident(incident_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.get_incident(db, incident_id, me)


@router.patch("/incidents/{incident_id}")
def update_incident(incident_id: uuid.UUID, body: IncidentUpdate, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.update_incident(db, incident_id, body.model_dump(exclude_unset=True), me)


@router.post("/incidents/{incident_id}/follow-ups", status_code=201)
def add_follow_up(incident_id: uuid.UUID, body: FollowUpCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.add_follow_up(db, incident_id, body.content, body.action_taken, me)


@router.post("/incidents/{incident_id}/create-task", status_code=201)
def create_task(incident_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.create_task_from_incident(db, incident_id, me)


# ----- complaints -----
@router.get("/complaints")
def list_complaints(
    source: Optional[ComplaintSource] = None,
    status: Optional[ComplaintStatus] = None,
    handler_id: Optional[uuid.UUID] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    _=Depends(require_roles("SUPERVISOR")),
):
    return svc.list_complaints(db, source.value if source else None, status.value if status else None, handler_id, page, limit)


@router.post("/complaints", status_code=201)
def create_complaint(body: ComplaintCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.create_complaint(db, body.model_dump(), me)


@router.get("/complaints/{complaint_id}")
def get_complaint(complaint_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.get_complaint(db, complaint_id)


@router.patch("/complaints/{complaint_id}")
def update_complaint(complaint_id: uuid.UUID, body: ComplaintUpdate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.update_complaint(db, complaint_id, body.model_dump(exclude_unset=True))
