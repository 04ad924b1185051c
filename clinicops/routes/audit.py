import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..services.audit import get_action_types, get_audit_logs


router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/logs")
def list_logs(
    action: Optional[str] = None,
    user_id: Optional[uuid.UUID] = None,
    target_type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = 1,
    limit: int = 50,
    db: Session = Depends(get_db),
    _=Depends(require_roles("ADMIN")),
):
    return get_audit_logs(db, action, user_id, target_type, start_date, end_date, page, limit)


@router.get("/actions")
def list_actions(db: Session = Depends(get_db), _=Depends(require_roles("ADMIN"))):
    return get_action_types(db)
