import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.models import User
from ..services import notifications as svc


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    is_read: Optional[bool] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return svc.list_notifications(db, user.id, is_read, page, limit)


@router.get("/unread-count")
def unread_count(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"count": svc.get_unread_count(db, user.id)}


@router.post("/read-all")
def read_all(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"updated": svc.mark_all_as_read(db, user.id)}


@router.post("/{notification_id}/read")
def mark_read(notification_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"updated": svc.mark_as_read(db, notification_id, user.id)}


@router.delete("/{notification_id}")
def delete_notification(notification_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"deleted": svc.delete_notification(db, notification_id, user.id)}
