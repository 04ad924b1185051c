import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.documents import (
    AnnouncementCreate,
    AnnouncementUpdate,
    DocumentCategoryCreate,
    DocumentCreate,
    DocumentUpdate,
)
from ..services import documents as svc
from ..services.documents import DocumentStatus


router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("/stats")
def stats(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.document_stats(db, me)


# ----- categories -----
@router.get("/categories")
def list_categories(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.list_categories(db)


@router.post("/categories", status_code=201)
def create_category(body: DocumentCategoryCreate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.create_category(db, body.model_dump())


# ----- announcements -----
@router.get("/announcements")
def list_announcements(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.list_announcements(db, me)


@router.post("/announcements", status_code=201)
def create_announcement(body: AnnouncementCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.create_announcement(db, body.model_dump(), me)


@router.patch("/announcements/{announcement_id}")
def update_announcement(announcement_id: uuid.UUID, body: AnnouncementUpdate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.update_announcement(db, announcement_id, body.model_dump(exclude_unset=True))


@router.post("/announcements/{announcement_id}/read")
def mark_announcement_read(announcement_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.mark_announcement_read(db, announcement_id, me)


# ----- documents -----
@router.get("")
def list_documents(
    search: Optional[str] = None,
    category_id: Optional[uuid.UUID] = None,
    status: Optional[DocumentStatus] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return svc.list_documents(db, search, category_id, status.value if status else None, page, limit)


@router.get("/my/unread")
def my_unread(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.my_unread(db, me.id)


@router.post("", status_code=201)
def create_document(body: DocumentCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.create_document(db, body.model_dump(), me)


@router.get("/{document_id}")
def get_document(document_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.get_document(db, document_id)


@router.patch("/{document_id}")
def update_document(document_id: uuid.UUID, body: DocumentUpdate, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.update_document(db, document_id, body.model_dump(exclude_unset=True))


@router.post("/{document_id}/publish")
def publish_document(document_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.publish_document(db, document_id, me)


@router.post("/{document_id}/confirm")
def confirm_read(document_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.confirm_read(db, document_id, me)


@router.get("/{document_id}/read-status")
def read_status(document_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.read_status(db, document_id)
