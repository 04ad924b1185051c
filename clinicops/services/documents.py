"""
Controlled documents with read confirmations, plus announcements.
"""
import enum
import uuid
from typing import Any, Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import and_, case, or_
from sqlalchemy.orm import Session

from .. import cache as cache_keys
from ..cache import cache
from ..models.models import (
    Announcement,
    AnnouncementRead,
    Document,
    DocumentCategory,
    DocumentReadConfirmation,
    DocumentVersion,
    User,
)
from .audit import create_audit_log
from .common import paginate, row_to_dict, utcnow
from .notifications import NotificationType, notify_users


logger = structlog.get_logger(__name__)


class DocumentStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    REVIEW = "REVIEW"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class AnnouncementPriority(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


ANNOUNCEMENT_PRIORITY_RANK = {"LOW": 1, "NORMAL": 2, "HIGH": 3, "URGENT": 4}

_announcement_rank = case(ANNOUNCEMENT_PRIORITY_RANK, value=Announcement.priority, else_=0)


# ---------- categories ----------
def _build_category_tree(db: Session) -> List[Dict]:
    rows = db.query(DocumentCategory).order_by(DocumentCategory.sort_order.asc(), DocumentCategory.name.asc()).all()
    nodes = {c.id: {**row_to_dict(c), "children": []} for c in rows}
    roots = []
    for c in rows:
        node = nodes[c.id]
        parent = nodes.get(c.parent_id) if c.parent_id else None
        if parent is not None:
            parent["children"].append(node)
        else:
            roots.append(node)
    return roots


def list_categories(db: Session) -> List[Dict]:
    return cache.wrap(cache_keys.DOCUMENT_CATEGORIES, lambda: _build_category_tree(db), cache_keys.TTL_LONG)


def create_category(db: Session, data: Dict[str, Any]) -> Dict:
    if data.get("parent_id") and not db.query(DocumentCategory.id).filter(DocumentCategory.id == data["parent_id"]).first():
        raise HTTPException(status_code=404, detail="Parent category not found")
    category = DocumentCategory(**data)
    db.add(category)
    db.commit()
    db.refresh(category)
    cache.delete(cache_keys.DOCUMENT_CATEGORIES)
    return row_to_dict(category)


# ---------- documents ----------
def serialize_document(d: Document, detail: bool = False) -> Dict:
    data = row_to_dict(d)
    data["category"] = {"id": d.category.id, "name": d.category.name} if d.category else None
    data["author"] = {"id": d.author.id, "name": d.author.name} if d.author else None
    if detail:
        data["versions"] = [row_to_dict(v) for v in d.versions]
    return data


def get_document_or_404(db: Session, document_id: uuid.UUID) -> Document:
    doc = db.query(Document).filter(Document.id == document_id).first()
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


def list_documents(
    db: Session,
    search: Optional[str] = None,
    category_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(Document).filter(Document.is_active.is_(True))
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Document.title.ilike(pattern), Document.doc_no.ilike(pattern), Document.content.ilike(pattern)))
    if category_id:
        q = q.filter(Document.category_id == category_id)
    if status:
        q = q.filter(Document.status == status)
    q = q.order_by(Document.updated_at.desc())
    return paginate(q, page, limit, serialize_document)


def get_document(db: Session, document_id: uuid.UUID) -> Dict:
    return serialize_document(get_document_or_404(db, document_id), detail=True)


def create_document(db: Session, data: Dict[str, Any], author: User) -> Dict:
    if db.query(Document.id).filter(Document.doc_no == data["doc_no"]).first():
        raise HTTPException(status_code=400, detail="Document number already exists")
    doc = Document(author_id=author.id, status=DocumentStatus.DRAFT.value, version=1, **data)
    db.add(doc)
    db.commit()
    db.refresh(doc)
    create_audit_log(db, "DOCUMENT_CREATE", author.id, target_id=doc.id, target_type="DOCUMENT", metadata={"doc_no": doc.doc_no, "title": doc.title})
    return serialize_document(doc, detail=True)


def update_document(db: Session, document_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    doc = get_document_or_404(db, document_id)
    if data.get("doc_no") and data["doc_no"] != doc.doc_no:
        if db.query(Document.id).filter(Document.doc_no == data["doc_no"]).first():
            raise HTTPException(status_code=400, detail="Document number already exists")
    for key, value in data.items():
        setattr(doc, key, value)
    db.commit()
    db.refresh(doc)
    return serialize_document(doc, detail=True)


def publish_document(db: Session, document_id: uuid.UUID, actor: User) -> Dict:
    """Snapshot the current version, publish it and open the next version number."""
    doc = get_document_or_404(db, document_id)
    published_version = doc.version
    db.add(
        DocumentVersion(
            document_id=doc.id,
            version=published_version,
            title=doc.title,
            content=doc.content,
            created_by_id=actor.id,
        )
    )
    doc.status = DocumentStatus.PUBLISHED.value
    doc.published_at = utcnow()
    doc.version = published_version + 1
    db.commit()
    db.refresh(doc)

    active_ids = [r[0] for r in db.query(User.id).filter(User.is_active.is_(True)).all()]
    notify_users(
        db,
        active_ids,
        NotificationType.DOCUMENT_PUBLISHED,
        "文件發布",
        f"{doc.doc_no} {doc.title} 已發布，請閱讀並確認",
        {"document_id": doc.id, "version": doc.version},
    )
    create_audit_log(db, "DOCUMENT_PUBLISH", actor.id, target_id=doc.id, target_type="DOCUMENT", metadata={"doc_no": doc.doc_no, "version": published_version})
    return serialize_document(doc, detail=True)


def confirm_read(db: Session, document_id: uuid.UUID, user: User) -> Dict:
    doc = get_document_or_404(db, document_id)
    existing = (
        db.query(DocumentReadConfirmation)
        .filter(
            DocumentReadConfirmation.document_id == doc.id,
            DocumentReadConfirmation.user_id == user.id,
            DocumentReadConfirmation.version == doc.version,
        )
        .first()
    )
    if existing:
        return row_to_dict(existing)
    confirmation = DocumentReadConfirmation(document_id=doc.id, user_id=user.id, version=doc.version)
    db.add(confirmation)
    db.commit()
    db.refresh(confirmation)
    return row_to_dict(confirmation)


def _unread_query(db: Session, user_id: uuid.UUID):
    confirmed = (
        db.query(DocumentReadConfirmation.id)
        .filter(
            DocumentReadConfirmation.document_id == Document.id,
            DocumentReadConfirmation.user_id == user_id,
            DocumentReadConfirmation.version == Document.version,
        )
        .exists()
    )
    return db.query(Document).filter(
        Document.status == DocumentStatus.PUBLISHED.value,
        Document.is_active.is_(True),
        ~confirmed,
    )


def my_unread(db: Session, user_id: uuid.UUID) -> List[Dict]:
    return [serialize_document(d) for d in _unread_query(db, user_id).order_by(Document.published_at.desc()).all()]


def my_unread_count(db: Session, user_id: uuid.UUID) -> int:
    return _unread_query(db, user_id).count()


def read_status(db: Session, document_id: uuid.UUID) -> Dict:
    doc = get_document_or_404(db, document_id)
    rows = (
        db.query(DocumentReadConfirmation)
        .filter(DocumentReadConfirmation.document_id == doc.id, DocumentReadConfirmation.version == doc.version)
        .order_by(DocumentReadConfirmation.confirmed_at.asc())
        .all()
    )
    return {
        "document_id": doc.id,
        "version": doc.version,
        "confirmed_count": len(rows),
        "total_users": db.query(User).filter(User.is_active.is_(True)).count(),
        "confirmations": [
            {"user": {"id": r.user.id, "name": r.user.name}, "confirmed_at": r.confirmed_at} for r in rows
        ],
    }


# ---------- announcements ----------
def _visible_announcements(db: Session, user: User):
    now = utcnow()
    q = db.query(Announcement).filter(
        Announcement.is_active.is_(True),
        Announcement.publish_at <= now,
        or_(Announcement.expire_at.is_(None), Announcement.expire_at > now),
    )
    return [a for a in q.all() if not a.target_roles or user.role in a.target_roles]


def list_announcements(db: Session, user: User) -> List[Dict]:
    rows = _visible_announcements(db, user)
    rows.sort(key=lambda a: a.publish_at, reverse=True)
    rows.sort(key=lambda a: (a.is_pinned, ANNOUNCEMENT_PRIORITY_RANK.get(a.priority, 0)), reverse=True)
    read_ids = {
        r[0]
        for r in db.query(AnnouncementRead.announcement_id).filter(AnnouncementRead.user_id == user.id).all()
    }
    out = []
    for a in rows:
        data = row_to_dict(a)
        data["author"] = {"id": a.author.id, "name": a.author.name} if a.author else None
        data["is_read"] = a.id in read_ids
        out.append(data)
    return out


def create_announcement(db: Session, data: Dict[str, Any], author: User) -> Dict:
    if not data.get("publish_at"):
        data["publish_at"] = utcnow()
    announcement = Announcement(author_id=author.id, **data)
    db.add(announcement)
    db.commit()
    db.refresh(announcement)
    if announcement.publish_at <= utcnow():
        q = db.query(User.id).filter(User.is_active.is_(True))
        if announcement.target_roles:
            q = q.filter(User.role.in_(announcement.target_roles))
        notify_users(
            db,
            [r[0] for r in q.all()],
            NotificationType.ANNOUNCEMENT_NEW,
            "新公告",
            announcement.title,
            {"announcement_id": announcement.id},
            exclude=author.id,
        )
    return row_to_dict(announcement)


def update_announcement(db: Session, announcement_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    announcement = db.query(Announcement).filter(Announcement.id == announcement_id).first()
    if not announcement:
        raise HTTPException(status_code=404, detail="Announcement not found")
    for key, value in data.items():
        setattr(announcement, key, value)
    db.commit()
    db.refresh(announcement)
    return row_to_dict(announcement)


def mark_announcement_read(db: Session, announcement_id: uuid.UUID, user: User) -> Dict:
    if not db.query(Announcement.id).filter(Announcement.id == announcement_id).first():
        raise HTTPException(status_code=404, detail="Announcement not found")
    exists = (
        db.query(AnnouncementRead.id)
        .filter(and_(AnnouncementRead.announcement_id == announcement_id, AnnouncementRead.user_id == user.id))
        .first()
    )
    if not exists:
        db.add(AnnouncementRead(announcement_id=announcement_id, user_id=user.id))
        db.commit()
    return {"success": True}


def document_stats(db: Session, user: User) -> Dict:
    active = db.query(Document).filter(Document.is_active.is_(True))
    return {
        "total_documents": active.count(),
        "published_documents": active.filter(Document.status == DocumentStatus.PUBLISHED.value).count(),
        "draft_documents": active.filter(Document.status == DocumentStatus.DRAFT.value).count(),
        "my_unread_documents": my_unread_count(db, user.id),
        "active_announcements": len(_visible_announcements(db, user)),
    }
