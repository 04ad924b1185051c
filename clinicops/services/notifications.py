"""
In-app notification service.
Every cross-module event (assignment, low stock, approvals...) ends up here.
"""
import enum
import uuid
from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import Notification, User
from .common import paginate, row_to_dict


logger = structlog.get_logger(__name__)


class NotificationType(str, enum.Enum):
    HANDOVER_ASSIGNED = "HANDOVER_ASSIGNED"
    HANDOVER_COMMENTED = "HANDOVER_COMMENTED"
    HANDOVER_STATUS_CHANGED = "HANDOVER_STATUS_CHANGED"
    INVENTORY_LOW_STOCK = "INVENTORY_LOW_STOCK"
    SHIFT_ASSIGNED = "SHIFT_ASSIGNED"
    SHIFT_CHANGED = "SHIFT_CHANGED"
    LEAVE_REQUEST = "LEAVE_REQUEST"
    LEAVE_APPROVED = "LEAVE_APPROVED"
    CERTIFICATION_EXPIRING = "CERTIFICATION_EXPIRING"
    ASSET_FAULT_REPORTED = "ASSET_FAULT_REPORTED"
    MAINTENANCE_DUE = "MAINTENANCE_DUE"
    WARRANTY_EXPIRING = "WARRANTY_EXPIRING"
    PR_PENDING_APPROVAL = "PR_PENDING_APPROVAL"
    PR_APPROVED = "PR_APPROVED"
    PO_RECEIVED = "PO_RECEIVED"
    INCIDENT_REPORTED = "INCIDENT_REPORTED"
    INCIDENT_ASSIGNED = "INCIDENT_ASSIGNED"
    COMPLAINT_RECEIVED = "COMPLAINT_RECEIVED"
    DOCUMENT_PUBLISHED = "DOCUMENT_PUBLISHED"
    ANNOUNCEMENT_NEW = "ANNOUNCEMENT_NEW"
    SYSTEM = "SYSTEM"


def create_notification(
    db: Session,
    user_id: uuid.UUID,
    type: NotificationType,
    title: str,
    message: str,
    metadata: Optional[Dict] = None,
    commit: bool = True,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=NotificationType(type).value,
        title=title,
        message=message,
        meta={k: str(v) if isinstance(v, uuid.UUID) else v for k, v in (metadata or {}).items()} or None,
    )
    db.add(notification)
    if commit:
        db.commit()
        db.refresh(notification)
    return notification


def notify_users(
    db: Session,
    user_ids: Iterable[Optional[uuid.UUID]],
    type: NotificationType,
    title: str,
    message: str,
    metadata: Optional[Dict] = None,
    exclude: Optional[uuid.UUID] = None,
) -> int:
    """Notify each distinct user once; None ids and ``exclude`` are skipped."""
    seen = set()
    for uid in user_ids:
        if uid is None or uid == exclude or uid in seen:
            continue
        seen.add(uid)
        create_notification(db, uid, type, title, message, metadata, commit=False)
    if seen:
        db.commit()
    logger.info("notifications_sent", type=NotificationType(type).value, count=len(seen))
    return len(seen)


def _active_users_with_roles(db: Session, roles: List[str]) -> List[uuid.UUID]:
    rows = db.query(User.id).filter(User.is_active.is_(True), User.role.in_(roles)).all()
    return [r[0] for r in rows]


def notify_supervisors(db: Session, type: NotificationType, title: str, message: str, metadata: Optional[Dict] = None, exclude: Optional[uuid.UUID] = None) -> int:
    return notify_users(db, _active_users_with_roles(db, ["SUPERVISOR", "ADMIN"]), type, title, message, metadata, exclude)


def notify_admins(db: Session, type: NotificationType, title: str, message: str, metadata: Optional[Dict] = None) -> int:
    return notify_users(db, _active_users_with_roles(db, ["ADMIN"]), type, title, message, metadata)


def serialize_notification(n: Notification) -> Dict:
    return row_to_dict(n, rename={"meta": "metadata"})


def list_notifications(db: Session, user_id: uuid.UUID, is_read: Optional[bool] = None, page: int = 1, limit: int = 20) -> Dict:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if is_read is not None:
        query = query.filter(Notification.is_read.is_(is_read))
    query = query.order_by(Notification.created_at.desc())
    return paginate(query, page, limit, serialize_notification, extra={"unread_count": get_unread_count(db, user_id)})


def get_unread_count(db: Session, user_id: uuid.UUID) -> int:
    return db.query(Notification).filter(Notification.user_id == user_id, Notification.is_read.is_(False)).count()


def mark_as_read(db: Session, notification_id: uuid.UUID, user_id: uuid.UUID) -> int:
    updated = db.query(Notification).filter(Notification.id == notification_id, Notification.user_id == user_id).update({"is_read": True}, synchronize_session=False)
    db.commit()
    return updated


def mark_all_as_read(db: Session, user_id: uuid.UUID) -> int:
    updated = db.query(Notification).filter(Notification.user_id == user_id, Notification.is_read.is_(False)).update({"is_read": True}, synchronize_session=False)
    db.commit()
    return updated


def delete_notification(db: Session, notification_id: uuid.UUID, user_id: uuid.UUID) -> int:
    deleted = db.query(Notification).filter(Notification.id == notification_id, Notification.user_id == user_id).delete(synchronize_session=False)
    db.commit()
    return deleted
