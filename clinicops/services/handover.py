"""
Handover / task tracking: lifecycle, comments, categories, collaborators,
checklists, subtasks, stats and monthly archiving of completed work.
"""
import enum
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from .. import cache as cache_keys
from ..auth.security import is_supervisor
from ..cache import cache
from ..models.models import (
    ArchivedHandover,
    Handover,
    HandoverArchive,
    HandoverComment,
    TaskCategory,
    TaskChecklist,
    TaskCollaborator,
    User,
    handover_categories,
)
from .audit import create_audit_log
from .common import month_bounds, paginate, row_to_dict, user_brief, utcnow, day_start
from .notifications import NotificationType, create_notification, notify_users
from .permissions import Permission, has_permission


logger = structlog.get_logger(__name__)


class HandoverStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class HandoverPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class CollaboratorRole(str, enum.Enum):
    COLLABORATOR = "COLLABORATOR"
    REVIEWER = "REVIEWER"
    OBSERVER = "OBSERVER"


PRIORITY_RANK = {"LOW": 1, "MEDIUM": 2, "HIGH": 3, "URGENT": 4}
OPEN_STATUSES = [HandoverStatus.PENDING.value, HandoverStatus.IN_PROGRESS.value]
DEFAULT_CATEGORY_COLOR = "#3B82F6"

_priority_rank = case(PRIORITY_RANK, value=Handover.priority, else_=0)


# ---------- serialization ----------
def serialize_category(c: TaskCategory) -> Dict:
    return {"id": c.id, "name": c.name, "color": c.color, "description": c.description}


def serialize_comment(c: HandoverComment) -> Dict:
    return {"id": c.id, "content": c.content, "created_at": c.created_at, "author": user_brief(c.author)}


def serialize_handover(h: Handover, detail: bool = False) -> Dict:
    data = row_to_dict(h)
    data["created_by"] = user_brief(h.created_by)
    data["assignee"] = user_brief(h.assignee)
    data["categories"] = [serialize_category(c) for c in h.categories]
    data["comment_count"] = len(h.comments)
    data["subtask_count"] = len(h.subtasks)
    if detail:
        data["comments"] = [serialize_comment(c) for c in h.comments]
        data["collaborators"] = [
            {"id": c.id, "role": c.role, "added_at": c.added_at, "user": user_brief(c.user)} for c in h.collaborators
        ]
        data["checklists"] = [row_to_dict(c, exclude=("handover_id",)) for c in h.checklists]
        data["subtasks"] = [
            {"id": s.id, "title": s.title, "status": s.status, "priority": s.priority, "assignee": user_brief(s.assignee)}
            for s in h.subtasks
        ]
        data["parent"] = {"id": h.parent.id, "title": h.parent.title, "status": h.parent.status} if h.parent else None
    return data


# ---------- queries ----------
def get_handover_or_404(db: Session, handover_id: uuid.UUID) -> Handover:
    h = db.query(Handover).filter(Handover.id == handover_id).first()
    if not h:
        raise HTTPException(status_code=404, detail="Handover not found")
    return h


def list_handovers(
    db: Session,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    assignee_id: Optional[uuid.UUID] = None,
    created_by_id: Optional[uuid.UUID] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    q = db.query(Handover)
    if status:
        q = q.filter(Handover.status == status)
    if priority:
        q = q.filter(Handover.priority == priority)
    if assignee_id:
        q = q.filter(Handover.assignee_id == assignee_id)
    if created_by_id:
        q = q.filter(Handover.created_by_id == created_by_id)
    q = q.order_by(_priority_rank.desc(), Handover.created_at.desc())
    return paginate(q, page, limit, serialize_handover)


def get_handover(db: Session, handover_id: uuid.UUID) -> Dict:
    return serialize_handover(get_handover_or_404(db, handover_id), detail=True)


def my_handovers(db: Session, user_id: uuid.UUID) -> List[Dict]:
    rows = (
        db.query(Handover)
        .filter(Handover.assignee_id == user_id, Handover.status.in_(OPEN_STATUSES))
        .order_by(_priority_rank.desc(), Handover.created_at.desc())
        .all()
    )
    return [serialize_handover(h) for h in rows]


def pending_count(db: Session) -> int:
    return db.query(Handover).filter(Handover.status.in_(OPEN_STATUSES)).count()


def urgent_handovers(db: Session) -> List[Dict]:
    rows = (
        db.query(Handover)
        .filter(
            Handover.status.in_(OPEN_STATUSES),
            Handover.priority.in_([HandoverPriority.HIGH.value, HandoverPriority.URGENT.value]),
        )
        .order_by(_priority_rank.desc(), Handover.created_at.asc())
        .limit(10)
        .all()
    )
    return [serialize_handover(h) for h in rows]


# ---------- mutations ----------
def _ensure_user_exists(db: Session, user_id: Optional[uuid.UUID]) -> None:
    if user_id and not db.query(User.id).filter(User.id == user_id).first():
        raise HTTPException(status_code=400, detail="Assignee not found")


def _load_categories(db: Session, category_ids: List[uuid.UUID]) -> List[TaskCategory]:
    if not category_ids:
        return []
    cats = db.query(TaskCategory).filter(TaskCategory.id.in_(category_ids)).all()
    if len(cats) != len(set(category_ids)):
        raise HTTPException(status_code=400, detail="Unknown task category")
    return cats


def create_handover(db: Session, data: Dict[str, Any], user: User) -> Dict:
    category_ids = data.pop("category_ids", None) or []
    _ensure_user_exists(db, data.get("assignee_id"))
    if data.get("parent_id"):
        get_handover_or_404(db, data["parent_id"])
    h = Handover(
        title=data["title"],
        content=data.get("content") or "",
        priority=data.get("priority") or HandoverPriority.MEDIUM.value,
        status=HandoverStatus.PENDING.value,
        created_by_id=user.id,
        assignee_id=data.get("assignee_id"),
        shift_id=data.get("shift_id"),
        due_date=data.get("due_date"),
        estimated_hours=data.get("estimated_hours"),
        parent_id=data.get("parent_id"),
        related_incident_id=data.get("related_incident_id"),
    )
    h.categories = _load_categories(db, category_ids)
    db.add(h)
    db.commit()
    db.refresh(h)

    if h.assignee_id and h.assignee_id != user.id:
        create_notification(
            db,
            h.assignee_id,
            NotificationType.HANDOVER_ASSIGNED,
            "新交班任務",
            f"{user.name} 指派了任務：{h.title}",
            {"handover_id": h.id},
        )
    create_audit_log(db, "HANDOVER_CREATE", user.id, target_id=h.id, target_type="HANDOVER", metadata={"title": h.title, "priority": h.priority})
    return serialize_handover(h, detail=True)


def _can_edit(db: Session, h: Handover, user: User) -> bool:
    if h.created_by_id == user.id or h.assignee_id == user.id or is_supervisor(user):
        return True
    return has_permission(db, user.id, Permission.HANDOVER_EDIT_ALL)


def update_handover(db: Session, handover_id: uuid.UUID, data: Dict[str, Any], user: User) -> Dict:
    h = get_handover_or_404(db, handover_id)
    if not _can_edit(db, h, user):
        raise HTTPException(status_code=403, detail="You cannot edit this handover")

    expected_version = data.pop("version", None)
    if expected_version is not None and expected_version != h.version:
        raise HTTPException(status_code=409, detail="Handover was modified by another user")

    new_assignee = data.get("assignee_id", h.assignee_id)
    if "assignee_id" in data and new_assignee != h.assignee_id:
        if not is_supervisor(user):
            raise HTTPException(status_code=403, detail="Only supervisors can reassign handovers")
        _ensure_user_exists(db, new_assignee)
    previous_assignee = h.assignee_id
    previous_status = h.status

    category_ids = data.pop("category_ids", None)
    changed = []
    for key, value in data.items():
        if getattr(h, key) != value:
            setattr(h, key, value)
            changed.append(key)
    if category_ids is not None:
        h.categories = _load_categories(db, category_ids)
        changed.append("category_ids")

    if "status" in changed:
        if h.status == HandoverStatus.COMPLETED.value:
            h.completed_at = utcnow()
        elif previous_status == HandoverStatus.COMPLETED.value:
            h.completed_at = None
        if h.status != HandoverStatus.BLOCKED.value and "blocked_reason" not in data:
            h.blocked_reason = None
    h.version = h.version + 1
    db.commit()
    db.refresh(h)

    if h.assignee_id and h.assignee_id != previous_assignee and h.assignee_id != user.id:
        create_notification(
            db,
            h.assignee_id,
            NotificationType.HANDOVER_ASSIGNED,
            "交班任務指派",
            f"{user.name} 將任務指派給您：{h.title}",
            {"handover_id": h.id},
        )
    if "status" in changed and h.created_by_id != user.id:
        create_notification(
            db,
            h.created_by_id,
            NotificationType.HANDOVER_STATUS_CHANGED,
            "交班狀態更新",
            f"{h.title}：{previous_status} → {h.status}",
            {"handover_id": h.id, "status": h.status},
        )
    create_audit_log(db, "HANDOVER_UPDATE", user.id, target_id=h.id, target_type="HANDOVER", metadata={"changes": changed, "version": h.version})
    return serialize_handover(h, detail=True)


def delete_handover(db: Session, handover_id: uuid.UUID, user: User) -> Dict:
    h = get_handover_or_404(db, handover_id)
    if h.created_by_id != user.id and not is_supervisor(user):
        raise HTTPException(status_code=403, detail="You cannot delete this handover")
    title = h.title
    db.delete(h)
    db.commit()
    create_audit_log(db, "HANDOVER_DELETE", user.id, target_id=handover_id, target_type="HANDOVER", metadata={"title": title})
    return {"success": True}


def batch_update(db: Session, items: List[Dict[str, Any]], user: User) -> Dict:
    if not is_supervisor(user):
        raise HTTPException(status_code=403, detail="Only supervisors or admins can batch update")
    results = []
    for item in items:
        hid = item["id"]
        h = db.query(Handover).filter(Handover.id == hid).first()
        if not h:
            results.append({"id": hid, "success": False, "error": "Handover not found"})
            continue
        if item.get("assignee_id") and not db.query(User.id).filter(User.id == item["assignee_id"]).first():
            results.append({"id": hid, "success": False, "error": "Assignee not found"})
            continue
        for key in ("status", "priority", "assignee_id"):
            value = item.get(key)
            if value is not None:
                setattr(h, key, value)
        if item.get("status") == HandoverStatus.COMPLETED.value and h.completed_at is None:
            h.completed_at = utcnow()
        h.version = h.version + 1
        results.append({"id": hid, "success": True})
    db.commit()
    succeeded = sum(1 for r in results if r["success"])
    create_audit_log(
        db,
        "HANDOVER_BATCH_UPDATE",
        user.id,
        target_type="HANDOVER",
        metadata={"ids": [str(r["id"]) for r in results if r["success"]], "total": len(items)},
    )
    return {"total": len(items), "success": succeeded, "failed": len(items) - succeeded, "results": results}


def add_comment(db: Session, handover_id: uuid.UUID, content: str, user: User) -> Dict:
    h = get_handover_or_404(db, handover_id)
    comment = HandoverComment(handover_id=h.id, author_id=user.id, content=content)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    notify_users(
        db,
        [h.created_by_id, h.assignee_id],
        NotificationType.HANDOVER_COMMENTED,
        "交班新留言",
        f"{user.name} 在「{h.title}」留言",
        {"handover_id": h.id, "comment_id": comment.id},
        exclude=user.id,
    )
    return serialize_comment(comment)


# ---------- categories ----------
def list_categories(db: Session) -> List[Dict]:
    return cache.wrap(
        cache_keys.TASK_CATEGORIES,
        lambda: [serialize_category(c) for c in db.query(TaskCategory).order_by(TaskCategory.name.asc()).all()],
        cache_keys.TTL_LONG,
    )


def create_category(db: Session, name: str, color: Optional[str], description: Optional[str]) -> Dict:
    if db.query(TaskCategory).filter(TaskCategory.name == name).first():
        raise HTTPException(status_code=400, detail="Category name already exists")
    c = TaskCategory(name=name, color=color or DEFAULT_CATEGORY_COLOR, description=description)
    db.add(c)
    db.commit()
    db.refresh(c)
    cache.delete(cache_keys.TASK_CATEGORIES)
    return serialize_category(c)


def update_category(db: Session, category_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    c = db.query(TaskCategory).filter(TaskCategory.id == category_id).first()
    if not c:
        raise HTTPException(status_code=404, detail="Category not found")
    for key, value in data.items():
        setattr(c, key, value)
    db.commit()
    db.refresh(c)
    cache.delete(cache_keys.TASK_CATEGORIES)
    return serialize_category(c)


def delete_category(db: Session, category_id: uuid.UUID) -> Dict:
    c = db.query(TaskCategory).filter(TaskCategory.id == category_id).first()
    if not c:
        raise HTTPException(status_code=404, detail="Category not found")
    db.delete(c)
    db.commit()
    cache.delete(cache_keys.TASK_CATEGORIES)
    return {"success": True}


def set_categories(db: Session, handover_id: uuid.UUID, category_ids: List[uuid.UUID]) -> Dict:
    h = get_handover_or_404(db, handover_id)
    h.categories = _load_categories(db, category_ids)
    db.commit()
    db.refresh(h)
    return serialize_handover(h)


# ---------- collaborators ----------
def add_collaborator(db: Session, handover_id: uuid.UUID, user_id: uuid.UUID, role: str, actor: User) -> Dict:
    h = get_handover_or_404(db, handover_id)
    if not (is_supervisor(actor) or h.created_by_id == actor.id):
        raise HTTPException(status_code=403, detail="Only the creator or a supervisor can add collaborators")
    target = db.query(User).filter(User.id == user_id).first()
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    exists = db.query(TaskCollaborator).filter(TaskCollaborator.handover_id == h.id, TaskCollaborator.user_id == user_id).first()
    if exists:
        raise HTTPException(status_code=400, detail="User is already a collaborator")
    collab = TaskCollaborator(handover_id=h.id, user_id=user_id, role=role)
    db.add(collab)
    db.commit()
    db.refresh(collab)
    if user_id != actor.id:
        create_notification(
            db,
            user_id,
            NotificationType.HANDOVER_ASSIGNED,
            "協作邀請",
            f"{actor.name} 邀請您協作任務：{h.title}",
            {"handover_id": h.id, "role": role},
        )
    return {"id": collab.id, "role": collab.role, "added_at": collab.added_at, "user": user_brief(target)}


def remove_collaborator(db: Session, handover_id: uuid.UUID, user_id: uuid.UUID) -> Dict:
    get_handover_or_404(db, handover_id)
    deleted = db.query(TaskCollaborator).filter(TaskCollaborator.handover_id == handover_id, TaskCollaborator.user_id == user_id).delete(synchronize_session=False)
    if not deleted:
        raise HTTPException(status_code=404, detail="Collaborator not found")
    db.commit()
    return {"success": True}


# ---------- checklists ----------
def _get_checklist_or_404(db: Session, handover_id: uuid.UUID, checklist_id: uuid.UUID) -> TaskChecklist:
    item = db.query(TaskChecklist).filter(TaskChecklist.id == checklist_id, TaskChecklist.handover_id == handover_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Checklist item not found")
    return item


def add_checklist_item(db: Session, handover_id: uuid.UUID, content: str) -> Dict:
    h = get_handover_or_404(db, handover_id)
    max_order = db.query(func.max(TaskChecklist.sort_order)).filter(TaskChecklist.handover_id == h.id).scalar()
    item = TaskChecklist(handover_id=h.id, content=content, sort_order=(max_order if max_order is not None else -1) + 1)
    db.add(item)
    db.commit()
    db.refresh(item)
    return row_to_dict(item)


def update_checklist_item(db: Session, handover_id: uuid.UUID, checklist_id: uuid.UUID, data: Dict[str, Any]) -> Dict:
    item = _get_checklist_or_404(db, handover_id, checklist_id)
    if data.get("content") is not None:
        item.content = data["content"]
    if data.get("sort_order") is not None:
        item.sort_order = data["sort_order"]
    if data.get("is_completed") is not None:
        item.is_completed = data["is_completed"]
        item.completed_at = utcnow() if item.is_completed else None
    db.commit()
    db.refresh(item)
    return row_to_dict(item)


def delete_checklist_item(db: Session, handover_id: uuid.UUID, checklist_id: uuid.UUID) -> Dict:
    item = _get_checklist_or_404(db, handover_id, checklist_id)
    db.delete(item)
    db.commit()
    return {"success": True}


# ---------- subtasks ----------
def create_subtask(db: Session, parent_id: uuid.UUID, data: Dict[str, Any], user: User) -> Dict:
    parent = get_handover_or_404(db, parent_id)
    data = dict(data)
    data["parent_id"] = parent.id
    if data.get("shift_id") is None:
        data["shift_id"] = parent.shift_id
    return create_handover(db, data, user)


def list_subtasks(db: Session, parent_id: uuid.UUID) -> List[Dict]:
    get_handover_or_404(db, parent_id)
    rows = db.query(Handover).filter(Handover.parent_id == parent_id).order_by(Handover.created_at.asc()).all()
    return [serialize_handover(h) for h in rows]


# ---------- stats ----------
def task_stats(db: Session) -> Dict:
    counts = dict(db.query(Handover.status, func.count(Handover.id)).group_by(Handover.status).all())
    week_ago = utcnow() - timedelta(days=7)
    completed_this_week = db.query(Handover).filter(
        Handover.status == HandoverStatus.COMPLETED.value,
        Handover.completed_at >= week_ago,
    ).count()
    by_category = (
        db.query(TaskCategory.id, TaskCategory.name, TaskCategory.color, func.count(Handover.id))
        .join(handover_categories, handover_categories.c.category_id == TaskCategory.id)
        .join(Handover, Handover.id == handover_categories.c.handover_id)
        .filter(Handover.status.in_(OPEN_STATUSES + [HandoverStatus.BLOCKED.value]))
        .group_by(TaskCategory.id, TaskCategory.name, TaskCategory.color)
        .all()
    )
    return {
        "pending": counts.get(HandoverStatus.PENDING.value, 0),
        "in_progress": counts.get(HandoverStatus.IN_PROGRESS.value, 0),
        "blocked": counts.get(HandoverStatus.BLOCKED.value, 0),
        "completed_this_week": completed_this_week,
        "by_category": [{"id": cid, "name": name, "color": color, "count": n} for cid, name, color, n in by_category],
    }


# ---------- archive ----------
def _snapshot(h: Handover) -> Dict:
    return {
        "blocked_reason": h.blocked_reason,
        "estimated_hours": h.estimated_hours,
        "actual_hours": h.actual_hours,
        "categories": [c.name for c in h.categories],
        "comments": [
            {"author_id": str(c.author_id), "content": c.content, "created_at": c.created_at.isoformat()} for c in h.comments
        ],
        "checklists": [{"content": c.content, "is_completed": c.is_completed} for c in h.checklists],
    }


def archive_month(db: Session, year: int, month: int, actor_id: Optional[uuid.UUID] = None) -> Dict:
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Invalid month")
    start, end = month_bounds(year, month)
    tasks = (
        db.query(Handover)
        .filter(
            Handover.status == HandoverStatus.COMPLETED.value,
            Handover.completed_at >= day_start(start),
            Handover.completed_at < day_start(end),
        )
        .all()
    )
    if not tasks:
        return {"archived_count": 0, "archive_id": None, "message": f"{year}-{month:02d} 沒有可歸檔的任務"}

    try:
        archive = db.query(HandoverArchive).filter(HandoverArchive.year == year, HandoverArchive.month == month).first()
        if archive is None:
            archive = HandoverArchive(year=year, month=month, count=0)
            db.add(archive)
            db.flush()
        for h in tasks:
            db.add(ArchivedHandover(
                archive_id=archive.id,
                original_id=h.id,
                title=h.title,
                content=h.content,
                status=h.status,
                priority=h.priority,
                created_by_id=h.created_by_id,
                assignee_id=h.assignee_id,
                completed_at=h.completed_at,
                original_created_at=h.created_at,
                snapshot=_snapshot(h),
            ))
        archive.count = (archive.count or 0) + len(tasks)
        ids = [h.id for h in tasks]
        # Open subtasks of archived parents survive as top-level tasks
        db.query(Handover).filter(Handover.parent_id.in_(ids), ~Handover.id.in_(ids)).update(
            {"parent_id": None}, synchronize_session=False
        )
        for h in tasks:
            db.expire(h, ["subtasks"])
            h.categories = []
            db.delete(h)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("handover_archive_failed", year=year, month=month)
        raise
    if actor_id:
        create_audit_log(db, "HANDOVER_ARCHIVE", actor_id, target_id=archive.id, target_type="HANDOVER_ARCHIVE", metadata={"year": year, "month": month, "count": len(tasks)})
    logger.info("handover_archived", year=year, month=month, count=len(tasks))
    return {"archived_count": len(tasks), "archive_id": archive.id, "message": f"已歸檔 {len(tasks)} 筆任務"}


def auto_archive_last_month(db: Session, actor_id: Optional[uuid.UUID] = None, today: Optional[datetime] = None) -> Dict:
    today = today or utcnow()
    first_of_month = today.replace(day=1)
    last_month = first_of_month - timedelta(days=1)
    return archive_month(db, last_month.year, last_month.month, actor_id)


def list_archives(db: Session) -> List[Dict]:
    rows = db.query(HandoverArchive).order_by(HandoverArchive.year.desc(), HandoverArchive.month.desc()).all()
    return [row_to_dict(a) for a in rows]


def get_archive(db: Session, year: int, month: int) -> Dict:
    archive = db.query(HandoverArchive).filter(HandoverArchive.year == year, HandoverArchive.month == month).first()
    if not archive:
        raise HTTPException(status_code=404, detail="Archive not found")
    return row_to_dict(archive)


def list_archived_items(db: Session, archive_id: uuid.UUID, page: int = 1, limit: int = 20) -> Dict:
    if not db.query(HandoverArchive.id).filter(HandoverArchive.id == archive_id).first():
        raise HTTPException(status_code=404, detail="Archive not found")
    q = db.query(ArchivedHandover).filter(ArchivedHandover.archive_id == archive_id).order_by(ArchivedHandover.completed_at.desc())
    return paginate(q, page, limit, row_to_dict)
