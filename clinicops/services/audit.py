"""
Audit logging service.
Append-only audit log with integrity hashing.
"""
import hashlib
import json
import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from ..models.models import AuditLog
from ..config import settings
from .common import paginate, row_to_dict, user_brief, utcnow


def _integrity_hash(data: Dict[str, Any], secret: str) -> str:
    canonical = {k: v for k, v in data.items() if v is not None}
    canonical_json = json.dumps(canonical, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{secret}".encode()).hexdigest()


def create_audit_log(
    db: Session,
    action: str,
    user_id: Optional[uuid.UUID],
    target_id: Optional[Any] = None,
    target_type: Optional[str] = None,
    metadata: Optional[Dict] = None,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    commit: bool = True,
) -> AuditLog:
    """
    Append an audit entry.

    Args:
        db: Database session
        action: Action name (HANDOVER_CREATE, INVENTORY_ITEM_UPDATE, ...)
        user_id: Actor
        target_id: Affected entity id
        target_type: Affected entity type (HANDOVER, ASSET, ...)
        metadata: Free-form JSON context
        commit: Commit immediately; pass False to join the caller's transaction

    Returns:
        Created AuditLog object
    """
    created_at = utcnow()
    target = str(target_id) if target_id is not None else None
    metadata = json.loads(json.dumps(metadata, default=str)) if metadata else None
    integrity_hash = _integrity_hash(
        {
            "action": action,
            "user_id": str(user_id) if user_id else None,
            "target_id": target,
            "target_type": target_type,
            "metadata": metadata,
            "created_at": created_at.isoformat(),
        },
        settings.jwt_secret,
    )
    entry = AuditLog(
        action=action,
        user_id=user_id,
        target_id=target,
        target_type=target_type,
        meta=metadata,
        ip=ip,
        user_agent=user_agent,
        integrity_hash=integrity_hash,
        created_at=created_at,
    )
    db.add(entry)
    if commit:
        db.commit()
        db.refresh(entry)
    return entry


def verify_audit_log(entry: AuditLog) -> bool:
    expected = _integrity_hash(
        {
            "action": entry.action,
            "user_id": str(entry.user_id) if entry.user_id else None,
            "target_id": entry.target_id,
            "target_type": entry.target_type,
            "metadata": entry.meta,
            "created_at": entry.created_at.isoformat(),
        },
        settings.jwt_secret,
    )
    return expected == entry.integrity_hash


def serialize_audit_log(entry: AuditLog) -> Dict:
    data = row_to_dict(entry, rename={"meta": "metadata"})
    data["user"] = user_brief(entry.user)
    data["integrity_valid"] = verify_audit_log(entry)
    return data


def get_audit_logs(
    db: Session,
    action: Optional[str] = None,
    user_id: Optional[uuid.UUID] = None,
    target_type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = 1,
    limit: int = 50,
) -> Dict:
    query = db.query(AuditLog)
    if action:
        query = query.filter(AuditLog.action == action)
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)
    if target_type:
        query = query.filter(AuditLog.target_type == target_type)
    if start_date:
        query = query.filter(AuditLog.created_at >= start_date)
    if end_date:
        query = query.filter(AuditLog.created_at <= end_date)
    query = query.order_by(AuditLog.created_at.desc())
    return paginate(query, page, limit, serialize_audit_log, default_limit=50)


def get_action_types(db: Session) -> List[str]:
    return [row[0] for row in db.query(AuditLog.action).distinct().order_by(AuditLog.action).all()]


def compute_diff(before: Dict, after: Dict) -> Dict:
    """
    Compute a diff between two dictionaries.

    Returns:
        Dict with before/after values for changed fields
    """
    diff = {}
    for key in set(before.keys()) | set(after.keys()):
        before_val = before.get(key)
        after_val = after.get(key)
        if before_val != after_val:
            diff[key] = {"before": before_val, "after": after_val}
    return diff
