"""
Position-based permission resolution.

Effective permissions = position defaults, then every unexpired per-user
override applied in turn (granted=True adds, granted=False removes).
"""
import enum
import uuid
from datetime import datetime
from typing import Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models.models import PermissionRequest, User, UserPermission
from .common import paginate, user_brief, utcnow


logger = structlog.get_logger(__name__)


class Role(str, enum.Enum):
    STAFF = "STAFF"
    SUPERVISOR = "SUPERVISOR"
    ADMIN = "ADMIN"


ROLE_LEVELS = {Role.STAFF.value: 1, Role.SUPERVISOR.value: 2, Role.ADMIN.value: 3}


class Position(str, enum.Enum):
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    SPORTS_THERAPIST = "SPORTS_THERAPIST"
    RECEPTIONIST = "RECEPTIONIST"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


POSITION_LABELS = {
    Position.DOCTOR: "醫師",
    Position.NURSE: "護理師",
    Position.SPORTS_THERAPIST: "運醫老師",
    Position.RECEPTIONIST: "櫃檯",
    Position.MANAGER: "經理",
    Position.ADMIN: "管理者",
}

POSITION_HIERARCHY = {
    Position.RECEPTIONIST: 1,
    Position.SPORTS_THERAPIST: 2,
    Position.NURSE: 3,
    Position.DOCTOR: 4,
    Position.MANAGER: 5,
    Position.ADMIN: 6,
}


class Permission(str, enum.Enum):
    HANDOVER_VIEW = "HANDOVER_VIEW"
    HANDOVER_CREATE = "HANDOVER_CREATE"
    HANDOVER_EDIT_OWN = "HANDOVER_EDIT_OWN"
    HANDOVER_EDIT_ALL = "HANDOVER_EDIT_ALL"
    HANDOVER_DELETE = "HANDOVER_DELETE"
    INVENTORY_VIEW = "INVENTORY_VIEW"
    INVENTORY_TRANSACTION = "INVENTORY_TRANSACTION"
    INVENTORY_MANAGE = "INVENTORY_MANAGE"
    SCHEDULING_VIEW = "SCHEDULING_VIEW"
    SCHEDULING_MANAGE = "SCHEDULING_MANAGE"
    HR_VIEW = "HR_VIEW"
    HR_MANAGE = "HR_MANAGE"
    ASSETS_VIEW = "ASSETS_VIEW"
    ASSETS_REPORT_FAULT = "ASSETS_REPORT_FAULT"
    ASSETS_MANAGE = "ASSETS_MANAGE"
    PROCUREMENT_VIEW = "PROCUREMENT_VIEW"
    PROCUREMENT_REQUEST = "PROCUREMENT_REQUEST"
    PROCUREMENT_APPROVE = "PROCUREMENT_APPROVE"
    QUALITY_VIEW = "QUALITY_VIEW"
    QUALITY_REPORT = "QUALITY_REPORT"
    QUALITY_MANAGE = "QUALITY_MANAGE"
    DOCUMENTS_VIEW = "DOCUMENTS_VIEW"
    DOCUMENTS_MANAGE = "DOCUMENTS_MANAGE"
    FINANCE_VIEW = "FINANCE_VIEW"
    FINANCE_MANAGE = "FINANCE_MANAGE"
    USERS_VIEW = "USERS_VIEW"
    USERS_MANAGE = "USERS_MANAGE"
    AUDIT_VIEW = "AUDIT_VIEW"
    PERMISSIONS_MANAGE = "PERMISSIONS_MANAGE"


P = Permission

PERMISSION_LABELS = {
    P.HANDOVER_VIEW: "查看交班",
    P.HANDOVER_CREATE: "建立交班",
    P.HANDOVER_EDIT_OWN: "編輯自己的交班",
    P.HANDOVER_EDIT_ALL: "編輯所有交班",
    P.HANDOVER_DELETE: "刪除交班",
    P.INVENTORY_VIEW: "查看庫存",
    P.INVENTORY_TRANSACTION: "庫存異動",
    P.INVENTORY_MANAGE: "管理庫存品項",
    P.SCHEDULING_VIEW: "查看排班",
    P.SCHEDULING_MANAGE: "管理排班",
    P.HR_VIEW: "查看人員資料",
    P.HR_MANAGE: "管理人員資料",
    P.ASSETS_VIEW: "查看設備",
    P.ASSETS_REPORT_FAULT: "回報設備故障",
    P.ASSETS_MANAGE: "管理設備",
    P.PROCUREMENT_VIEW: "查看採購",
    P.PROCUREMENT_REQUEST: "申請採購",
    P.PROCUREMENT_APPROVE: "審核採購",
    P.QUALITY_VIEW: "查看醫療品質",
    P.QUALITY_REPORT: "通報品質事件",
    P.QUALITY_MANAGE: "管理醫療品質",
    P.DOCUMENTS_VIEW: "查看文件",
    P.DOCUMENTS_MANAGE: "管理文件",
    P.FINANCE_VIEW: "查看財務報表",
    P.FINANCE_MANAGE: "管理財務",
    P.USERS_VIEW: "查看使用者",
    P.USERS_MANAGE: "管理使用者",
    P.AUDIT_VIEW: "查看稽核紀錄",
    P.PERMISSIONS_MANAGE: "管理權限",
}

PERMISSION_CATEGORIES = {
    "handover": {"label": "交班系統", "permissions": [P.HANDOVER_VIEW, P.HANDOVER_CREATE, P.HANDOVER_EDIT_OWN, P.HANDOVER_EDIT_ALL, P.HANDOVER_DELETE]},
    "inventory": {"label": "庫存管理", "permissions": [P.INVENTORY_VIEW, P.INVENTORY_TRANSACTION, P.INVENTORY_MANAGE]},
    "scheduling": {"label": "排班系統", "permissions": [P.SCHEDULING_VIEW, P.SCHEDULING_MANAGE]},
    "hr": {"label": "人員管理", "permissions": [P.HR_VIEW, P.HR_MANAGE]},
    "assets": {"label": "設備管理", "permissions": [P.ASSETS_VIEW, P.ASSETS_REPORT_FAULT, P.ASSETS_MANAGE]},
    "procurement": {"label": "採購管理", "permissions": [P.PROCUREMENT_VIEW, P.PROCUREMENT_REQUEST, P.PROCUREMENT_APPROVE]},
    "quality": {"label": "醫療品質", "permissions": [P.QUALITY_VIEW, P.QUALITY_REPORT, P.QUALITY_MANAGE]},
    "documents": {"label": "文件制度", "permissions": [P.DOCUMENTS_VIEW, P.DOCUMENTS_MANAGE]},
    "finance": {"label": "成本分析", "permissions": [P.FINANCE_VIEW, P.FINANCE_MANAGE]},
    "system": {"label": "系統管理", "permissions": [P.USERS_VIEW, P.USERS_MANAGE, P.AUDIT_VIEW, P.PERMISSIONS_MANAGE]},
}

_CLINICAL = [
    P.HANDOVER_VIEW, P.HANDOVER_CREATE, P.HANDOVER_EDIT_OWN,
    P.INVENTORY_VIEW, P.INVENTORY_TRANSACTION,
    P.SCHEDULING_VIEW,
    P.ASSETS_VIEW, P.ASSETS_REPORT_FAULT,
    P.PROCUREMENT_VIEW, P.PROCUREMENT_REQUEST,
    P.QUALITY_VIEW, P.QUALITY_REPORT,
    P.DOCUMENTS_VIEW,
]
_MANAGER_EXCLUDED = {P.FINANCE_MANAGE, P.USERS_MANAGE, P.AUDIT_VIEW, P.PERMISSIONS_MANAGE}

POSITION_DEFAULT_PERMISSIONS: Dict[Position, List[Permission]] = {
    Position.DOCTOR: list(_CLINICAL),
    Position.NURSE: list(_CLINICAL),
    Position.SPORTS_THERAPIST: list(_CLINICAL),
    Position.RECEPTIONIST: [p for p in _CLINICAL if p not in {P.INVENTORY_TRANSACTION, P.QUALITY_VIEW, P.QUALITY_REPORT}],
    Position.MANAGER: [p for p in Permission if p not in _MANAGER_EXCLUDED],
    Position.ADMIN: list(Permission),
}


class PermissionRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


def get_position_defaults(position: Optional[str]) -> List[str]:
    try:
        pos = Position(position)
    except ValueError:
        return []
    return [p.value for p in POSITION_DEFAULT_PERMISSIONS[pos]]


def _is_active_override(override: UserPermission, now: datetime) -> bool:
    return override.expires_at is None or override.expires_at > now


def resolve_permissions(position: Optional[str], overrides: List[UserPermission], now: Optional[datetime] = None) -> List[str]:
    now = now or utcnow()
    perms = set(get_position_defaults(position))
    for o in overrides:
        if not _is_active_override(o, now):
            continue
        if o.granted:
            perms.add(o.permission)
        else:
            perms.discard(o.permission)
    return sorted(perms)


def _get_user_or_404(db: Session, user_id: uuid.UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def get_user_permissions(db: Session, user_id: uuid.UUID) -> List[str]:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return []
    overrides = db.query(UserPermission).filter(UserPermission.user_id == user_id).all()
    return resolve_permissions(user.position, overrides)


def has_permission(db: Session, user_id: uuid.UUID, permission: str) -> bool:
    return str(getattr(permission, "value", permission)) in get_user_permissions(db, user_id)


def _serialize_override(o: UserPermission, now: datetime) -> Dict:
    return {
        "id": o.id,
        "permission": o.permission,
        "granted": o.granted,
        "reason": o.reason,
        "expires_at": o.expires_at,
        "is_expired": not _is_active_override(o, now),
        "granted_by": {"id": o.granted_by.id, "name": o.granted_by.name} if o.granted_by else None,
        "created_at": o.created_at,
    }


def get_user_permission_details(db: Session, user_id: uuid.UUID) -> Dict:
    user = _get_user_or_404(db, user_id)
    now = utcnow()
    overrides = db.query(UserPermission).filter(UserPermission.user_id == user_id).order_by(UserPermission.created_at.desc()).all()
    return {
        "user": user_brief(user),
        "position": user.position,
        "position_permissions": get_position_defaults(user.position),
        "custom_permissions": [_serialize_override(o, now) for o in overrides],
        "effective_permissions": resolve_permissions(user.position, overrides, now),
    }


def _upsert_override(db: Session, user_id: uuid.UUID, permission: str, granted: bool, actor_id: uuid.UUID, reason: Optional[str], expires_at: Optional[datetime]) -> UserPermission:
    row = db.query(UserPermission).filter(UserPermission.user_id == user_id, UserPermission.permission == permission).first()
    if row is None:
        row = UserPermission(user_id=user_id, permission=permission)
        db.add(row)
    row.granted = granted
    row.granted_by_id = actor_id
    row.reason = reason
    row.expires_at = expires_at
    return row


def grant_permission(db: Session, user_id: uuid.UUID, permission: str, granted_by_id: uuid.UUID, reason: Optional[str] = None, expires_at: Optional[datetime] = None, commit: bool = True) -> UserPermission:
    _get_user_or_404(db, user_id)
    row = _upsert_override(db, user_id, permission, True, granted_by_id, reason, expires_at)
    if commit:
        db.commit()
        db.refresh(row)
    logger.info("permission_granted", user_id=str(user_id), permission=permission, by=str(granted_by_id))
    return row


def revoke_permission(db: Session, user_id: uuid.UUID, permission: str, revoked_by_id: uuid.UUID, reason: Optional[str] = None) -> Dict:
    user = _get_user_or_404(db, user_id)
    if permission in get_position_defaults(user.position):
        # Position grants it, so an explicit deny is needed
        _upsert_override(db, user_id, permission, False, revoked_by_id, reason, None)
    else:
        db.query(UserPermission).filter(UserPermission.user_id == user_id, UserPermission.permission == permission).delete(synchronize_session=False)
    db.commit()
    logger.info("permission_revoked", user_id=str(user_id), permission=permission, by=str(revoked_by_id))
    return {"success": True, "user_id": user_id, "permission": permission}


def update_user_position(db: Session, user_id: uuid.UUID, position: str) -> Dict:
    user = _get_user_or_404(db, user_id)
    user.position = Position(position).value
    db.commit()
    db.refresh(user)
    return {"user": user_brief(user), "effective_permissions": get_user_permissions(db, user.id)}


def _serialize_request(r: PermissionRequest) -> Dict:
    return {
        "id": r.id,
        "permission": r.permission,
        "reason": r.reason,
        "status": r.status,
        "user": user_brief(r.user),
        "reviewed_by": {"id": r.reviewed_by.id, "name": r.reviewed_by.name} if r.reviewed_by else None,
        "reviewed_at": r.reviewed_at,
        "review_note": r.review_note,
        "created_at": r.created_at,
    }


def create_permission_request(db: Session, user_id: uuid.UUID, permission: str, reason: str) -> Dict:
    if permission in get_user_permissions(db, user_id):
        raise HTTPException(status_code=400, detail="You already have this permission")
    pending = db.query(PermissionRequest).filter(
        PermissionRequest.user_id == user_id,
        PermissionRequest.permission == permission,
        PermissionRequest.status == PermissionRequestStatus.PENDING.value,
    ).first()
    if pending:
        raise HTTPException(status_code=409, detail="A pending request for this permission already exists")
    req = PermissionRequest(user_id=user_id, permission=permission, reason=reason, status=PermissionRequestStatus.PENDING.value)
    db.add(req)
    db.commit()
    db.refresh(req)
    return _serialize_request(req)


def list_permission_requests(db: Session, status: Optional[str] = None, page: int = 1, limit: int = 20) -> Dict:
    q = db.query(PermissionRequest)
    if status:
        q = q.filter(PermissionRequest.status == status)
    q = q.order_by(PermissionRequest.created_at.desc())
    return paginate(q, page, limit, _serialize_request)


def list_my_permission_requests(db: Session, user_id: uuid.UUID) -> List[Dict]:
    rows = db.query(PermissionRequest).filter(PermissionRequest.user_id == user_id).order_by(PermissionRequest.created_at.desc()).all()
    return [_serialize_request(r) for r in rows]


def review_permission_request(db: Session, request_id: uuid.UUID, reviewer_id: uuid.UUID, status: str, review_note: Optional[str] = None) -> Dict:
    req = db.query(PermissionRequest).filter(PermissionRequest.id == request_id).first()
    if not req:
        raise HTTPException(status_code=404, detail="Permission request not found")
    if req.status != PermissionRequestStatus.PENDING.value:
        raise HTTPException(status_code=400, detail="Request has already been reviewed")
    req.status = PermissionRequestStatus(status).value
    req.reviewed_by_id = reviewer_id
    req.reviewed_at = utcnow()
    req.review_note = review_note
    if req.status == PermissionRequestStatus.APPROVED.value:
        grant_permission(
            db,
            req.user_id,
            req.permission,
            reviewer_id,
            reason=f"Approved permission request: {review_note or req.reason}",
            commit=False,
        )
    db.commit()
    db.refresh(req)
    return _serialize_request(req)


def get_permission_matrix(db: Session, page: int = 1, limit: int = 50) -> Dict:
    now = utcnow()
    q = db.query(User).filter(User.is_active.is_(True)).order_by(User.name.asc())

    def _row(user: User) -> Dict:
        overrides = list(user.permission_overrides)
        return {
            **user_brief(user),
            "permissions": resolve_permissions(user.position, overrides, now),
            "custom_permission_count": len(overrides),
        }

    return paginate(q, page, limit, _row, default_limit=50)


def get_permission_definitions() -> Dict:
    return {
        "permissions": [{"value": p.value, "label": PERMISSION_LABELS[p]} for p in Permission],
        "categories": {
            key: {"label": cat["label"], "permissions": [p.value for p in cat["permissions"]]}
            for key, cat in PERMISSION_CATEGORIES.items()
        },
        "positions": [
            {"value": pos.value, "label": POSITION_LABELS[pos], "hierarchy": POSITION_HIERARCHY[pos]}
            for pos in Position
        ],
        "position_defaults": {pos.value: [p.value for p in perms] for pos, perms in POSITION_DEFAULT_PERMISSIONS.items()},
        "request_statuses": [s.value for s in PermissionRequestStatus],
    }
