import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_permissions
from ..db import get_db
from ..models.models import User
from ..schemas.permissions import (
    CreatePermissionRequest,
    GrantPermissionRequest,
    ReviewPermissionRequest,
    RevokePermissionRequest,
    UpdatePositionRequest,
)
from ..services import permissions as svc
from ..services.audit import create_audit_log
from ..services.permissions import Permission, PermissionRequestStatus


router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("/my")
def my_permissions(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return {
        "user_id": me.id,
        "position": me.position,
        "permissions": svc.get_user_permissions(db, me.id),
    }


@router.get("/definitions")
def definitions(_=Depends(get_current_user)):
    return svc.get_permission_definitions()


@router.get("/matrix")
def matrix(page: int = 1, limit: int = 50, db: Session = Depends(get_db), _=Depends(require_permissions(Permission.PERMISSIONS_MANAGE))):
    return svc.get_permission_matrix(db, page, limit)


@router.get("/users/{user_id}")
def user_permissions(user_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions(Permission.USERS_VIEW))):
    return svc.get_user_permission_details(db, user_id)


@router.post("/users/{user_id}/grant")
def grant(user_id: uuid.UUID, body: GrantPermissionRequest, db: Session = Depends(get_db), me: User = Depends(require_permissions(Permission.PERMISSIONS_MANAGE))):
    svc.grant_permission(db, user_id, body.permission.value, me.id, body.reason, body.expires_at)
    create_audit_log(db, "PERMISSION_GRANT", me.id, target_id=user_id, target_type="USER", metadata={"permission": body.permission.value, "expires_at": body.expires_at})
    return svc.get_user_permission_details(db, user_id)


@router.post("/users/{user_id}/revoke")
def revoke(user_id: uuid.UUID, body: RevokePermissionRequest, db: Session = Depends(get_db), me: User = Depends(require_permissions(Permission.PERMISSIONS_MANAGE))):
    svc.revoke_permission(db, user_id, body.permission.value, me.id, body.reason)
    create_audit_log(db, "PERMISSION_REVOKE", me.id, target_id=user_id, target_type="USER", metadata={"permission": body.permission.value})
    return svc.get_user_permission_details(db, user_id)


@router.post("/users/{user_id}/position")
def update_position(user_id: uuid.UUID, body: UpdatePositionRequest, db: Session = Depends(get_db), me: User = Depends(require_permissions(Permission.USERS_MANAGE))):
    result = svc.update_user_position(db, user_id, body.position.value)
    create_audit_log(db, "USER_POSITION_UPDATE", me.id, target_id=user_id, target_type="USER", metadata={"position": body.position.value})
    return result


@router.get("/requests")
def list_requests(status: Optional[PermissionRequestStatus] = None, page: int = 1, limit: int = 20, db: Session = Depends(get_db), _=Depends(require_permissions(Permission.PERMISSIONS_MANAGE))):
    return svc.list_permission_requests(db, status.value if status else None, page, limit)


@router.get("/requests/my")
def my_requests(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.list_my_permission_requests(db, me.id)


@router.post("/requests", status_code=201)
def create_request(body: CreatePermissionRequest, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.create_permission_request(db, me.id, body.permission.value, body.reason)


@router.post("/requests/{request_id}/review")
def review_request(request_id: uuid.UUID, body: ReviewPermissionRequest, db: Session = Depends(get_db), me: User = Depends(require_permissions(Permission.PERMISSIONS_MANAGE))):
    result = svc.review_permission_request(db, request_id, me.id, body.status.value, body.review_note)
    create_audit_log(db, "PERMISSION_REQUEST_REVIEW", me.id, target_id=request_id, target_type="PERMISSION_REQUEST", metadata={"status": body.status.value})
    return result
