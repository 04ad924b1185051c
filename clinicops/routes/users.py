import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.auth import UserCreate, UserResponse, UserUpdate
from ..services import users as svc
from ..services.permissions import Role


router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[UserResponse])
def list_users(include_inactive: bool = False, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.list_users(db, include_inactive)


@router.get("/role/{role}", response_model=List[UserResponse])
def list_users_by_role(role: Role, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.list_users_by_role(db, role.value)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.get_user_or_404(db, user_id)


@router.post("", response_model=UserResponse, status_code=201)
def create_user(body: UserCreate, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.create_user(db, body.email, body.name, body.password, body.role.value, body.position.value, actor_id=me.id)


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(user_id: uuid.UUID, body: UserUpdate, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.update_user(db, user_id, body.model_dump(exclude_unset=True), me.id)


@router.delete("/{user_id}", response_model=UserResponse)
def deactivate_user(user_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.deactivate_user(db, user_id, me.id)


@router.post("/{user_id}/reset-password")
def reset_password(user_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.reset_password(db, user_id, me.id)
