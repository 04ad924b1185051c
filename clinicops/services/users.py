import secrets
import uuid
from typing import Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..auth.security import get_password_hash
from ..config import settings
from ..models.models import User
from .audit import create_audit_log


def get_user_or_404(db: Session, user_id: uuid.UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def list_users(db: Session, include_inactive: bool = False) -> List[User]:
    query = db.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.name.asc()).all()


def list_users_by_role(db: Session, role: str) -> List[User]:
    return db.query(User).filter(User.role == role, User.is_active.is_(True)).order_by(User.name.asc()).all()


def create_user(db: Session, email: str, name: str, password: str, role: str = "STAFF", position: str = "NURSE", actor_id: Optional[uuid.UUID] = None) -> User:
    email = email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already exists")
    user = User(email=email, name=name, password_hash=get_password_hash(password), role=role, position=position)
    db.add(user)
    db.commit()
    db.refresh(user)
    if actor_id:
        create_audit_log(db, "USER_CREATE", actor_id, target_id=user.id, target_type="USER", metadata={"role": role, "position": position})
    return user


def update_user(db: Session, user_id: uuid.UUID, data: Dict, actor_id: uuid.UUID) -> User:
    user = get_user_or_404(db, user_id)
    for key, value in data.items():
        setattr(user, key, getattr(value, "value", value))
    db.commit()
    db.refresh(user)
    create_audit_log(db, "USER_UPDATE", actor_id, target_id=user.id, target_type="USER", metadata={"fields": sorted(data.keys())})
    return user


def deactivate_user(db: Session, user_id: uuid.UUID, actor_id: uuid.UUID) -> User:
    user = get_user_or_404(db, user_id)
    user.is_active = False
    db.commit()
    db.refresh(user)
    create_audit_log(db, "USER_DEACTIVATE", actor_id, target_id=user.id, target_type="USER")
    return user


def reset_password(db: Session, user_id: uuid.UUID, actor_id: uuid.UUID) -> Dict:
    user = get_user_or_404(db, user_id)
    temp_password = secrets.token_urlsafe(12)
    user.password_hash = get_password_hash(temp_password)
    db.commit()
    create_audit_log(db, "USER_PASSWORD_RESET", actor_id, target_id=user.id, target_type="USER")
    result = {"message": "密碼已重置，請透過其他安全管道通知使用者新密碼"}
    if settings.environment != "production":
        result["temp_password"] = temp_password
    return result


def ensure_bootstrap_admin(db: Session) -> Optional[User]:
    if not (settings.bootstrap_admin_email and settings.bootstrap_admin_password):
        return None
    if db.query(User).filter(User.role == "ADMIN").first():
        return None
    return create_user(
        db,
        settings.bootstrap_admin_email,
        "Administrator",
        settings.bootstrap_admin_password,
        role="ADMIN",
        position="ADMIN",
    )
