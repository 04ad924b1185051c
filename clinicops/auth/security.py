import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models.models import User
from ..services.permissions import Role, ROLE_LEVELS, get_user_permissions


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


def _create_token(sub: str, ttl_seconds: int, extra: Optional[dict] = None) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    if extra:
        payload.update(extra)
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token


def create_access_token(user: User) -> str:
    return _create_token(
        str(user.id),
        settings.jwt_ttl_seconds,
        extra={"type": "access", "email": user.email, "role": user.role, "position": user.position},
    )


def create_refresh_token(user_id: str) -> str:
    return _create_token(user_id, settings.refresh_ttl_seconds, extra={"type": "refresh"})


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
):
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    payload = decode_token(creds.credentials)
    if payload.get("type") == "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    try:
        user_uuid = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid subject")
    user = db.query(User).filter(User.id == user_uuid).first()
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not active")
    return user


def role_level(user: User) -> int:
    return ROLE_LEVELS.get(user.role, 0)


def is_supervisor(user: User) -> bool:
    return role_level(user) >= ROLE_LEVELS[Role.SUPERVISOR.value]


def require_roles(min_role: str):
    """Allow users whose role level is at least that of ``min_role``."""
    required = ROLE_LEVELS[Role(min_role).value]

    def _dep(user: User = Depends(get_current_user)):
        if role_level(user) < required:
            raise HTTPException(status_code=403, detail="Insufficient role")
        return user

    return _dep


def require_permissions(*required_permissions: str, mode: str = "all"):
    """
    Require the effective permissions of the current user to contain
    every listed permission (mode="all") or at least one (mode="any").
    """
    wanted = [str(getattr(p, "value", p)) for p in required_permissions]

    def _dep(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        if not wanted:
            return user
        effective = set(get_user_permissions(db, user.id))
        if mode == "any":
            ok = any(p in effective for p in wanted)
        else:
            ok = all(p in effective for p in wanted)
        if not ok:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return _dep
