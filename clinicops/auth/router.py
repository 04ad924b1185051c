import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..config import settings
from ..logging import structlog
from ..models.models import User
from ..ratelimit import limiter
from ..schemas.auth import LoginRequest, MeResponse, RefreshRequest, TokenResponse, UserResponse
from ..services.audit import create_audit_log
from ..services.permissions import get_user_permissions
from .security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    verify_password,
)


router = APIRouter(prefix="/auth", tags=["auth"])
logger = structlog.get_logger(__name__)


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user:
        # No email in logs
        logger.warning("login_failed", reason="unknown_user")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is disabled")
    if not verify_password(password, user.password_hash):
        logger.warning("login_failed", reason="bad_password", user_id=str(user.id))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    return user


def _issue_tokens(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user),
        refresh_token=create_refresh_token(str(user.id)),
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.login_rate_limit)
def login(request: Request, req: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, req.email, req.password)
    create_audit_log(
        db,
        action="AUTH_LOGIN",
        user_id=user.id,
        target_id=user.id,
        target_type="USER",
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    logger.info("login_succeeded", user_id=str(user.id))
    return _issue_tokens(user)


@router.post("/validate", response_model=UserResponse)
@limiter.limit(settings.login_rate_limit)
def validate_credentials(request: Request, req: LoginRequest, db: Session = Depends(get_db)):
    return authenticate(db, req.email, req.password)


@router.post("/refresh", response_model=TokenResponse)
def refresh(req: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(req.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = db.query(User).filter(User.id == _parse_sub(payload)).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not active")
    return _issue_tokens(user)


def _parse_sub(payload: dict):
    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid subject")


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    data = UserResponse.model_validate(user).model_dump()
    return MeResponse(**data, permissions=get_user_permissions(db, user.id))
