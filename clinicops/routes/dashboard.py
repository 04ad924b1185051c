from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.models import User
from ..services import dashboard as svc


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary")
def summary(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.summary(db, me)


@router.get("/stats")
def stats(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.stats(db)


@router.get("/operations")
def operations(db: Session = Depends(get_db), me: User = Depends(require_roles("SUPERVISOR"))):
    return svc.operations(db, me)
