import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_permissions, require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.handover import (
    ArchiveRequest,
    BatchUpdate,
    CategoryCreate,
    CategoryUpdate,
    ChecklistCreate,
    ChecklistUpdate,
    CollaboratorAdd,
    CommentCreate,
    HandoverCreate,
    HandoverUpdate,
    SetCategories,
)
from ..services import handover as svc
from ..services.handover import HandoverPriority, HandoverStatus
from ..services.permissions import Permission


router = APIRouter(prefix="/handovers", tags=["handovers"])


@router.get("")
def list_handovers(
    status: Optional[HandoverStatus] = None,
    priority: Optional[HandoverPriority] = None,
    assignee_id: Optional[uuid.UUID] = None,
    created_by_id: Optional[uuid.UUID] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    _=Depends(require_permissions(Permission.HANDOVER_VIEW)),
):
    return svc.list_handovers(
        db,
        status.value if status else None,
        priority.value if priority else None,
        assignee_id,
        created_by_id,
        page,
        limit,
    )


@router.get("/my")
def my_handovers(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.my_handovers(db, me.id)


@router.get("/urgent")
def urgent(db: Session = Depends(get_db), _=Depends(require_permissions(Permission.HANDOVER_VIEW))):
    return svc.urgent_handovers(db)


@router.get("/stats/overview")
def stats(db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.task_stats(db)


@router.post("/batch")
def batch_update(body: BatchUpdate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.batch_update(db, [i.model_dump(exclude_none=True) for i in body.items], me)


# ----- categories -----
@router.get("/categories/all")
def list_categories(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.list_categories(db)


@router.post("/categories", status_code=201)
def create_category(body: CategoryCreate, db: Session = Depends(get_db), _=Depends(require_roles("ADMIN"))):
    return svc.create_category(db, body.name, body.color, body.description)


@router.patch("/categories/{category_id}")
def update_category(category_id: uuid.UUID, body: CategoryUpdate, db: Session = Depends(get_db), _=Depends(require_roles("ADMIN"))):
    return svc.update_category(db, category_id, body.model_dump(exclude_unset=True))


@router.delete("/categories/{category_id}")
def delete_category(category_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_roles("ADMIN"))):
    return svc.delete_category(db, category_id)


# ----- archive -----
@router.get("/archives")
def list_archives(db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.list_archives(db)


@router.post("/archives")
def archive(body: ArchiveRequest, db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.archive_month(db, body.year, body.month, me.id)


@router.post("/archives/auto")
def auto_archive(db: Session = Depends(get_db), me: User = Depends(require_roles("ADMIN"))):
    return svc.auto_archive_last_month(db, me.id)


@router.get("/archives/{archive_id}/items")
def archive_items(archive_id: uuid.UUID, page: int = 1, limit: int = 20, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.list_archived_items(db, archive_id, page, limit)


@router.get("/archives/{year}/{month}")
def get_archive(year: int, month: int, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.get_archive(db, year, month)


# ----- single handover -----
@router.post("", status_code=201)
def create_handover(body: HandoverCreate, db: Session = Depends(get_db), me: User = Depends(require_permissions(Permission.HANDOVER_CREATE))):
    return svc.create_handover(db, body.model_dump(), me)


@router.get("/{handover_id}")
def get_handover(handover_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions(Permission.HANDOVER_VIEW))):
    return svc.get_handover(db, handover_id)


@router.patch("/{handover_id}")
def update_handover(handover_id: uuid.UUID, body: HandoverUpdate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.update_handover(db, handover_id, body.model_dump(exclude_unset=True), me)


@router.delete("/{handover_id}")
def delete_handover(handover_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.delete_handover(db, handover_id, me)


@router.post("/{handover_id}/comments", status_code=201)
def add_comment(handover_id: uuid.UUID, body: CommentCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.add_comment(db, handover_id, body.content, me)


@router.post("/{handover_id}/categories")
def set_categories(handover_id: uuid.UUID, body: SetCategories, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.set_categories(db, handover_id, body.category_ids)


@router.post("/{handover_id}/collaborators", status_code=201)
def add_collaborator(handover_id: uuid.UUID, body: CollaboratorAdd, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return svc.add_collaborator(db, handover_id, body.user_id, body.role, me)


@router.delete("/{handover_id}/collaborators/{user_id}")
def remove_collaborator(handover_id: uuid.UUID, user_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_roles("SUPERVISOR"))):
    return svc.remove_collaborator(db, handover_id, user_id)


@router.post("/{handover_id}/checklist", status_code=201)
def add_checklist_item(handover_id: uuid.UUID, body: ChecklistCreate, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.add_checklist_item(db, handover_id, body.content)


@router.patch("/{handover_id}/checklist/{checklist_id}")
def update_checklist_item(handover_id: uuid.UUID, checklist_id: uuid.UUID, body: ChecklistUpdate, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.update_checklist_item(db, handover_id, checklist_id, body.model_dump(exclude_unset=True))


@router.delete("/{handover_id}/checklist/{checklist_id}")
def delete_checklist_item(handover_id: uuid.UUID, checklist_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return svc.delete_checklist_item(db, handover_id, checklist_id)


@router.get("/{handover_id}/subtasks")
def list_subtasks(handover_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions(Permission.HANDOVER_VIEW))):
    return svc.list_subtasks(db, handover_id)


@router.post("/{handover_id}/subtasks", status_code=201)
def create_subtask(handover_id: uuid.UUID, body: HandoverCreate, db: Session = Depends(get_db), me: User = Depends(require_permissions(Permission.HANDOVER_CREATE))):
    return svc.create_subtask(db, handover_id, body.model_dump(), me)
