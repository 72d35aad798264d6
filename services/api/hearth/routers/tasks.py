from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import joinedload

from .. import models, schemas
from ..deps import AuthContext, get_auth, get_scope
from ..models import utcnow
from ..scoping import HouseholdScope
from ..services.task_service import complete_task

router = APIRouter()


def _get_task(scope: HouseholdScope, task_id: str) -> models.Task:
    task = (
        scope.query(models.Task)
        .options(
            joinedload(models.Task.assigned_to),
            joinedload(models.Task.theme),
            joinedload(models.Task.project),
        )
        .filter(models.Task.id == task_id)
        .first()
    )
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _check_references(scope: HouseholdScope, data: dict) -> None:
    """Referenced theme/project/assignee must belong to the caller's household."""
    refs = {
        "theme_id": (models.Theme, "Theme"),
        "project_id": (models.Project, "Project"),
        "assigned_to_id": (models.FamilyMember, "Family member"),
    }
    for field, (model, label) in refs.items():
        value = data.get(field)
        if value and not scope.exists(model, value):
            raise HTTPException(status_code=404, detail=f"{label} not found")


@router.get("/", response_model=schemas.PageOut[schemas.TaskOut])
def list_tasks(
    scope: HouseholdScope = Depends(get_scope),
    status_filter: Optional[schemas.TaskStatusLiteral] = Query(None, alias="status"),
    theme_id: Optional[str] = Query(None, alias="themeId"),
    project_id: Optional[str] = Query(None, alias="projectId"),
    assigned_to_id: Optional[str] = Query(None, alias="assignedToId"),
    is_recurring: Optional[bool] = Query(None, alias="isRecurring"),
    due_before: Optional[datetime] = Query(None, alias="dueBefore"),
    due_after: Optional[datetime] = Query(None, alias="dueAfter"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """List tasks, most urgent first, with assignee/theme/project summaries."""
    query = scope.query(models.Task)
    if status_filter:
        query = query.filter(models.Task.status == status_filter)
    if theme_id:
        query = query.filter(models.Task.theme_id == theme_id)
    if project_id:
        query = query.filter(models.Task.project_id == project_id)
    if assigned_to_id:
        query = query.filter(models.Task.assigned_to_id == assigned_to_id)
    if is_recurring is not None:
        query = query.filter(models.Task.is_recurring == is_recurring)
    if due_before:
        query = query.filter(models.Task.due_date <= schemas.to_naive_utc(due_before))
    if due_after:
        query = query.filter(models.Task.due_date >= schemas.to_naive_utc(due_after))

    total = query.count()
    tasks = (
        query.options(
            joinedload(models.Task.assigned_to),
            joinedload(models.Task.theme),
            joinedload(models.Task.project),
        )
        .order_by(models.Task.priority.desc(), models.Task.due_date.asc(), models.Task.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"data": tasks, "meta": schemas.page_meta(page, limit, total)}


@router.get("/{task_id}", response_model=schemas.DataOut[schemas.TaskOut])
def get_task(task_id: str, scope: HouseholdScope = Depends(get_scope)):
    return {"data": _get_task(scope, task_id)}


@router.post("/", response_model=schemas.DataOut[schemas.TaskOut], status_code=status.HTTP_201_CREATED)
def create_task(
    task_in: schemas.TaskCreate,
    scope: HouseholdScope = Depends(get_scope),
    auth: AuthContext = Depends(get_auth),
):
    data = task_in.model_dump(exclude_none=True)
    _check_references(scope, data)

    task = scope.add(models.Task(created_by_id=auth.user_id, **data))
    scope.db.commit()
    return {"data": _get_task(scope, task.id)}


@router.patch("/{task_id}", response_model=schemas.DataOut[schemas.TaskOut])
def update_task(task_id: str, task_in: schemas.TaskUpdate, scope: HouseholdScope = Depends(get_scope)):
    task = _get_task(scope, task_id)
    data = task_in.model_dump(exclude_unset=True)
    _check_references(scope, data)

    for field, value in data.items():
        if field in ("title", "status", "is_recurring", "priority") and value is None:
            continue
        setattr(task, field, value)
    task.updated_at = utcnow()
    scope.db.commit()
    scope.db.expire_all()
    return {"data": _get_task(scope, task_id)}


@router.post("/{task_id}/complete", response_model=schemas.DataOut[schemas.TaskOut])
def complete(task_id: str, scope: HouseholdScope = Depends(get_scope)):
    """Complete a task. Recurring tasks are rolled forward to their next due date."""
    task = _get_task(scope, task_id)
    complete_task(task)
    scope.db.commit()
    return {"data": _get_task(scope, task_id)}


@router.delete("/{task_id}", response_model=schemas.SuccessOut)
def delete_task(task_id: str, scope: HouseholdScope = Depends(get_scope)):
    if not scope.delete(models.Task, task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    scope.db.commit()
    return {"success": True}
