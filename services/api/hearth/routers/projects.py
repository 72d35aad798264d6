from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case, func
from sqlalchemy.orm import joinedload

from .. import models, schemas
from ..deps import get_scope
from ..scoping import HouseholdScope

router = APIRouter()


def _task_counts(scope: HouseholdScope, project_ids: list[str]) -> dict[str, tuple[int, int]]:
    if not project_ids:
        return {}
    rows = (
        scope.query(models.Task)
        .with_entities(
            models.Task.project_id,
            func.count(models.Task.id),
            func.sum(case((models.Task.status == models.TaskStatus.DONE.value, 1), else_=0)),
        )
        .filter(models.Task.project_id.in_(project_ids))
        .group_by(models.Task.project_id)
        .all()
    )
    return {project_id: (total, completed or 0) for project_id, total, completed in rows}


def _project_out(project: models.Project, counts: dict) -> schemas.ProjectOut:
    out = schemas.ProjectOut.model_validate(project)
    out.task_count, out.completed_task_count = counts.get(project.id, (0, 0))
    return out


def _get_project(scope: HouseholdScope, project_id: str) -> models.Project:
    project = (
        scope.query(models.Project)
        .options(joinedload(models.Project.theme))
        .filter(models.Project.id == project_id)
        .first()
    )
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _check_theme(scope: HouseholdScope, theme_id: Optional[str]) -> None:
    if theme_id and not scope.exists(models.Theme, theme_id):
        raise HTTPException(status_code=404, detail="Theme not found")


@router.get("/", response_model=schemas.PageOut[schemas.ProjectOut])
def list_projects(
    scope: HouseholdScope = Depends(get_scope),
    theme_id: Optional[str] = Query(None, alias="themeId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    query = scope.query(models.Project)
    if theme_id:
        query = query.filter(models.Project.theme_id == theme_id)
    if is_active is not None:
        query = query.filter(models.Project.is_active == is_active)

    total = query.count()
    projects = (
        query.options(joinedload(models.Project.theme))
        .order_by(models.Project.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    counts = _task_counts(scope, [p.id for p in projects])
    return {
        "data": [_project_out(p, counts) for p in projects],
        "meta": schemas.page_meta(page, limit, total),
    }


@router.get("/{project_id}", response_model=schemas.DataOut[schemas.ProjectOut])
def get_project(project_id: str, scope: HouseholdScope = Depends(get_scope)):
    project = _get_project(scope, project_id)
    return {"data": _project_out(project, _task_counts(scope, [project.id]))}


@router.post("/", response_model=schemas.DataOut[schemas.ProjectOut], status_code=status.HTTP_201_CREATED)
def create_project(project_in: schemas.ProjectCreate, scope: HouseholdScope = Depends(get_scope)):
    data = project_in.model_dump(exclude_none=True)
    _check_theme(scope, data.get("theme_id"))

    project = scope.add(models.Project(**data))
    scope.db.commit()
    return {"data": _project_out(_get_project(scope, project.id), {})}


@router.patch("/{project_id}", response_model=schemas.DataOut[schemas.ProjectOut])
def update_project(project_id: str, project_in: schemas.ProjectUpdate, scope: HouseholdScope = Depends(get_scope)):
    project = _get_project(scope, project_id)
    data = project_in.model_dump(exclude_unset=True)
    _check_theme(scope, data.get("theme_id"))

    for field, value in data.items():
        if field in ("name", "is_active") and value is None:
            continue
        setattr(project, field, value)
    scope.db.commit()
    scope.db.expire_all()

    project = _get_project(scope, project_id)
    return {"data": _project_out(project, _task_counts(scope, [project.id]))}


@router.delete("/{project_id}", response_model=schemas.SuccessOut)
def delete_project(project_id: str, scope: HouseholdScope = Depends(get_scope)):
    if not scope.delete(models.Project, project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    scope.db.commit()
    return {"success": True}
