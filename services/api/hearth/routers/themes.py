from fastapi import APIRouter, Depends, HTTPException, status

from .. import models, schemas
from ..deps import get_scope
from ..scoping import HouseholdScope
from ..tools.theme_tools import theme_counts

router = APIRouter()


def _theme_out(theme: models.Theme, project_counts: dict, task_counts: dict) -> schemas.ThemeOut:
    out = schemas.ThemeOut.model_validate(theme)
    out.project_count = project_counts.get(theme.id, 0)
    out.task_count = task_counts.get(theme.id, 0)
    return out


def _get_theme(scope: HouseholdScope, theme_id: str) -> models.Theme:
    theme = scope.get(models.Theme, theme_id)
    if not theme:
        raise HTTPException(status_code=404, detail="Theme not found")
    return theme


@router.get("/", response_model=schemas.DataOut[list[schemas.ThemeOut]])
def list_themes(scope: HouseholdScope = Depends(get_scope)):
    """All household themes in sort order, with project and task counts."""
    themes = scope.query(models.Theme).order_by(models.Theme.sort_order.asc(), models.Theme.created_at.asc()).all()
    project_counts, task_counts = theme_counts(scope)
    return {"data": [_theme_out(t, project_counts, task_counts) for t in themes]}


@router.get("/{theme_id}", response_model=schemas.DataOut[schemas.ThemeOut])
def get_theme(theme_id: str, scope: HouseholdScope = Depends(get_scope)):
    theme = _get_theme(scope, theme_id)
    project_counts, task_counts = theme_counts(scope)
    return {"data": _theme_out(theme, project_counts, task_counts)}


@router.post("/", response_model=schemas.DataOut[schemas.ThemeOut], status_code=status.HTTP_201_CREATED)
def create_theme(theme_in: schemas.ThemeCreate, scope: HouseholdScope = Depends(get_scope)):
    data = theme_in.model_dump(exclude_none=True)
    theme = scope.add(models.Theme(**data))
    scope.db.commit()
    scope.db.refresh(theme)
    return {"data": _theme_out(theme, {}, {})}


@router.patch("/{theme_id}", response_model=schemas.DataOut[schemas.ThemeOut])
def update_theme(theme_id: str, theme_in: schemas.ThemeUpdate, scope: HouseholdScope = Depends(get_scope)):
    theme = _get_theme(scope, theme_id)
    for field, value in theme_in.model_dump(exclude_unset=True).items():
        if field in ("name", "sort_order") and value is None:
            continue
        setattr(theme, field, value)
    scope.db.commit()
    scope.db.refresh(theme)
    project_counts, task_counts = theme_counts(scope)
    return {"data": _theme_out(theme, project_counts, task_counts)}


@router.delete("/{theme_id}", response_model=schemas.SuccessOut)
def delete_theme(theme_id: str, scope: HouseholdScope = Depends(get_scope)):
    if not scope.delete(models.Theme, theme_id):
        raise HTTPException(status_code=404, detail="Theme not found")
    scope.db.commit()
    return {"success": True}
