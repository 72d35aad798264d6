from typing import Optional

from pydantic import Field
from sqlalchemy import func

from ..models import Project, Task, Theme
from ..schemas import CamelModel, HEX_COLOR
from ..scoping import HouseholdScope
from .registry import ToolContext, tool


class ListThemesInput(CamelModel):
    pass


class CreateThemeInput(CamelModel):
    name: str = Field(..., min_length=1, max_length=100, description="The theme name")
    icon: Optional[str] = Field(None, max_length=50, description="Optional icon name (e.g., 'home', 'car', 'heart')")
    color: Optional[str] = Field(None, pattern=HEX_COLOR, description="Optional hex color (e.g., '#4A90D9')")


def theme_counts(scope: HouseholdScope) -> tuple[dict[str, int], dict[str, int]]:
    """Project and task counts per theme id, within the household."""
    project_counts = dict(
        scope.query(Project)
        .with_entities(Project.theme_id, func.count(Project.id))
        .filter(Project.theme_id.isnot(None))
        .group_by(Project.theme_id)
        .all()
    )
    task_counts = dict(
        scope.query(Task)
        .with_entities(Task.theme_id, func.count(Task.id))
        .filter(Task.theme_id.isnot(None))
        .group_by(Task.theme_id)
        .all()
    )
    return project_counts, task_counts


@tool("listThemes", "List all themes (categories) in the household", ListThemesInput)
def list_themes(ctx: ToolContext, params: ListThemesInput) -> dict:
    themes = ctx.scope.query(Theme).order_by(Theme.sort_order.asc()).all()
    project_counts, task_counts = theme_counts(ctx.scope)
    return {
        "count": len(themes),
        "items": [
            {
                "id": t.id,
                "name": t.name,
                "icon": t.icon,
                "color": t.color,
                "projectCount": project_counts.get(t.id, 0),
                "taskCount": task_counts.get(t.id, 0),
            }
            for t in themes
        ],
    }


@tool("createTheme", "Create a new theme (category) for organizing tasks and projects", CreateThemeInput)
def create_theme(ctx: ToolContext, params: CreateThemeInput) -> dict:
    theme = ctx.scope.add(Theme(name=params.name, icon=params.icon, color=params.color))
    ctx.db.commit()

    if not theme.id:
        return {"success": False, "error": "Failed to create theme"}

    return {
        "success": True,
        "message": f'Created theme: "{theme.name}"',
        "theme": {"id": theme.id, "name": theme.name},
    }
