from typing import Optional
from uuid import UUID

from pydantic import Field
from sqlalchemy import case, func

from ..models import Project, Task, TaskStatus, Theme
from ..schemas import CamelModel, UtcDatetime
from .registry import ToolContext, tool


class CreateProjectInput(CamelModel):
    name: str = Field(..., min_length=1, max_length=200, description="The project name")
    description: Optional[str] = Field(None, description="Optional project description")
    theme_id: Optional[UUID] = Field(None, description="Optional theme ID to categorize the project")
    due_date: Optional[UtcDatetime] = Field(None, description="Optional due date (ISO 8601 format)")


class ListProjectsInput(CamelModel):
    theme_id: Optional[UUID] = Field(None, description="Filter by theme ID")
    is_active: Optional[bool] = Field(None, description="Filter by active status")
    limit: int = Field(10, ge=1, le=50, description="Maximum number of projects to return")


@tool("createProject", "Create a new project to group related tasks", CreateProjectInput)
def create_project(ctx: ToolContext, params: CreateProjectInput) -> dict:
    theme_id = str(params.theme_id) if params.theme_id else None
    if theme_id and not ctx.scope.exists(Theme, theme_id):
        return {"success": False, "error": "Unknown theme"}

    project = ctx.scope.add(Project(
        name=params.name,
        description=params.description,
        theme_id=theme_id,
        due_date=params.due_date,
    ))
    ctx.db.commit()

    if not project.id:
        return {"success": False, "error": "Failed to create project"}

    return {
        "success": True,
        "message": f'Created project: "{project.name}"',
        "project": {"id": project.id, "name": project.name},
    }


@tool("listProjects", "List projects, optionally filtered by theme or active status", ListProjectsInput)
def list_projects(ctx: ToolContext, params: ListProjectsInput) -> dict:
    query = ctx.scope.query(Project)
    if params.theme_id:
        query = query.filter(Project.theme_id == str(params.theme_id))
    if params.is_active is not None:
        query = query.filter(Project.is_active == params.is_active)
    projects = query.order_by(Project.created_at.desc()).limit(params.limit).all()

    counts = {
        row.project_id: (row.total, row.completed or 0)
        for row in ctx.scope.query(Task)
        .with_entities(
            Task.project_id,
            func.count(Task.id).label("total"),
            func.sum(case((Task.status == TaskStatus.DONE.value, 1), else_=0)).label("completed"),
        )
        .filter(Task.project_id.in_([p.id for p in projects]))
        .group_by(Task.project_id)
        .all()
    }

    items = []
    for p in projects:
        total, completed = counts.get(p.id, (0, 0))
        items.append({
            "id": p.id,
            "name": p.name,
            "description": p.description,
            "isActive": p.is_active,
            "dueDate": p.due_date.date().isoformat() if p.due_date else None,
            "theme": p.theme.name if p.theme else None,
            "taskCount": total,
            "completedTasks": completed,
        })
    return {"count": len(items), "items": items}
