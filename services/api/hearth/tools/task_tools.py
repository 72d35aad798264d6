from typing import Optional
from uuid import UUID

from pydantic import Field

from ..models import FamilyMember, Project, Task, Theme, utcnow
from ..schemas import CamelModel, TaskStatusLiteral, UtcDatetime
from ..services.task_service import complete_task
from .registry import ToolContext, tool

PRIORITY_LABELS = {0: "normal", 1: "high", 2: "urgent"}


class CreateTaskInput(CamelModel):
    title: str = Field(..., min_length=1, max_length=500, description="The task title")
    description: Optional[str] = Field(None, description="Optional task description")
    due_date: Optional[UtcDatetime] = Field(None, description="Optional due date (ISO 8601 format, e.g., 2024-03-15)")
    theme_id: Optional[UUID] = Field(None, description="Optional theme ID to categorize the task")
    project_id: Optional[UUID] = Field(None, description="Optional project ID")
    assigned_to_id: Optional[UUID] = Field(None, description="Optional family member ID to assign the task to")
    priority: Optional[int] = Field(None, ge=0, le=2, description="0 = normal, 1 = high, 2 = urgent")


class ListTasksInput(CamelModel):
    status: Optional[TaskStatusLiteral] = Field(None, description="Filter by task status")
    theme_id: Optional[UUID] = Field(None, description="Filter by theme ID")
    project_id: Optional[UUID] = Field(None, description="Filter by project ID")
    assigned_to_id: Optional[UUID] = Field(None, description="Filter by assigned family member ID")
    limit: int = Field(10, ge=1, le=50, description="Maximum number of tasks to return (default 10)")


class CompleteTaskInput(CamelModel):
    task_id: UUID = Field(..., description="The ID of the task to complete")


class UpdateTaskInput(CamelModel):
    task_id: UUID = Field(..., description="The ID of the task to update")
    title: Optional[str] = Field(None, min_length=1, max_length=500, description="New title")
    description: Optional[str] = Field(None, description="New description")
    due_date: Optional[UtcDatetime] = Field(None, description="New due date (ISO 8601 format)")
    status: Optional[TaskStatusLiteral] = Field(None, description="New status")
    assigned_to_id: Optional[UUID] = Field(None, description="New assignee family member ID")
    priority: Optional[int] = Field(None, ge=0, le=2, description="New priority (0-2)")


def _id(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value else None


def _check_refs(ctx: ToolContext, **refs: tuple) -> Optional[str]:
    """Name of the first referenced entity missing from the household, if any."""
    for label, (model, entity_id) in refs.items():
        if entity_id and not ctx.scope.exists(model, entity_id):
            return label
    return None


@tool("createTask", "Create a new task in the household task list", CreateTaskInput)
def create_task(ctx: ToolContext, params: CreateTaskInput) -> dict:
    missing = _check_refs(
        ctx,
        theme=(Theme, _id(params.theme_id)),
        project=(Project, _id(params.project_id)),
        assignee=(FamilyMember, _id(params.assigned_to_id)),
    )
    if missing:
        return {"success": False, "error": f"Unknown {missing}"}

    task = ctx.scope.add(Task(
        created_by_id=ctx.user_id,
        title=params.title,
        description=params.description,
        due_date=params.due_date,
        theme_id=_id(params.theme_id),
        project_id=_id(params.project_id),
        assigned_to_id=_id(params.assigned_to_id),
        priority=params.priority or 0,
    ))
    ctx.db.commit()

    if not task.id:
        return {"success": False, "error": "Failed to create task"}

    return {
        "success": True,
        "message": f'Created task: "{task.title}"',
        "task": {
            "id": task.id,
            "title": task.title,
            "dueDate": task.due_date.isoformat() if task.due_date else None,
        },
    }


@tool("listTasks", "List tasks, optionally filtered by status, theme, project, or assignee", ListTasksInput)
def list_tasks(ctx: ToolContext, params: ListTasksInput) -> dict:
    query = ctx.scope.query(Task)
    if params.status:
        query = query.filter(Task.status == params.status)
    if params.theme_id:
        query = query.filter(Task.theme_id == str(params.theme_id))
    if params.project_id:
        query = query.filter(Task.project_id == str(params.project_id))
    if params.assigned_to_id:
        query = query.filter(Task.assigned_to_id == str(params.assigned_to_id))

    rows = query.order_by(Task.priority.desc(), Task.due_date.asc()).limit(params.limit).all()
    return {
        "count": len(rows),
        "items": [
            {
                "id": t.id,
                "title": t.title,
                "status": t.status,
                "dueDate": t.due_date.date().isoformat() if t.due_date else None,
                "priority": PRIORITY_LABELS.get(t.priority, "normal"),
                "assignedTo": (
                    " ".join(filter(None, [t.assigned_to.first_name, t.assigned_to.last_name]))
                    if t.assigned_to else None
                ),
            }
            for t in rows
        ],
    }


@tool("completeTask", "Mark a task as completed", CompleteTaskInput)
def complete_task_tool(ctx: ToolContext, params: CompleteTaskInput) -> dict:
    task = ctx.scope.get(Task, str(params.task_id))
    if task is None:
        return {"success": False, "error": "Task not found"}

    complete_task(task)
    ctx.db.commit()

    result = {"success": True, "message": f'Completed task: "{task.title}"'}
    if task.next_due_date and task.status == "todo":
        result["nextDueDate"] = task.next_due_date.isoformat()
    return result


@tool("updateTask", "Update a task's details", UpdateTaskInput)
def update_task(ctx: ToolContext, params: UpdateTaskInput) -> dict:
    task = ctx.scope.get(Task, str(params.task_id))
    if task is None:
        return {"success": False, "error": "Task not found"}

    if params.assigned_to_id and not ctx.scope.exists(FamilyMember, str(params.assigned_to_id)):
        return {"success": False, "error": "Unknown assignee"}

    updates = params.model_dump(exclude_unset=True, exclude={"task_id"})
    for field, value in updates.items():
        if value is None:
            continue
        setattr(task, field, str(value) if isinstance(value, UUID) else value)
    task.updated_at = utcnow()
    ctx.db.commit()

    return {"success": True, "message": f'Updated task: "{task.title}"'}
