from uuid import UUID

from pydantic import Field
from sqlalchemy import func

from ..models import FamilyMember, Task, TaskStatus
from ..schemas import CamelModel
from ..scoping import HouseholdScope
from .registry import ToolContext, tool

CLOSED_STATUSES = (TaskStatus.DONE.value, TaskStatus.ARCHIVED.value)


class ListFamilyMembersInput(CamelModel):
    pass


class GetFamilyMemberInput(CamelModel):
    member_id: UUID = Field(..., description="The family member ID")


def open_task_counts(scope: HouseholdScope) -> dict[str, int]:
    return dict(
        scope.query(Task)
        .with_entities(Task.assigned_to_id, func.count(Task.id))
        .filter(Task.assigned_to_id.isnot(None), Task.status.notin_(CLOSED_STATUSES))
        .group_by(Task.assigned_to_id)
        .all()
    )


@tool("listFamilyMembers", "List all family members in the household", ListFamilyMembersInput)
def list_family_members(ctx: ToolContext, params: ListFamilyMembersInput) -> dict:
    members = ctx.scope.query(FamilyMember).order_by(FamilyMember.first_name).all()
    counts = open_task_counts(ctx.scope)
    return {
        "count": len(members),
        "items": [
            {
                "id": m.id,
                "name": m.display_name,
                "firstName": m.first_name,
                "openTasks": counts.get(m.id, 0),
            }
            for m in members
        ],
    }


@tool("getFamilyMember", "Get details about a specific family member", GetFamilyMemberInput)
def get_family_member(ctx: ToolContext, params: GetFamilyMemberInput) -> dict:
    member = ctx.scope.get(FamilyMember, str(params.member_id))
    if member is None:
        return {"count": 0, "items": [], "success": False, "error": "Family member not found"}

    tasks = (
        ctx.scope.query(Task)
        .filter(Task.assigned_to_id == member.id, Task.status.notin_(CLOSED_STATUSES))
        .order_by(Task.due_date.asc())
        .limit(10)
        .all()
    )
    return {
        "count": 1,
        "items": [
            {
                "id": member.id,
                "name": member.display_name,
                "firstName": member.first_name,
                "lastName": member.last_name,
                "nickname": member.nickname,
                "birthday": member.birthday.isoformat() if member.birthday else None,
                "assignedTasks": [
                    {
                        "id": t.id,
                        "title": t.title,
                        "status": t.status,
                        "dueDate": t.due_date.date().isoformat() if t.due_date else None,
                    }
                    for t in tasks
                ],
            }
        ],
    }
