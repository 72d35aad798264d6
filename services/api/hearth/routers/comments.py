from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from .. import models, schemas
from ..agents.task_agent import extract_ai_message, has_ai_mention, run_task_agent
from ..deps import AuthContext, get_auth, get_scope
from ..scoping import HouseholdScope

router = APIRouter()


def _get_task(scope: HouseholdScope, task_id: str) -> models.Task:
    task = scope.get(models.Task, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _authors(scope: HouseholdScope, user_ids: set[str]) -> dict[str, models.FamilyMember]:
    """Family member behind each commenting user, where the user has one."""
    if not user_ids:
        return {}
    rows = (
        scope.db.query(models.User.id, models.FamilyMember)
        .join(models.FamilyMember, models.User.family_member_id == models.FamilyMember.id)
        .filter(models.User.id.in_(user_ids))
        .all()
    )
    return {user_id: member for user_id, member in rows}


def _with_authors(scope: HouseholdScope, comments: list[models.Comment]) -> list[schemas.CommentOut]:
    authors = _authors(scope, {c.user_id for c in comments if c.user_id})
    out = []
    for comment in comments:
        item = schemas.CommentOut.model_validate(comment)
        member = authors.get(comment.user_id)
        if member is not None:
            item.user = schemas.CommentAuthorOut.model_validate(member)
        out.append(item)
    return out


@router.get("/{task_id}/comments", response_model=schemas.DataOut[list[schemas.CommentOut]])
def list_comments(task_id: str, scope: HouseholdScope = Depends(get_scope)):
    """Newest first."""
    task = _get_task(scope, task_id)
    comments = (
        scope.db.query(models.Comment)
        .filter(models.Comment.task_id == task.id)
        .order_by(models.Comment.created_at.desc())
        .all()
    )
    return {"data": _with_authors(scope, comments)}


@router.post(
    "/{task_id}/comments",
    response_model=schemas.CommentCreatedOut,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    task_id: str,
    comment_in: schemas.CommentCreate,
    background_tasks: BackgroundTasks,
    scope: HouseholdScope = Depends(get_scope),
    auth: AuthContext = Depends(get_auth),
):
    """Add a comment. An ``@ai`` mention gets an assistant reply posted after the response."""
    task = _get_task(scope, task_id)
    comment = models.Comment(task_id=task.id, user_id=auth.user_id, content=comment_in.content)
    scope.db.add(comment)
    scope.db.commit()
    scope.db.refresh(comment)

    ai_triggered = has_ai_mention(comment_in.content)
    if ai_triggered:
        background_tasks.add_task(
            run_task_agent,
            auth.household_id,
            auth.user_id,
            task.id,
            extract_ai_message(comment_in.content),
        )

    return {"data": _with_authors(scope, [comment])[0], "ai_triggered": ai_triggered}


@router.delete("/{task_id}/comments/{comment_id}", response_model=schemas.SuccessOut)
def delete_comment(
    task_id: str,
    comment_id: str,
    scope: HouseholdScope = Depends(get_scope),
    auth: AuthContext = Depends(get_auth),
):
    """Authors may delete their own comments; anyone in the household may delete AI replies."""
    task = _get_task(scope, task_id)
    comment = (
        scope.db.query(models.Comment)
        .filter(models.Comment.id == comment_id, models.Comment.task_id == task.id)
        .first()
    )
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    if comment.user_id != auth.user_id and not comment.is_ai_generated:
        raise HTTPException(status_code=403, detail="Not authorized to delete this comment")

    scope.db.delete(comment)
    scope.db.commit()
    return {"success": True}
