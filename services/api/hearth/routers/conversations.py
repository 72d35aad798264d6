import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import selectinload

from .. import models, schemas
from ..agents.assistant import AssistantRunner
from ..deps import AuthContext, get_auth, get_scope
from ..scoping import HouseholdScope
from ..settings import settings

logger = logging.getLogger("hearth.ai")

router = APIRouter()
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

LINK_TARGETS = {
    models.EntityType.THEME.value: models.Theme,
    models.EntityType.PROJECT.value: models.Project,
    models.EntityType.TASK.value: models.Task,
    models.EntityType.FAMILY_MEMBER.value: models.FamilyMember,
}


def _get_conversation(scope: HouseholdScope, conversation_id: str) -> models.Conversation:
    conversation = scope.get(models.Conversation, conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@router.get("/", response_model=schemas.PageOut[schemas.ConversationOut])
def list_conversations(
    scope: HouseholdScope = Depends(get_scope),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    query = scope.query(models.Conversation)
    total = query.count()
    conversations = (
        query.order_by(models.Conversation.updated_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"data": conversations, "meta": schemas.page_meta(page, limit, total)}


@router.post("/", response_model=schemas.DataOut[schemas.ConversationOut], status_code=status.HTTP_201_CREATED)
def create_conversation(
    body: schemas.ConversationCreate,
    auth: AuthContext = Depends(get_auth),
    scope: HouseholdScope = Depends(get_scope),
):
    conversation = scope.add(models.Conversation(
        started_by_id=auth.user_id,
        title=body.title,
        provider=body.provider,
        model=body.model or settings.gemini_text_model,
    ))
    scope.db.commit()
    scope.db.refresh(conversation)
    return {"data": conversation}


@router.get("/{conversation_id}", response_model=schemas.DataOut[schemas.ConversationDetailOut])
def get_conversation(conversation_id: str, scope: HouseholdScope = Depends(get_scope)):
    conversation = (
        scope.query(models.Conversation)
        .options(
            selectinload(models.Conversation.messages).selectinload(models.ConversationMessage.tool_calls),
            selectinload(models.Conversation.links),
        )
        .filter(models.Conversation.id == conversation_id)
        .first()
    )
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"data": conversation}


@router.delete("/{conversation_id}", response_model=schemas.SuccessOut)
def delete_conversation(conversation_id: str, scope: HouseholdScope = Depends(get_scope)):
    if not scope.delete(models.Conversation, conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    scope.db.commit()
    return {"success": True}


@router.post(
    "/{conversation_id}/link",
    response_model=schemas.DataOut[schemas.ConversationLinkOut],
    status_code=status.HTTP_201_CREATED,
)
def link_conversation(
    conversation_id: str,
    body: schemas.ConversationLinkIn,
    scope: HouseholdScope = Depends(get_scope),
):
    """Link the conversation to a household entity. The target must exist in the household."""
    conversation = _get_conversation(scope, conversation_id)
    if not scope.exists(LINK_TARGETS[body.entity_type], body.entity_id):
        raise HTTPException(status_code=404, detail=f"{body.entity_type} not found")

    existing = (
        scope.db.query(models.ConversationLink)
        .filter(
            models.ConversationLink.conversation_id == conversation.id,
            models.ConversationLink.entity_type == body.entity_type,
            models.ConversationLink.entity_id == body.entity_id,
        )
        .first()
    )
    if existing:
        return {"data": existing}

    link = models.ConversationLink(
        conversation_id=conversation.id,
        entity_type=body.entity_type,
        entity_id=body.entity_id,
    )
    scope.db.add(link)
    scope.db.commit()
    scope.db.refresh(link)
    return {"data": link}


@router.post("/{conversation_id}/messages", response_model=schemas.DataOut[schemas.AssistantTurnOut])
@limiter.limit(settings.ai_rate_limit)
def send_message(
    request: Request,  # required by the rate limiter
    conversation_id: str,
    body: schemas.SendMessageIn,
    auth: AuthContext = Depends(get_auth),
    scope: HouseholdScope = Depends(get_scope),
):
    conversation = _get_conversation(scope, conversation_id)
    runner = AssistantRunner(scope.db, auth.household_id, auth.user_id)
    result = runner.run(conversation, body.content)
    return {"data": result}
