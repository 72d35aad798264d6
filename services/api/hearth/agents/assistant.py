"""Assistant turn runner.

One call to ``AssistantRunner.run`` handles one user message:

1. Persist the user message with the next sequence number.
2. Ask the model for a step; execute any tool calls it requests through the
   tool registry (household scoped), feeding results back.
3. Stop at a text reply or after ``ai_max_tool_steps`` tool rounds.
4. Persist the assistant message plus its tool calls and tool results.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.ai_client import AIClient, ChatTurn, get_ai_client
from ..models import (
    Conversation,
    ConversationMessage,
    FamilyMember,
    Household,
    ToolCall,
    ToolResult,
    User,
    utcnow,
)
from ..settings import settings
from ..tools import ToolContext, execute_tool_call, tool_declarations

logger = logging.getLogger("hearth.ai")

TITLE_MAX = 50


@dataclass
class TurnResult:
    conversation_id: str
    reply: Optional[str]
    tool_calls: list[dict] = field(default_factory=list)
    steps: int = 0


def build_system_prompt(db: Session, household_id: str, user_id: str, today: Optional[date] = None) -> str:
    user = db.query(User).filter(User.id == user_id).first()
    me = None
    if user and user.family_member_id:
        me = db.query(FamilyMember).filter(
            FamilyMember.id == user.family_member_id,
            FamilyMember.household_id == household_id,
        ).first()
    household = db.query(Household).filter(Household.id == household_id).first()
    members = (
        db.query(FamilyMember)
        .filter(FamilyMember.household_id == household_id)
        .order_by(FamilyMember.first_name)
        .all()
    )

    display_name = (
        (me.nickname or me.first_name if me else None)
        or (user.name if user else None)
        or (user.email if user else None)
        or "User"
    )

    lines = ["You are a helpful household management assistant.", "", "## Current User",
             f"You are speaking with {display_name}."]
    if me:
        full = f"{me.first_name} {me.last_name}" if me.last_name else me.first_name
        lines.append(f"- Name: {full}")
        lines.append(f'- Family Member ID: {me.id} (use this when assigning tasks to "me")')
        if me.birthday:
            lines.append(f"- Birthday: {me.birthday.isoformat()}")

    if household:
        lines += ["", "## Household", f"Name: {household.name}"]

    if members:
        lines += ["", "## Family Members (use the ID when assigning tasks)"]
        for m in members:
            marker = " - current user" if me and m.id == me.id else ""
            lines.append(f"- {m.display_name} (ID: {m.id}){marker}")

    lines += [
        "",
        "## Instructions",
        "- Be concise and friendly",
        "- When users ask you to create tasks or projects, use the appropriate tools",
        "- For recipe requests use the recipe tools, never the task tools",
        "- For meal-planning requests, first call getMealPlanningPreferences, then use recipe tools and bulkUpsertMealPlans",
        "- For \"what's for dinner\" requests, check today's entries with listMealPlans",
        "",
        f"Today's date is {(today or date.today()).isoformat()}.",
    ]
    return "\n".join(lines)


def title_from_message(content: str) -> Optional[str]:
    for line in content.splitlines():
        line = line.strip()
        if line and not line.startswith("Attachment:"):
            return line if len(line) <= TITLE_MAX else f"{line[:TITLE_MAX]}..."
    return None


class AssistantRunner:
    def __init__(self, db: Session, household_id: str, user_id: str, client: Optional[AIClient] = None):
        self.db = db
        self.household_id = household_id
        self.user_id = user_id
        self.client = client or get_ai_client()
        self.max_steps = settings.ai_max_tool_steps

    def _next_sequence(self, conversation_id: str) -> int:
        current = (
            self.db.query(func.max(ConversationMessage.sequence))
            .filter(ConversationMessage.conversation_id == conversation_id)
            .scalar()
        )
        return (current or 0) + 1

    def _history(self, conversation: Conversation) -> list[ChatTurn]:
        return [
            ChatTurn(role=m.role, content=m.content)
            for m in conversation.messages
            if m.role in ("user", "assistant") and m.content
        ]

    def run(self, conversation: Conversation, content: str, system_instruction: Optional[str] = None) -> TurnResult:
        sequence = self._next_sequence(conversation.id)
        self.db.add(ConversationMessage(
            conversation_id=conversation.id,
            role="user",
            content=content,
            sequence=sequence,
            raw_message={"role": "user", "parts": [{"type": "text", "text": content}]},
        ))
        # Committed up front so a failing tool rolling back its own work keeps the message
        self.db.commit()
        self.db.refresh(conversation)

        history = self._history(conversation)
        system = system_instruction or build_system_prompt(self.db, self.household_id, self.user_id)
        declarations = tool_declarations()
        context = ToolContext(db=self.db, household_id=self.household_id, user_id=self.user_id)

        calls: list[dict] = []
        results: list[dict] = []
        reply: Optional[str] = None
        steps = 0

        while steps < self.max_steps:
            step = self.client.generate_step(history, declarations, system_instruction=system, model=conversation.model)
            steps += 1
            if not step.tool_calls:
                reply = step.text
                break

            history.append(ChatTurn(role="assistant", content=step.text, tool_calls=step.tool_calls))
            for call in step.tool_calls:
                logger.info(f"Tool call {call.name} in conversation {conversation.id}")
                result = execute_tool_call(call.name, call.args, context)
                calls.append({"toolCallId": call.id, "toolName": call.name, "toolInput": call.args})
                results.append({
                    "toolCallId": call.id,
                    "result": result,
                    "isError": result.get("success") is False,
                })
                history.append(ChatTurn(role="tool", tool_call_id=call.id, tool_name=call.name, result=result))

        assistant = ConversationMessage(
            conversation_id=conversation.id,
            role="assistant",
            content=reply,
            sequence=sequence + 1,
        )
        self.db.add(assistant)
        self.db.flush()

        for i, call in enumerate(calls):
            self.db.add(ToolCall(
                message_id=assistant.id,
                tool_call_id=call["toolCallId"],
                tool_name=call["toolName"],
                tool_input=call["toolInput"],
                sequence=i,
            ))
        for res in results:
            self.db.add(ToolResult(
                conversation_id=conversation.id,
                tool_call_id=res["toolCallId"],
                message_id=assistant.id,
                result=res["result"],
                is_error=res["isError"],
            ))

        if not conversation.title:
            conversation.title = title_from_message(content)
        conversation.updated_at = utcnow()
        self.db.commit()

        return TurnResult(conversation_id=conversation.id, reply=reply, tool_calls=calls, steps=steps)
