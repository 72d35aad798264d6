"""Replies to ``@ai`` mentions in task comments.

A mention posts a placeholder comment, opens a conversation linked to the
task, runs one assistant turn with the task as context and replaces the
placeholder with the assistant's reply.
"""

import logging
import re
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ..core.ai_client import AIClient
from ..db import session_scope
from ..models import Comment, Conversation, ConversationLink, EntityType, Task, utcnow
from ..scoping import HouseholdScope
from ..settings import settings
from .assistant import AssistantRunner

logger = logging.getLogger("hearth.ai")

AI_MENTION = re.compile(r"@ai\b", re.IGNORECASE)

ACK_REPLY = "On it! Let me look into that..."
EMPTY_REPLY = "I couldn't generate a response."
ERROR_REPLY = "Sorry, I encountered an error while processing your request. Please try again."

RECENT_COMMENTS = 20
PRIORITY_LABELS = {0: "Normal", 1: "High", 2: "Urgent"}


def has_ai_mention(content: str) -> bool:
    return bool(AI_MENTION.search(content))


def extract_ai_message(content: str) -> str:
    """The comment without its ``@ai`` mentions, or the whole comment if nothing else is left."""
    return AI_MENTION.sub("", content).strip() or content


def build_task_prompt(task: Task, recent: list[Comment], today: Optional[date] = None) -> str:
    lines = [
        "You are an AI assistant helping with a household task. "
        "You are responding to a comment on this task.",
        "",
        "## Task Details",
        f"- **Title**: {task.title}",
        f"- **Status**: {task.status}",
        f"- **Priority**: {PRIORITY_LABELS.get(task.priority, 'Normal')}",
    ]
    if task.description:
        lines.append(f"- **Description**: {task.description}")
    if task.due_date:
        lines.append(f"- **Due Date**: {task.due_date.date().isoformat()}")
    if task.assigned_to:
        lines.append(f"- **Assigned To**: {task.assigned_to.display_name} (ID: {task.assigned_to.id})")
    if task.theme:
        lines.append(f"- **Theme**: {task.theme.name}")
    if task.project:
        project = task.project.name
        if task.project.description:
            project += f" - {task.project.description}"
        lines.append(f"- **Project**: {project}")
    if task.is_recurring:
        lines.append(f"- **Recurring**: Every {task.recurrence_interval or 1} {task.recurrence_type}")

    if recent:
        lines += ["", "## Recent Comments"]
        for comment in recent:
            author = "AI Assistant" if comment.is_ai_generated else "Family member"
            lines.append(f"- **{author}**: {comment.content}")

    lines += [
        "",
        "## Instructions",
        "- Be helpful, concise, and actionable",
        f"- The task ID is {task.id}; use updateTask to change it",
        "- To break the task down, create new tasks with createTask",
        "- Always end with a clear answer to the comment",
        "",
        f"Today's date is {(today or date.today()).isoformat()}.",
    ]
    return "\n".join(lines)


class TaskAgent:
    def __init__(self, db: Session, household_id: str, user_id: str, client: Optional[AIClient] = None):
        self.db = db
        self.scope = HouseholdScope(db, household_id)
        self.household_id = household_id
        self.user_id = user_id
        self.client = client

    def _post(self, task_id: str, content: str, conversation_id: Optional[str] = None) -> Comment:
        comment = Comment(
            task_id=task_id,
            user_id=None,
            content=content,
            is_ai_generated=True,
            conversation_id=conversation_id,
        )
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        return comment

    def _recent_comments(self, task_id: str, exclude: str) -> list[Comment]:
        rows = (
            self.db.query(Comment)
            .filter(Comment.task_id == task_id, Comment.id != exclude)
            .order_by(Comment.created_at.desc())
            .limit(RECENT_COMMENTS)
            .all()
        )
        return list(reversed(rows))

    def _start_conversation(self, task: Task, message: str) -> Conversation:
        conversation = Conversation(
            household_id=self.household_id,
            started_by_id=self.user_id,
            title=f"Task Agent: {message[:50]}",
            provider="google",
            model=settings.gemini_text_model,
        )
        self.db.add(conversation)
        self.db.flush()
        self.db.add(ConversationLink(
            conversation_id=conversation.id,
            entity_type=EntityType.TASK.value,
            entity_id=task.id,
        ))
        self.db.commit()
        return conversation

    def process_mention(self, task_id: str, message: str) -> Optional[Comment]:
        """Answer one mention. Returns the AI comment, or None if the task is gone."""
        task = self.scope.get(Task, task_id)
        if task is None:
            logger.warning(f"Task {task_id} disappeared before the @ai mention was handled")
            return None

        logger.info(f"Processing @ai mention for task {task_id}")
        ack = self._post(task_id, ACK_REPLY)
        try:
            conversation = self._start_conversation(task, message)
            prompt = build_task_prompt(task, self._recent_comments(task_id, exclude=ack.id))
            runner = AssistantRunner(self.db, self.household_id, self.user_id, client=self.client)
            turn = runner.run(conversation, message, system_instruction=prompt)
        except Exception:
            logger.exception(f"@ai mention failed for task {task_id}")
            self.db.rollback()
            ack.content = ERROR_REPLY
            ack.created_at = utcnow()
            self.db.commit()
            return ack

        self.db.delete(ack)
        self.db.commit()
        return self._post(task_id, turn.reply or EMPTY_REPLY, conversation.id)


def run_task_agent(household_id: str, user_id: str, task_id: str, message: str) -> None:
    """Background entry point; opens its own session."""
    with session_scope() as db:
        TaskAgent(db, household_id, user_id).process_mention(task_id, message)
