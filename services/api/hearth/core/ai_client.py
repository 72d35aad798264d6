import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from google import genai
from google.genai import types

from ..settings import settings

logger = logging.getLogger("hearth.ai")

MOCK_TOOL_PATTERN = re.compile(r"^/(?P<name>[A-Za-z]+)\s*(?P<args>\{.*\})?\s*$", re.DOTALL)


@dataclass
class ModelToolCall:
    id: str
    name: str
    args: dict[str, Any]


@dataclass
class ModelStep:
    text: Optional[str] = None
    tool_calls: list[ModelToolCall] = field(default_factory=list)


@dataclass
class ChatTurn:
    """One entry of the running transcript sent to the model.

    role is "user", "assistant" or "tool". Assistant turns may carry tool
    calls; tool turns carry the result for ``tool_call_id``.
    """
    role: str
    content: Optional[str] = None
    tool_calls: list[ModelToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    result: Optional[dict] = None


def new_tool_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:16]}"


class AIClient:
    _instance = None

    def __init__(self):
        self.api_key = settings.gemini_api_key
        self.mode = settings.ai_mode  # "mock" or "gemini"
        self._client: Optional[genai.Client] = None
        self.last_error: Optional[str] = None
        self.last_error_at: Optional[datetime] = None

        if self.mode == "gemini" and self.api_key:
            self._client = genai.Client(api_key=self.api_key)

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def is_available(self) -> bool:
        return self.mode == "gemini" and self._client is not None

    def generate_step(
        self,
        history: list[ChatTurn],
        declarations: list[dict],
        system_instruction: Optional[str] = None,
        model: Optional[str] = None,
    ) -> ModelStep:
        """Ask the model for its next move: either tool calls or a final reply.

        Falls back to the deterministic mock when Gemini is not configured or
        the call fails.
        """
        if not self.is_available():
            return self._mock_step(history)

        model_id = model or settings.gemini_text_model
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=[types.Tool(function_declarations=[
                types.FunctionDeclaration(
                    name=d["name"],
                    description=d["description"],
                    parameters_json_schema=d["parameters"],
                )
                for d in declarations
            ])],
            automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
        )

        try:
            response = self._client.models.generate_content(
                model=model_id,
                contents=self._to_contents(history),
                config=config,
            )
        except Exception as e:
            self.last_error = f"{e.__class__.__name__}: {str(e)}"
            self.last_error_at = datetime.now(timezone.utc)
            logger.error(f"Gemini generation failed: {e}")
            return self._mock_step(history)

        calls = [
            ModelToolCall(id=fc.id or new_tool_call_id(), name=fc.name, args=dict(fc.args or {}))
            for fc in (response.function_calls or [])
        ]
        text = None
        if not calls:
            text = response.text
        return ModelStep(text=text, tool_calls=calls)

    def _to_contents(self, history: list[ChatTurn]) -> list[types.Content]:
        contents = []
        for turn in history:
            if turn.role == "user":
                contents.append(types.Content(role="user", parts=[types.Part(text=turn.content or "")]))
            elif turn.role == "assistant":
                parts = []
                if turn.content:
                    parts.append(types.Part(text=turn.content))
                for call in turn.tool_calls:
                    parts.append(types.Part(function_call=types.FunctionCall(
                        id=call.id, name=call.name, args=call.args
                    )))
                if parts:
                    contents.append(types.Content(role="model", parts=parts))
            elif turn.role == "tool":
                contents.append(types.Content(role="user", parts=[
                    types.Part.from_function_response(name=turn.tool_name, response=turn.result or {})
                ]))
        return contents

    def _mock_step(self, history: list[ChatTurn]) -> ModelStep:
        """Scripted model: "/toolName {json}" calls a tool, anything else gets a canned reply."""
        if not history:
            return ModelStep(text="How can I help with your household today?")

        last = history[-1]
        if last.role == "tool":
            outcome = "done" if (last.result or {}).get("success", True) else "failed"
            return ModelStep(text=f"{last.tool_name}: {outcome}")

        if last.role == "user" and last.content:
            match = MOCK_TOOL_PATTERN.match(last.content.strip())
            if match:
                try:
                    args = json.loads(match.group("args") or "{}")
                except json.JSONDecodeError:
                    args = {}
                if not isinstance(args, dict):
                    args = {}
                return ModelStep(tool_calls=[
                    ModelToolCall(id=new_tool_call_id(), name=match.group("name"), args=args)
                ])

        return ModelStep(text="I can help with tasks, projects, recipes and meal plans.")


def get_ai_client() -> AIClient:
    return AIClient.get_instance()
