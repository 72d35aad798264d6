"""Named, schema-validated operations exposed to the assistant.

Each tool is a pydantic input model plus a handler ``(ToolContext, params) -> dict``.
``execute_tool_call`` never raises: unknown tools, invalid input and handler
failures all come back as ``{"success": False, "error": ...}`` so the calling
agent can narrate the failure.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from ..scoping import HouseholdScope

logger = logging.getLogger("hearth.tools")


@dataclass
class ToolContext:
    db: Session
    household_id: str
    user_id: str
    scope: HouseholdScope = field(init=False)

    def __post_init__(self):
        self.scope = HouseholdScope(self.db, self.household_id)


Handler = Callable[[ToolContext, Any], dict]


@dataclass
class Tool:
    name: str
    description: str
    input_model: type[BaseModel]
    handler: Handler

    def input_schema(self) -> dict:
        return self.input_model.model_json_schema(by_alias=True)


_TOOLS: dict[str, Tool] = {}


def tool(name: str, description: str, input_model: type[BaseModel]):
    def decorator(fn: Handler) -> Handler:
        _TOOLS[name] = Tool(name=name, description=description, input_model=input_model, handler=fn)
        return fn
    return decorator


def get_tool(name: str) -> Optional[Tool]:
    return _TOOLS.get(name)


def list_tools() -> list[Tool]:
    return list(_TOOLS.values())


def tool_declarations() -> list[dict]:
    """Function declarations in the shape model providers expect."""
    return [
        {"name": t.name, "description": t.description, "parameters": t.input_schema()}
        for t in _TOOLS.values()
    ]


def _validation_details(exc: ValidationError) -> list[dict]:
    return [
        {"path": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def execute_tool_call(name: str, raw_input: Optional[dict], context: ToolContext) -> dict:
    t = get_tool(name)
    if t is None:
        return {"success": False, "error": f"Unknown tool: {name}"}

    try:
        params = t.input_model.model_validate(raw_input or {})
    except ValidationError as e:
        return {
            "success": False,
            "error": f"Invalid input for {name}",
            "details": _validation_details(e),
        }

    try:
        return t.handler(context, params)
    except Exception:
        logger.exception(f"Tool {name} failed")
        context.db.rollback()
        return {"success": False, "error": f"{name} failed"}
