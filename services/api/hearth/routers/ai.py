from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from .. import schemas
from ..deps import AuthContext, get_auth, get_scope
from ..scoping import HouseholdScope
from ..tools import ToolContext, execute_tool_call, get_tool, list_tools

router = APIRouter()


@router.get("/tools", response_model=schemas.DataOut[list[schemas.ToolInfo]])
def tool_catalog(auth: AuthContext = Depends(get_auth)):
    return {"data": [
        {"name": t.name, "description": t.description, "input_schema": t.input_schema()}
        for t in list_tools()
    ]}


@router.post("/tools/{name}")
def run_tool(
    name: str,
    payload: Optional[dict[str, Any]] = Body(None),
    auth: AuthContext = Depends(get_auth),
    scope: HouseholdScope = Depends(get_scope),
) -> dict[str, Any]:
    """Execute one tool directly. Tool-level failures come back in the body, not as HTTP errors."""
    if get_tool(name) is None:
        raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")
    context = ToolContext(db=scope.db, household_id=auth.household_id, user_id=auth.user_id)
    return execute_tool_call(name, payload or {}, context)
