from .registry import (
    Tool,
    ToolContext,
    execute_tool_call,
    get_tool,
    list_tools,
    tool_declarations,
)

# Importing the tool modules registers their tools
from . import (  # noqa: F401
    recipe_tools,
    theme_tools,
    family_tools,
    task_tools,
    project_tools,
    meal_planning_tools,
)
