"""Assistant tools: validation, household isolation and results."""

from datetime import datetime
from unittest.mock import patch

import pytest

from hearth.models import FamilyMember, MealPlan, MealPlanningPreference, Recipe, Task, Theme
from hearth.tools import ToolContext, execute_tool_call, get_tool, list_tools, tool_declarations

EXPECTED_TOOLS = {
    "listRecipes", "searchRecipes", "createRecipe",
    "listThemes", "createTheme",
    "listFamilyMembers", "getFamilyMember",
    "createTask", "listTasks", "completeTask", "updateTask",
    "createProject", "listProjects",
    "listMealPlans", "bulkUpsertMealPlans", "getMealPlanningPreferences", "setMealPlanningPreferences",
}


@pytest.fixture
def ctx(db_session, household, user):
    return ToolContext(db=db_session, household_id=household.id, user_id=user.id)


def test_registry_has_all_tools():
    assert {t.name for t in list_tools()} == EXPECTED_TOOLS
    declarations = {d["name"]: d for d in tool_declarations()}
    assert "title" in declarations["createTask"]["parameters"]["properties"]
    assert "dueDate" in declarations["createTask"]["parameters"]["properties"]


def test_unknown_tool(ctx):
    assert execute_tool_call("launchRocket", {}, ctx) == {"success": False, "error": "Unknown tool: launchRocket"}


def test_invalid_input_has_no_side_effects(ctx, db_session):
    result = execute_tool_call("createTask", {"title": "", "priority": 9}, ctx)
    assert result["success"] is False
    assert result["error"] == "Invalid input for createTask"
    paths = {d["path"] for d in result["details"]}
    assert {"title", "priority"} <= paths
    assert db_session.query(Task).count() == 0


def test_handler_failure_is_reported_and_rolled_back(ctx, db_session):
    with patch.object(get_tool("createTheme"), "handler", side_effect=RuntimeError("db gone")):
        result = execute_tool_call("createTheme", {"name": "Boom"}, ctx)
    assert result == {"success": False, "error": "createTheme failed"}
    assert db_session.query(Theme).count() == 0


def test_create_recipe_with_title_only(ctx, db_session):
    result = execute_tool_call("createRecipe", {"title": "Plain rice"}, ctx)
    assert result["success"] is True

    recipe = db_session.query(Recipe).one()
    assert recipe.ingredients_json == []
    assert recipe.instructions_json == []
    assert recipe.tags == []
    assert recipe.attachments_json == []
    assert recipe.source == "manual"


def test_list_and_search_recipes(ctx, db_session, household):
    db_session.add_all([
        Recipe(household_id=household.id, title="Pad thai", tags=["dinner"]),
        Recipe(household_id=household.id, title="Porridge", tags=["breakfast"], prep_time_minutes=5, cook_time_minutes=10),
    ])
    db_session.commit()

    listed = execute_tool_call("listRecipes", {"tag": "breakfast"}, ctx)
    assert listed["count"] == 1
    assert listed["items"][0]["totalTimeMinutes"] == 15

    found = execute_tool_call("searchRecipes", {"query": "thai"}, ctx)
    assert [r["title"] for r in found["items"]] == ["Pad thai"]


def test_create_task_and_complete(ctx, db_session, member):
    created = execute_tool_call("createTask", {
        "title": "Mow lawn", "dueDate": "2026-05-01", "assignedToId": member.id, "priority": 1,
    }, ctx)
    assert created["success"] is True
    assert created["task"]["dueDate"] == "2026-05-01T00:00:00"

    task = db_session.query(Task).one()
    assert task.created_by_id == ctx.user_id
    assert task.household_id == ctx.household_id

    listed = execute_tool_call("listTasks", {"status": "todo"}, ctx)
    assert listed["items"][0]["priority"] == "high"
    assert listed["items"][0]["assignedTo"] == "Riley Park"

    done = execute_tool_call("completeTask", {"taskId": task.id}, ctx)
    assert done["success"] is True
    db_session.refresh(task)
    assert task.status == "done"


def test_complete_recurring_task_reports_next_due(ctx, db_session, household):
    task = Task(household_id=household.id, title="Filter", is_recurring=True,
                recurrence_type="monthly", due_date=datetime(2026, 1, 31))
    db_session.add(task)
    db_session.commit()

    result = execute_tool_call("completeTask", {"taskId": task.id}, ctx)
    assert result["nextDueDate"] == "2026-02-28T00:00:00"


def test_update_task(ctx, db_session, household):
    task = Task(household_id=household.id, title="Draft")
    db_session.add(task)
    db_session.commit()

    result = execute_tool_call("updateTask", {"taskId": task.id, "title": "Final", "status": "in_progress"}, ctx)
    assert result["success"] is True
    db_session.refresh(task)
    assert (task.title, task.status) == ("Final", "in_progress")


def test_tools_cannot_reach_other_households(ctx, db_session, other_household):
    foreign_task = Task(household_id=other_household.id, title="Theirs")
    foreign_member = FamilyMember(household_id=other_household.id, first_name="Stranger")
    foreign_theme = Theme(household_id=other_household.id, name="Theirs")
    db_session.add_all([foreign_task, foreign_member, foreign_theme])
    db_session.commit()

    assert execute_tool_call("completeTask", {"taskId": foreign_task.id}, ctx) == {
        "success": False, "error": "Task not found",
    }
    assert execute_tool_call("updateTask", {"taskId": foreign_task.id, "title": "x"}, ctx)["success"] is False
    assert execute_tool_call("createTask", {"title": "x", "themeId": foreign_theme.id}, ctx)["success"] is False
    assert execute_tool_call("listTasks", {}, ctx) == {"count": 0, "items": []}
    assert execute_tool_call("listFamilyMembers", {}, ctx) == {"count": 0, "items": []}

    missing = execute_tool_call("getFamilyMember", {"memberId": foreign_member.id}, ctx)
    assert missing == {"count": 0, "items": [], "success": False, "error": "Family member not found"}

    db_session.refresh(foreign_task)
    assert foreign_task.status == "todo"


def test_theme_and_project_tools(ctx, db_session, household):
    theme = execute_tool_call("createTheme", {"name": "Garage", "color": "#112233"}, ctx)
    assert theme["success"] is True
    theme_id = theme["theme"]["id"]

    project = execute_tool_call("createProject", {"name": "Shelving", "themeId": theme_id}, ctx)
    assert project["success"] is True
    db_session.add(Task(household_id=household.id, project_id=project["project"]["id"], title="Buy brackets", status="done"))
    db_session.commit()

    themes = execute_tool_call("listThemes", {}, ctx)
    assert themes["items"][0]["projectCount"] == 1

    projects = execute_tool_call("listProjects", {}, ctx)
    item = projects["items"][0]
    assert item["theme"] == "Garage"
    assert item["taskCount"] == 1
    assert item["completedTasks"] == 1


def test_get_family_member_with_tasks(ctx, db_session, household, member):
    db_session.add(Task(household_id=household.id, title="Homework", assigned_to_id=member.id))
    db_session.commit()

    result = execute_tool_call("getFamilyMember", {"memberId": member.id}, ctx)
    assert result["count"] == 1
    assert result["items"][0]["assignedTasks"][0]["title"] == "Homework"


def test_meal_planning_tools(ctx, db_session, household):
    recipe = Recipe(household_id=household.id, title="Curry")
    db_session.add(recipe)
    db_session.commit()

    upserted = execute_tool_call("bulkUpsertMealPlans", {"entries": [
        {"planDate": "2026-03-02", "mealSlot": "dinner", "recipeIdsJson": [recipe.id]},
    ]}, ctx)
    assert upserted == {"success": True, "created": 1, "updated": 0, "total": 1}

    plans = execute_tool_call("listMealPlans", {"startDate": "2026-03-01", "endDate": "2026-03-07"}, ctx)
    assert plans["items"][0]["recipes"] == [{"id": recipe.id, "title": "Curry"}]

    assert execute_tool_call("getMealPlanningPreferences", {}, ctx) == {"hasPreferences": False, "notes": None}
    assert execute_tool_call("setMealPlanningPreferences", {"notes": "Fish on Fridays"}, ctx)["success"] is True
    assert execute_tool_call("getMealPlanningPreferences", {}, ctx) == {"hasPreferences": True, "notes": "Fish on Fridays"}
    assert db_session.query(MealPlanningPreference).count() == 1


def test_bulk_upsert_tool_rejects_empty_entries(ctx, db_session):
    result = execute_tool_call("bulkUpsertMealPlans", {"entries": []}, ctx)
    assert result["success"] is False
    assert db_session.query(MealPlan).count() == 0


def test_bulk_upsert_tool_rejects_recipe_of_other_household(ctx, db_session, other_household):
    foreign = Recipe(household_id=other_household.id, title="Secret sauce")
    db_session.add(foreign)
    db_session.commit()

    result = execute_tool_call("bulkUpsertMealPlans", {"entries": [
        {"planDate": "2026-03-02", "mealSlot": "dinner", "recipeIdsJson": [foreign.id]},
    ]}, ctx)
    assert result["success"] is False
    assert foreign.id in result["error"]
    assert db_session.query(MealPlan).count() == 0


def test_list_recipes_tag_is_not_a_pattern(ctx, db_session, household):
    db_session.add_all([
        Recipe(household_id=household.id, title="Pancakes", tags=["quick"]),
        Recipe(household_id=household.id, title="Stew", tags=["slow"]),
    ])
    db_session.commit()

    assert execute_tool_call("listRecipes", {"tag": "%"}, ctx)["count"] == 0
    assert execute_tool_call("listRecipes", {"tag": "q_ick"}, ctx)["count"] == 0
    quick = execute_tool_call("listRecipes", {"tag": "quick"}, ctx)
    assert [r["title"] for r in quick["items"]] == ["Pancakes"]
