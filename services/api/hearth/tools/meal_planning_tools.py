from datetime import date
from typing import Optional

from pydantic import Field

from ..models import MealPlan, Recipe
from ..schemas import CamelModel, MealPlanBulkUpsert, MealSlotLiteral
from ..services.meal_planning import (
    UnknownRecipeError,
    bulk_upsert_meal_plans,
    get_preferences,
    normalize_external_links,
    normalize_recipe_ids,
    upsert_preferences,
)
from .registry import ToolContext, tool


class ListMealPlansInput(CamelModel):
    start_date: Optional[date] = Field(None, description="Inclusive start date, YYYY-MM-DD")
    end_date: Optional[date] = Field(None, description="Inclusive end date, YYYY-MM-DD")
    meal_slot: Optional[MealSlotLiteral] = Field(None, description="Optional meal slot filter")


class GetMealPlanningPreferencesInput(CamelModel):
    pass


class SetMealPlanningPreferencesInput(CamelModel):
    notes: Optional[str] = Field(None, max_length=20000, description="Meal planning preferences/philosophy text")


@tool("listMealPlans", "List meal plan entries for a date range", ListMealPlansInput)
def list_meal_plans(ctx: ToolContext, params: ListMealPlansInput) -> dict:
    query = ctx.scope.query(MealPlan)
    if params.start_date:
        query = query.filter(MealPlan.plan_date >= params.start_date)
    if params.end_date:
        query = query.filter(MealPlan.plan_date <= params.end_date)
    if params.meal_slot:
        query = query.filter(MealPlan.meal_slot == params.meal_slot)
    rows = query.order_by(MealPlan.plan_date.asc(), MealPlan.meal_slot.asc()).all()

    recipe_ids = {rid for row in rows for rid in normalize_recipe_ids(row.recipe_ids_json, row.recipe_id)}
    titles = {}
    if recipe_ids:
        titles = dict(
            ctx.scope.query(Recipe)
            .with_entities(Recipe.id, Recipe.title)
            .filter(Recipe.id.in_(recipe_ids))
            .all()
        )

    items = []
    for row in rows:
        ids = normalize_recipe_ids(row.recipe_ids_json, row.recipe_id)
        items.append({
            "id": row.id,
            "planDate": row.plan_date.isoformat(),
            "mealSlot": row.meal_slot,
            "notes": row.notes,
            "peopleCovered": row.people_covered,
            "recipeIdsJson": ids,
            "externalLinksJson": normalize_external_links(row.external_links_json),
            "recipes": [{"id": rid, "title": titles[rid]} for rid in ids if rid in titles],
        })
    return {"count": len(items), "items": items}


@tool(
    "bulkUpsertMealPlans",
    "Create or update meal plan entries in bulk for one or more days and meal slots",
    MealPlanBulkUpsert,
)
def bulk_upsert(ctx: ToolContext, params: MealPlanBulkUpsert) -> dict:
    try:
        counts = bulk_upsert_meal_plans(ctx.scope, params.entries)
    except UnknownRecipeError as exc:
        return {"success": False, "error": str(exc)}
    return {"success": True, **counts}


@tool(
    "getMealPlanningPreferences",
    "Get household meal-planning philosophy/preferences to use as planning baseline",
    GetMealPlanningPreferencesInput,
)
def get_meal_planning_preferences(ctx: ToolContext, params: GetMealPlanningPreferencesInput) -> dict:
    pref = get_preferences(ctx.scope)
    return {"hasPreferences": pref is not None, "notes": pref.notes if pref else None}


@tool(
    "setMealPlanningPreferences",
    "Set or update household meal-planning philosophy/preferences for future planning",
    SetMealPlanningPreferencesInput,
)
def set_meal_planning_preferences(ctx: ToolContext, params: SetMealPlanningPreferencesInput) -> dict:
    upsert_preferences(ctx.scope, params.notes)
    return {"success": True, "message": "Meal planning preferences saved"}
