from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from .. import models, schemas
from ..deps import get_scope
from ..models import utcnow
from ..scoping import HouseholdScope
from ..services.meal_planning import (
    UnknownRecipeError,
    bulk_upsert_meal_plans,
    check_recipe_ids,
    normalize_external_links,
    normalize_recipe_ids,
)

router = APIRouter()


def _with_recipes(scope: HouseholdScope, plans: list[models.MealPlan]) -> list[dict]:
    """Attach ``recipes: [{id, title}]`` for the ids each plan references."""
    ids = {rid for p in plans for rid in normalize_recipe_ids(p.recipe_ids_json, p.recipe_id)}
    titles = {}
    if ids:
        titles = dict(
            scope.query(models.Recipe)
            .with_entities(models.Recipe.id, models.Recipe.title)
            .filter(models.Recipe.id.in_(ids))
            .all()
        )

    out = []
    for plan in plans:
        item = schemas.MealPlanOut.model_validate(plan).model_dump()
        recipe_ids = normalize_recipe_ids(plan.recipe_ids_json, plan.recipe_id)
        item["recipe_ids_json"] = recipe_ids
        item["external_links_json"] = normalize_external_links(plan.external_links_json)
        item["recipes"] = [{"id": rid, "title": titles[rid]} for rid in recipe_ids if rid in titles]
        out.append(item)
    return out


@router.get("/", response_model=schemas.DataOut[list[schemas.MealPlanOut]])
def list_meal_plans(
    scope: HouseholdScope = Depends(get_scope),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
):
    query = scope.query(models.MealPlan)
    if start_date:
        query = query.filter(models.MealPlan.plan_date >= start_date)
    if end_date:
        query = query.filter(models.MealPlan.plan_date <= end_date)

    plans = query.order_by(
        models.MealPlan.plan_date, models.MealPlan.meal_slot, models.MealPlan.created_at
    ).all()
    return {"data": _with_recipes(scope, plans)}


@router.put("/bulk", response_model=schemas.DataOut[schemas.BulkUpsertResult])
def bulk_upsert(body: schemas.MealPlanBulkUpsert, scope: HouseholdScope = Depends(get_scope)):
    try:
        return {"data": bulk_upsert_meal_plans(scope, body.entries)}
    except UnknownRecipeError:
        raise HTTPException(status_code=404, detail="Recipe not found")


@router.patch("/{plan_id}", response_model=schemas.DataOut[schemas.MealPlanOut])
def update_meal_plan(plan_id: str, body: schemas.MealPlanUpdate, scope: HouseholdScope = Depends(get_scope)):
    plan = scope.get(models.MealPlan, plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Meal plan not found")

    data = body.model_dump(mode="json", exclude_unset=True)
    if "recipe_ids_json" in data:
        recipe_ids = normalize_recipe_ids(data["recipe_ids_json"])
        try:
            check_recipe_ids(scope, recipe_ids)
        except UnknownRecipeError:
            raise HTTPException(status_code=404, detail="Recipe not found")
        plan.recipe_ids_json = recipe_ids
        plan.recipe_id = recipe_ids[0] if recipe_ids else None
    if "external_links_json" in data:
        plan.external_links_json = normalize_external_links(data["external_links_json"])
    if "people_covered" in data:
        plan.people_covered = data["people_covered"]
    if "notes" in data:
        plan.notes = data["notes"]

    plan.updated_at = utcnow()
    scope.db.commit()
    scope.db.refresh(plan)
    return {"data": _with_recipes(scope, [plan])[0]}


@router.delete("/{plan_id}", response_model=schemas.SuccessOut)
def delete_meal_plan(plan_id: str, scope: HouseholdScope = Depends(get_scope)):
    if not scope.delete(models.MealPlan, plan_id):
        raise HTTPException(status_code=404, detail="Meal plan not found")
    scope.db.commit()
    return {"success": True}
