"""Meal plan and planner-preference writes shared by the REST routes and AI tools."""

from typing import Any, Iterable, Optional

from ..db import upsert_insert
from ..models import MealPlan, MealPlanningPreference, Recipe, utcnow
from ..schemas import MealPlanEntryIn
from ..scoping import HouseholdScope


def normalize_recipe_ids(value: Any, fallback_recipe_id: Optional[str] = None) -> list[str]:
    """De-duplicated recipe ids in first-seen order, legacy ``recipe_id`` appended."""
    seen: dict[str, None] = {}
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str) and item.strip():
                seen.setdefault(item, None)
    if fallback_recipe_id:
        seen.setdefault(fallback_recipe_id, None)
    return list(seen)


def normalize_external_links(value: Any) -> list[dict[str, str]]:
    if not isinstance(value, list):
        return []
    links = []
    for item in value:
        if not isinstance(item, dict) or not isinstance(item.get("url"), str):
            continue
        url = item["url"].strip()
        if not url:
            continue
        link = {"url": url}
        title = item.get("title")
        if isinstance(title, str) and title.strip():
            link["title"] = title.strip()
        links.append(link)
    return links


class UnknownRecipeError(LookupError):
    def __init__(self, recipe_ids: list[str]):
        super().__init__(f"Recipe not found: {', '.join(recipe_ids)}")
        self.recipe_ids = recipe_ids


def check_recipe_ids(scope: HouseholdScope, recipe_ids: Iterable[str]) -> None:
    """Raise ``UnknownRecipeError`` unless every id is a recipe of this household."""
    wanted = set(recipe_ids)
    if not wanted:
        return
    found = {
        row.id for row in scope.query(Recipe).with_entities(Recipe.id).filter(Recipe.id.in_(wanted)).all()
    }
    missing = sorted(wanted - found)
    if missing:
        raise UnknownRecipeError(missing)


def bulk_upsert_meal_plans(scope: HouseholdScope, entries: Iterable[MealPlanEntryIn]) -> dict[str, int]:
    """Insert or replace one row per (date, slot). Returns created/updated/total counts.

    Each entry is a single INSERT .. ON CONFLICT DO UPDATE on the
    (household_id, plan_date, meal_slot) constraint.
    """
    entries = list(entries)
    db = scope.db
    normalized = [
        (entry, normalize_recipe_ids(entry.model_dump(mode="json").get("recipe_ids_json")))
        for entry in entries
    ]
    check_recipe_ids(scope, {rid for _, ids in normalized for rid in ids})

    dates = {e.plan_date for e in entries}
    existing = {
        (row.plan_date, row.meal_slot)
        for row in scope.query(MealPlan)
        .with_entities(MealPlan.plan_date, MealPlan.meal_slot)
        .filter(MealPlan.plan_date.in_(dates))
        .all()
    }

    created = updated = 0
    now = utcnow()
    for entry, recipe_ids in normalized:
        links = normalize_external_links(entry.model_dump(mode="json").get("external_links_json"))

        stmt = upsert_insert(db, MealPlan).values(
            household_id=scope.household_id,
            plan_date=entry.plan_date,
            meal_slot=entry.meal_slot,
            recipe_id=recipe_ids[0] if recipe_ids else None,
            recipe_ids_json=recipe_ids,
            external_links_json=links,
            notes=entry.notes,
            people_covered=entry.people_covered,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[MealPlan.household_id, MealPlan.plan_date, MealPlan.meal_slot],
            set_={
                "recipe_id": stmt.excluded.recipe_id,
                "recipe_ids_json": stmt.excluded.recipe_ids_json,
                "external_links_json": stmt.excluded.external_links_json,
                "notes": stmt.excluded.notes,
                "people_covered": stmt.excluded.people_covered,
                "updated_at": now,
            },
        )
        db.execute(stmt)

        key = (entry.plan_date, entry.meal_slot)
        if key in existing:
            updated += 1
        else:
            created += 1
            existing.add(key)

    db.commit()
    return {"created": created, "updated": updated, "total": len(entries)}


def get_preferences(scope: HouseholdScope) -> Optional[MealPlanningPreference]:
    return scope.query(MealPlanningPreference).first()


def upsert_preferences(scope: HouseholdScope, notes: Optional[str]) -> MealPlanningPreference:
    """Create or overwrite the household's single preference row. Last write wins."""
    db = scope.db
    stmt = upsert_insert(db, MealPlanningPreference).values(
        household_id=scope.household_id,
        notes=notes,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[MealPlanningPreference.household_id],
        set_={"notes": stmt.excluded.notes, "updated_at": utcnow()},
    )
    db.execute(stmt)
    db.commit()

    pref = get_preferences(scope)
    if pref is None:
        raise RuntimeError("Failed to save meal planning preferences")
    db.refresh(pref)
    return pref
