from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from .. import models, schemas
from ..deps import get_scope
from ..models import utcnow
from ..scoping import HouseholdScope
from ..tools.recipe_tools import has_tag, text_match

router = APIRouter()

JSON_FIELDS = {
    "ingredients_json": "ingredientsJson",
    "instructions_json": "instructionsJson",
    "attachments_json": "attachmentsJson",
}


def parse_tags(tags: Optional[str], tag: Optional[str]) -> list[str]:
    """Union of ``tag`` and the comma-separated ``tags`` query values."""
    found: dict[str, None] = {}
    if tag and tag.strip():
        found[tag.strip()] = None
    for t in (tags or "").split(","):
        if t.strip():
            found[t.strip()] = None
    return list(found)


def _recipe_values(recipe_in: schemas.RecipeCreate, *, exclude_unset: bool) -> dict:
    # Nested JSON is stored with camelCase keys, as clients send it
    data = recipe_in.model_dump(exclude_unset=exclude_unset)
    dumped = recipe_in.model_dump(mode="json", by_alias=True, exclude_unset=exclude_unset)
    for field, alias in JSON_FIELDS.items():
        if field in data:
            data[field] = dumped[alias]
    return data


def _get_recipe(scope: HouseholdScope, recipe_id: str) -> models.Recipe:
    recipe = scope.get(models.Recipe, recipe_id)
    if not recipe:
        raise HTTPException(status_code=404, detail="Recipe not found")
    return recipe


@router.get("/", response_model=schemas.PageOut[schemas.RecipeOut])
def list_recipes(
    scope: HouseholdScope = Depends(get_scope),
    search: Optional[str] = None,
    tag: Optional[str] = None,
    tags: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Newest first. Every requested tag must be present."""
    query = scope.query(models.Recipe)
    if search:
        query = query.filter(text_match(search))
    for t in parse_tags(tags, tag):
        query = query.filter(has_tag(scope.db, t))

    total = query.count()
    recipes = (
        query.order_by(models.Recipe.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"data": recipes, "meta": schemas.page_meta(page, limit, total)}


@router.get("/{recipe_id}", response_model=schemas.DataOut[schemas.RecipeOut])
def get_recipe(recipe_id: str, scope: HouseholdScope = Depends(get_scope)):
    return {"data": _get_recipe(scope, recipe_id)}


@router.post("/", response_model=schemas.DataOut[schemas.RecipeOut], status_code=status.HTTP_201_CREATED)
def create_recipe(recipe_in: schemas.RecipeCreate, scope: HouseholdScope = Depends(get_scope)):
    data = {k: v for k, v in _recipe_values(recipe_in, exclude_unset=False).items() if v is not None}
    data.setdefault("source", models.RecipeSource.MANUAL.value)
    for field in ("ingredients_json", "instructions_json", "tags", "attachments_json"):
        data.setdefault(field, [])

    recipe = scope.add(models.Recipe(**data))
    scope.db.commit()
    scope.db.refresh(recipe)
    return {"data": recipe}


@router.patch("/{recipe_id}", response_model=schemas.DataOut[schemas.RecipeOut])
def update_recipe(recipe_id: str, recipe_in: schemas.RecipeUpdate, scope: HouseholdScope = Depends(get_scope)):
    recipe = _get_recipe(scope, recipe_id)
    for field, value in _recipe_values(recipe_in, exclude_unset=True).items():
        if value is None and field in ("title", "source", "tags", *JSON_FIELDS):
            continue
        setattr(recipe, field, value)
    recipe.updated_at = utcnow()
    scope.db.commit()
    scope.db.refresh(recipe)
    return {"data": recipe}


@router.delete("/{recipe_id}", response_model=schemas.SuccessOut)
def delete_recipe(recipe_id: str, scope: HouseholdScope = Depends(get_scope)):
    if not scope.delete(models.Recipe, recipe_id):
        raise HTTPException(status_code=404, detail="Recipe not found")
    scope.db.commit()
    return {"success": True}
