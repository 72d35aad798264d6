from typing import Optional

from pydantic import Field
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..models import Recipe, RecipeSource
from ..schemas import CamelModel, Ingredient, RecipeAttachment, RecipeSourceLiteral
from .registry import ToolContext, tool


class ListRecipesInput(CamelModel):
    search: Optional[str] = Field(None, description="Optional search term for title or description")
    tag: Optional[str] = Field(None, description="Optional tag filter (e.g., dinner, quick)")
    limit: int = Field(25, ge=1, le=100, description="Maximum recipes to return")


class SearchRecipesInput(CamelModel):
    query: str = Field(..., min_length=1, description="Search query for recipe title/description")
    limit: int = Field(25, ge=1, le=100, description="Maximum recipes to return")


class CreateRecipeInput(CamelModel):
    title: str = Field(..., min_length=1, max_length=500, description="Recipe title")
    description: Optional[str] = Field(None, description="Short description")
    ingredients_json: Optional[list[Ingredient]] = Field(None, description="Structured ingredient list")
    instructions_json: Optional[list[str]] = Field(None, description="Ordered list of steps")
    tags: Optional[list[str]] = Field(None, description="Tags like breakfast, kid-friendly, quick")
    prep_time_minutes: Optional[int] = Field(None, ge=0, description="Prep time in minutes")
    cook_time_minutes: Optional[int] = Field(None, ge=0, description="Cook time in minutes")
    yield_servings: Optional[int] = Field(None, ge=1, description="Number of servings")
    source: Optional[RecipeSourceLiteral] = Field(None, description="Recipe source")
    notes: Optional[str] = Field(None, description="Optional notes")
    attachments_json: Optional[list[RecipeAttachment]] = Field(
        None, description="Files or images linked to this recipe"
    )


def text_match(term: str):
    pattern = f"%{term}%"
    return or_(Recipe.title.ilike(pattern), Recipe.description.ilike(pattern))


def has_tag(db: Session, tag: str):
    """Exact element match on the ``tags`` array."""
    if db.get_bind().dialect.name == "postgresql":
        return Recipe.tags.contains([tag])
    # SQLite stores JSON as text; walk the array with json_each
    elements = func.json_each(Recipe.tags).table_valued("value")
    return select(elements.c.value).where(elements.c.value == tag).exists()


def recipe_summary(recipe: Recipe) -> dict:
    return {
        "id": recipe.id,
        "title": recipe.title,
        "tags": recipe.tags or [],
        "prepTimeMinutes": recipe.prep_time_minutes,
        "cookTimeMinutes": recipe.cook_time_minutes,
        "totalTimeMinutes": recipe.total_time_minutes,
        "source": recipe.source,
    }


@tool("listRecipes", "List household recipes with optional title/tag filters", ListRecipesInput)
def list_recipes(ctx: ToolContext, params: ListRecipesInput) -> dict:
    query = ctx.scope.query(Recipe)
    if params.search:
        query = query.filter(text_match(params.search))
    if params.tag:
        query = query.filter(has_tag(ctx.db, params.tag))

    rows = query.order_by(Recipe.created_at.desc()).limit(params.limit).all()
    return {"count": len(rows), "items": [recipe_summary(r) for r in rows]}


@tool("searchRecipes", "Search household recipes by a free-text query", SearchRecipesInput)
def search_recipes(ctx: ToolContext, params: SearchRecipesInput) -> dict:
    rows = (
        ctx.scope.query(Recipe)
        .filter(text_match(params.query))
        .order_by(Recipe.updated_at.desc())
        .limit(params.limit)
        .all()
    )
    return {"count": len(rows), "items": [recipe_summary(r) for r in rows]}


@tool("createRecipe", "Create a new recipe in the household cookbook", CreateRecipeInput)
def create_recipe(ctx: ToolContext, params: CreateRecipeInput) -> dict:
    data = params.model_dump(mode="json", by_alias=True)
    recipe = ctx.scope.add(Recipe(
        title=params.title,
        description=params.description,
        ingredients_json=data["ingredientsJson"] or [],
        instructions_json=data["instructionsJson"] or [],
        tags=data["tags"] or [],
        prep_time_minutes=params.prep_time_minutes,
        cook_time_minutes=params.cook_time_minutes,
        yield_servings=params.yield_servings,
        source=params.source or RecipeSource.MANUAL.value,
        notes=params.notes,
        attachments_json=data["attachmentsJson"] or [],
    ))
    ctx.db.commit()

    if not recipe.id:
        return {"success": False, "error": "Failed to create recipe"}

    return {
        "success": True,
        "message": f'Created recipe: "{recipe.title}"',
        "recipe": {"id": recipe.id, "title": recipe.title},
    }
