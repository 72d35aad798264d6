from typing import Optional

from fastapi import APIRouter, Depends

from .. import schemas
from ..deps import get_scope
from ..scoping import HouseholdScope
from ..services.meal_planning import get_preferences, upsert_preferences

router = APIRouter()


@router.get("/", response_model=schemas.DataOut[Optional[schemas.MealPlanningPreferenceOut]])
def read_preferences(scope: HouseholdScope = Depends(get_scope)):
    return {"data": get_preferences(scope)}


@router.put("/", response_model=schemas.DataOut[schemas.MealPlanningPreferenceOut])
def save_preferences(body: schemas.MealPlanningPreferenceUpdate, scope: HouseholdScope = Depends(get_scope)):
    return {"data": upsert_preferences(scope, body.notes)}
