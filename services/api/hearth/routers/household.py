from fastapi import APIRouter, Depends

from .. import models, schemas
from ..deps import get_scope
from ..scoping import HouseholdScope

router = APIRouter()


@router.get("/users", response_model=schemas.DataOut[list[schemas.HouseholdUserOut]])
def list_household_users(scope: HouseholdScope = Depends(get_scope)):
    """Users in the caller's household, for share pickers."""
    users = scope.query(models.User).order_by(models.User.name, models.User.email).all()
    return {"data": users}
