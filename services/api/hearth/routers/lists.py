"""Shared checklists.

A list is visible to its creator, to users it is shared with, and to everyone
in the household when it has no creator (lists created before sharing
existed). Pins are per user.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func

from .. import models, schemas
from ..deps import AuthContext, get_auth, get_scope
from ..models import utcnow
from ..scoping import HouseholdScope

router = APIRouter()

PREVIEW_ITEMS = 10


def _get_list(scope: HouseholdScope, list_id: str, auth: AuthContext) -> models.List:
    lst = scope.get_accessible_list(list_id, auth.user_id)
    if not lst:
        raise HTTPException(status_code=404, detail="List not found")
    return lst


def _get_item(lst: models.List, item_id: str) -> models.ListItem:
    for item in lst.items:
        if item.id == item_id:
            return item
    raise HTTPException(status_code=404, detail="Item not found")


def _touch(lst: models.List) -> None:
    lst.updated_at = utcnow()


@router.get("/", response_model=schemas.PageOut[schemas.ListOut])
def list_lists(
    scope: HouseholdScope = Depends(get_scope),
    auth: AuthContext = Depends(get_auth),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Accessible lists, most recently changed first, each with up to 10 open items."""
    query = scope.accessible_lists(auth.user_id)
    if search:
        query = query.filter(models.List.name.ilike(f"%{search}%"))

    total = query.count()
    rows = query.order_by(models.List.updated_at.desc()).offset((page - 1) * limit).limit(limit).all()

    data = []
    for lst in rows:
        out = schemas.ListOut.model_validate(lst)
        out.preview_items = [
            schemas.ListPreviewItemOut.model_validate(item)
            for item in lst.items
            if item.marked_off_at is None
        ][:PREVIEW_ITEMS]
        data.append(out)
    return {"data": data, "meta": schemas.page_meta(page, limit, total)}


@router.post("/", response_model=schemas.DataOut[schemas.ListOut], status_code=status.HTTP_201_CREATED)
def create_list(
    list_in: schemas.ListCreate,
    scope: HouseholdScope = Depends(get_scope),
    auth: AuthContext = Depends(get_auth),
):
    lst = scope.add(models.List(name=list_in.name, created_by_id=auth.user_id))
    scope.db.commit()
    scope.db.refresh(lst)
    return {"data": lst}


@router.get("/pinned", response_model=schemas.DataOut[list[schemas.PinnedListOut]])
def list_pinned(scope: HouseholdScope = Depends(get_scope), auth: AuthContext = Depends(get_auth)):
    """The caller's pinned lists in pin order, with all items."""
    pins = (
        scope.db.query(models.ListPin)
        .filter(models.ListPin.user_id == auth.user_id)
        .order_by(models.ListPin.position.asc())
        .all()
    )

    data = []
    for pin in pins:
        lst = scope.get_accessible_list(pin.list_id, auth.user_id)
        if lst is None:
            continue
        out = schemas.ListWithItemsOut.model_validate(lst).model_dump()
        data.append(schemas.PinnedListOut(**out, pin_id=pin.id, position=pin.position))
    return {"data": data}


@router.patch("/pins/reorder", response_model=schemas.SuccessOut)
def reorder_pins(
    reorder: schemas.ReorderPins,
    scope: HouseholdScope = Depends(get_scope),
    auth: AuthContext = Depends(get_auth),
):
    """Positions follow the order of ``pinIds``. Pins of other users are ignored."""
    for position, pin_id in enumerate(reorder.pin_ids):
        scope.db.query(models.ListPin).filter(
            models.ListPin.id == pin_id,
            models.ListPin.user_id == auth.user_id,
        ).update({"position": position})
    scope.db.commit()
    return {"success": True}


@router.get("/{list_id}", response_model=schemas.DataOut[schemas.ListWithItemsOut])
def get_list(list_id: str, scope: HouseholdScope = Depends(get_scope), auth: AuthContext = Depends(get_auth)):
    return {"data": _get_list(scope, list_id, auth)}


@router.patch("/{list_id}", response_model=schemas.DataOut[schemas.ListOut])
def update_list(
    list_id: str,
    list_in: schemas.ListUpdate,
    scope: HouseholdScope = Depends(get_scope),
    auth: AuthContext = Depends(get_auth),
):
    lst = _get_list(scope, list_id, auth)
    if list_in.name is not None:
        lst.name = list_in.name
    _touch(lst)
    scope.db.commit()
    scope.db.refresh(lst)
    return {"data": lst}


@router.patch("/{list_id}/shares", response_model=schemas.DataOut[schemas.ListSharesOut])
def update_shares(
    list_id: str,
    shares_in: schemas.ListSharesUpdate,
    scope: HouseholdScope = Depends(get_scope),
    auth: AuthContext = Depends(get_auth),
):
    """Replace the share set. Only the owner may do this; a legacy list is claimed by the caller."""
    lst = _get_list(scope, list_id, auth)
    if lst.created_by_id is None:
        lst.created_by_id = auth.user_id
    elif lst.created_by_id != auth.user_id:
        raise HTTPException(status_code=403, detail="Only list owner can update shares")

    user_ids = list(dict.fromkeys(shares_in.user_ids))
    if user_ids:
        known = {
            row.id for row in scope.db.query(models.User.id)
            .filter(models.User.household_id == scope.household_id, models.User.id.in_(user_ids))
            .all()
        }
        unknown = [uid for uid in user_ids if uid not in known]
        if unknown:
            raise HTTPException(status_code=400, detail="Users must belong to the household")

    lst.shares.clear()
    scope.db.flush()
    for uid in user_ids:
        lst.shares.append(models.ListShare(user_id=uid))
    _touch(lst)
    scope.db.commit()
    return {"data": {"shared_user_ids": user_ids}}


@router.delete("/{list_id}", response_model=schemas.SuccessOut)
def delete_list(list_id: str, scope: HouseholdScope = Depends(get_scope), auth: AuthContext = Depends(get_auth)):
    lst = _get_list(scope, list_id, auth)
    scope.db.delete(lst)
    scope.db.commit()
    return {"success": True}


@router.post("/{list_id}/pin", response_model=schemas.DataOut[schemas.PinOut], status_code=status.HTTP_201_CREATED)
def pin_list(list_id: str, scope: HouseholdScope = Depends(get_scope), auth: AuthContext = Depends(get_auth)):
    lst = _get_list(scope, list_id, auth)
    pin = scope.db.query(models.ListPin).filter(
        models.ListPin.user_id == auth.user_id,
        models.ListPin.list_id == lst.id,
    ).first()

    if pin is None:
        max_position = (
            scope.db.query(func.max(models.ListPin.position))
            .filter(models.ListPin.user_id == auth.user_id)
            .scalar()
        )
        pin = models.ListPin(
            user_id=auth.user_id,
            list_id=lst.id,
            position=(max_position if max_position is not None else -1) + 1,
        )
        scope.db.add(pin)
        scope.db.commit()
        scope.db.refresh(pin)

    return {"data": {"pin_id": pin.id, "list_id": pin.list_id, "position": pin.position}}


@router.delete("/{list_id}/pin", response_model=schemas.SuccessOut)
def unpin_list(list_id: str, scope: HouseholdScope = Depends(get_scope), auth: AuthContext = Depends(get_auth)):
    lst = _get_list(scope, list_id, auth)
    deleted = scope.db.query(models.ListPin).filter(
        models.ListPin.user_id == auth.user_id,
        models.ListPin.list_id == lst.id,
    ).delete()
    if not deleted:
        raise HTTPException(status_code=404, detail="Pin not found")
    scope.db.commit()
    return {"success": True}


@router.get("/{list_id}/items", response_model=schemas.DataOut[list[schemas.ListItemOut]])
def list_items(list_id: str, scope: HouseholdScope = Depends(get_scope), auth: AuthContext = Depends(get_auth)):
    return {"data": _get_list(scope, list_id, auth).items}


@router.post(
    "/{list_id}/items",
    response_model=schemas.DataOut[schemas.ListItemOut],
    status_code=status.HTTP_201_CREATED,
)
def add_item(
    list_id: str,
    item_in: schemas.ListItemCreate,
    scope: HouseholdScope = Depends(get_scope),
    auth: AuthContext = Depends(get_auth),
):
    lst = _get_list(scope, list_id, auth)
    item = models.ListItem(list_id=lst.id, content=item_in.content)
    scope.db.add(item)
    _touch(lst)
    scope.db.commit()
    scope.db.refresh(item)
    return {"data": item}


@router.patch("/{list_id}/items/{item_id}", response_model=schemas.DataOut[schemas.ListItemOut])
def update_item(
    list_id: str,
    item_id: str,
    item_in: schemas.ListItemUpdate,
    scope: HouseholdScope = Depends(get_scope),
    auth: AuthContext = Depends(get_auth),
):
    """Edit content or toggle ``markedOff``; marking off stamps the time, unmarking clears it."""
    lst = _get_list(scope, list_id, auth)
    item = _get_item(lst, item_id)

    changed = False
    if item_in.content is not None:
        item.content = item_in.content
        changed = True
    if item_in.marked_off is not None:
        item.marked_off_at = utcnow() if item_in.marked_off else None
        changed = True

    if changed:
        _touch(lst)
        scope.db.commit()
        scope.db.refresh(item)
    return {"data": item}


@router.delete("/{list_id}/items/{item_id}", response_model=schemas.SuccessOut)
def delete_item(
    list_id: str,
    item_id: str,
    scope: HouseholdScope = Depends(get_scope),
    auth: AuthContext = Depends(get_auth),
):
    lst = _get_list(scope, list_id, auth)
    item = _get_item(lst, item_id)
    scope.db.delete(item)
    _touch(lst)
    scope.db.commit()
    return {"success": True}
