from fastapi import APIRouter, Depends, HTTPException, status

from .. import models, schemas
from ..deps import get_scope
from ..scoping import HouseholdScope
from ..tools.family_tools import open_task_counts

router = APIRouter()


def _member_out(member: models.FamilyMember, counts: dict) -> schemas.FamilyMemberOut:
    out = schemas.FamilyMemberOut.model_validate(member)
    out.assigned_task_count = counts.get(member.id, 0)
    return out


def _get_member(scope: HouseholdScope, member_id: str) -> models.FamilyMember:
    member = scope.get(models.FamilyMember, member_id)
    if not member:
        raise HTTPException(status_code=404, detail="Family member not found")
    return member


@router.get("/", response_model=schemas.DataOut[list[schemas.FamilyMemberOut]])
def list_family_members(scope: HouseholdScope = Depends(get_scope)):
    members = scope.query(models.FamilyMember).order_by(models.FamilyMember.created_at.asc()).all()
    counts = open_task_counts(scope)
    return {"data": [_member_out(m, counts) for m in members]}


@router.get("/{member_id}", response_model=schemas.DataOut[schemas.FamilyMemberOut])
def get_family_member(member_id: str, scope: HouseholdScope = Depends(get_scope)):
    member = _get_member(scope, member_id)
    return {"data": _member_out(member, open_task_counts(scope))}


@router.post("/", response_model=schemas.DataOut[schemas.FamilyMemberOut], status_code=status.HTTP_201_CREATED)
def create_family_member(member_in: schemas.FamilyMemberCreate, scope: HouseholdScope = Depends(get_scope)):
    member = scope.add(models.FamilyMember(**member_in.model_dump(mode="json", exclude_none=True)))
    if member_in.birthday:
        member.birthday = member_in.birthday
    scope.db.commit()
    scope.db.refresh(member)
    return {"data": _member_out(member, {})}


@router.patch("/{member_id}", response_model=schemas.DataOut[schemas.FamilyMemberOut])
def update_family_member(
    member_id: str,
    member_in: schemas.FamilyMemberUpdate,
    scope: HouseholdScope = Depends(get_scope),
):
    member = _get_member(scope, member_id)
    data = member_in.model_dump(mode="json", exclude_unset=True)
    if "birthday" in data:
        data["birthday"] = member_in.birthday
    for field, value in data.items():
        if field == "first_name" and value is None:
            continue
        setattr(member, field, value)
    scope.db.commit()
    scope.db.refresh(member)
    return {"data": _member_out(member, open_task_counts(scope))}


@router.delete("/{member_id}", response_model=schemas.SuccessOut)
def delete_family_member(member_id: str, scope: HouseholdScope = Depends(get_scope)):
    if not scope.delete(models.FamilyMember, member_id):
        raise HTTPException(status_code=404, detail="Family member not found")
    scope.db.commit()
    return {"success": True}
