"""
Shared checks for records that hang off a pet (vaccinations, appointments).
"""
from typing import Any
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.acl import Action, AppResource, PermissionTable
from app.features.permissions.decision import AuthenticatedUser
from app.features.permissions.dependencies import authorize
from app.features.pets.lookups import PetOwnershipLookup
from app.features.pets.models import Pet


async def authorize_pet_update(
    db: AsyncSession,
    user: AuthenticatedUser,
    table: PermissionTable,
    pet_id: str,
) -> None:
    """
    Require update access on a live pet before a record is attached to it.

    Raises 403 when the caller may not update the pet and 404 when the pet is
    missing or deleted.
    """
    await authorize(
        user, AppResource.PET, Action.UPDATE,
        table=table, lookup=PetOwnershipLookup(db), resource_id=pet_id,
    )
    pet = await db.get(Pet, pet_id)
    if pet is None or pet.is_deleted:
        raise HTTPException(status_code=404, detail="Pet not found")


async def get_pet_record(
    db: AsyncSession,
    model: Any,
    record_id: str,
    detail: str,
    *,
    deleted: bool = False,
) -> Any:
    """
    Load a record whose parent pet is live.

    By default the record itself must be live as well; with deleted=True only
    soft-deleted records are returned, for recovery.
    """
    query = (
        select(model)
        .join(Pet, model.pet_id == Pet.id)
        .where(model.id == record_id, Pet.date_deleted.is_(None))
    )
    if deleted:
        query = query.where(model.date_deleted.is_not(None))
    else:
        query = query.where(model.date_deleted.is_(None))

    record = await db.scalar(query)
    if record is None:
        raise HTTPException(status_code=404, detail=detail)
    return record
