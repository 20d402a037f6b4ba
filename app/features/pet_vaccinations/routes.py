"""
Pet vaccination API routes.

A vaccination belongs to whoever owns its pet. Attaching a record to a pet
also requires update access on that pet.
"""
from datetime import datetime, timezone
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import apply_update
from app.core.database.engine import get_db
from app.core.database.pagination import paginate
from app.features.permissions.acl import Action, AppResource, PermissionTable
from app.features.permissions.decision import AuthenticatedUser
from app.features.permissions.dependencies import authorize, get_permission_table
from app.features.pets.dependencies import authorize_pet_update, get_pet_record
from app.features.pets.lookups import ParentPetOwnershipLookup, owner_filter
from app.features.pets.models import Pet
from app.features.pet_vaccinations.models import PetVaccination
from app.features.pet_vaccinations.schemas import (
    PetVaccinationCreate,
    PetVaccinationCreateMany,
    PetVaccinationPage,
    PetVaccinationResponse,
    PetVaccinationUpdate,
)
from app.features.users.dependencies import get_authenticated_user
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

NOT_FOUND = "Vaccination not found"


async def _authorize_vaccination(
    db: AsyncSession,
    user: AuthenticatedUser,
    table: PermissionTable,
    action: Action,
    vaccination_id: str,
) -> None:
    await authorize(
        user, AppResource.PET_VACCINATION, action,
        table=table, lookup=ParentPetOwnershipLookup(db, PetVaccination), resource_id=vaccination_id,
    )


@router.get("", response_model=PetVaccinationPage)
async def list_vaccinations(
    pet_id: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """List live vaccinations of live pets, restricted to the caller's pets for read:own."""
    access = await authorize(
        current_user, AppResource.PET_VACCINATION, Action.READ,
        table=table, lookup=ParentPetOwnershipLookup(db, PetVaccination),
    )

    query = (
        select(PetVaccination)
        .join(Pet, PetVaccination.pet_id == Pet.id)
        .where(Pet.date_deleted.is_(None), PetVaccination.date_deleted.is_(None))
    )
    predicate = owner_filter(access)
    if predicate is not None:
        query = query.where(predicate)
    if pet_id:
        query = query.where(PetVaccination.pet_id == pet_id)

    query = query.order_by(PetVaccination.administered_date.desc(), PetVaccination.id)
    return await paginate(db, query, page, limit)


@router.get("/{vaccination_id}", response_model=PetVaccinationResponse)
async def get_vaccination(
    vaccination_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Get a vaccination record."""
    await _authorize_vaccination(db, current_user, table, Action.READ, vaccination_id)
    return await get_pet_record(db, PetVaccination, vaccination_id, NOT_FOUND)


@router.post("", response_model=PetVaccinationResponse, status_code=status.HTTP_201_CREATED)
async def create_vaccination(
    vaccination_data: PetVaccinationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Record a vaccination for a pet."""
    await authorize(current_user, AppResource.PET_VACCINATION, Action.CREATE, table=table)
    await authorize_pet_update(db, current_user, table, vaccination_data.pet_id)

    vaccination = PetVaccination(**vaccination_data.model_dump())
    db.add(vaccination)
    await db.commit()
    await db.refresh(vaccination)
    return vaccination


@router.post("/bulk", response_model=List[PetVaccinationResponse], status_code=status.HTTP_201_CREATED)
async def create_vaccinations(
    vaccinations_data: PetVaccinationCreateMany,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """
    Record several vaccinations at once.

    Every target pet is checked before anything is written, so one forbidden
    pet rejects the whole batch.
    """
    await authorize(current_user, AppResource.PET_VACCINATION, Action.CREATE, table=table)
    for pet_id in dict.fromkeys(item.pet_id for item in vaccinations_data.bulk):
        await authorize_pet_update(db, current_user, table, pet_id)

    vaccinations = [PetVaccination(**item.model_dump()) for item in vaccinations_data.bulk]
    db.add_all(vaccinations)
    await db.commit()
    for vaccination in vaccinations:
        await db.refresh(vaccination)
    log.info(f"User {current_user.id} recorded {len(vaccinations)} vaccinations")
    return vaccinations


@router.patch("/{vaccination_id}", response_model=PetVaccinationResponse)
async def update_vaccination(
    vaccination_id: str,
    vaccination_update: PetVaccinationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Update a vaccination record, optionally moving it to another pet."""
    await _authorize_vaccination(db, current_user, table, Action.UPDATE, vaccination_id)
    vaccination = await get_pet_record(db, PetVaccination, vaccination_id, NOT_FOUND)

    update_data = vaccination_update.model_dump(exclude_unset=True)
    new_pet_id = update_data.get("pet_id")
    if new_pet_id and new_pet_id != vaccination.pet_id:
        await authorize_pet_update(db, current_user, table, new_pet_id)

    apply_update(vaccination, update_data)
    vaccination.version += 1

    await db.commit()
    await db.refresh(vaccination)
    return vaccination


@router.delete("/{vaccination_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vaccination(
    vaccination_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Soft delete a vaccination record."""
    await _authorize_vaccination(db, current_user, table, Action.DELETE, vaccination_id)
    vaccination = await get_pet_record(db, PetVaccination, vaccination_id, NOT_FOUND)
    vaccination.date_deleted = datetime.now(timezone.utc)
    vaccination.version += 1
    await db.commit()


@router.patch("/{vaccination_id}/recover", response_model=PetVaccinationResponse)
async def recover_vaccination(
    vaccination_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Recover a soft-deleted vaccination record."""
    await _authorize_vaccination(db, current_user, table, Action.UPDATE, vaccination_id)
    vaccination = await db.get(PetVaccination, vaccination_id)
    if vaccination is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    if not vaccination.is_deleted:
        raise HTTPException(status_code=400, detail="Vaccination is not deleted")

    vaccination = await get_pet_record(db, PetVaccination, vaccination_id, NOT_FOUND, deleted=True)
    vaccination.date_deleted = None
    vaccination.version += 1

    await db.commit()
    await db.refresh(vaccination)
    return vaccination
