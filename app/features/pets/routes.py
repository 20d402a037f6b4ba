"""
Pet management API routes.

Each handler decides access explicitly. Users holding only "own" grants see
and change only their own pets: list queries get an owner filter, single-pet
operations check ownership first.
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import apply_update
from app.core.database.engine import get_db
from app.core.database.pagination import paginate
from app.features.permissions.acl import Action, AppResource, PermissionTable
from app.features.permissions.decision import AuthenticatedUser
from app.features.permissions.dependencies import authorize, get_permission_table
from app.features.pets.lookups import PetOwnershipLookup, owner_filter
from app.features.pets.models import Pet, PetStatus
from app.features.pets.schemas import (
    PetCreate,
    PetDetailResponse,
    PetPage,
    PetResponse,
    PetUpdate,
)
from app.features.users.dependencies import get_authenticated_user
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def _get_live_pet(db: AsyncSession, pet_id: str) -> Pet:
    pet = await db.scalar(
        select(Pet).where(Pet.id == pet_id, Pet.date_deleted.is_(None))
    )
    if pet is None:
        raise HTTPException(status_code=404, detail="Pet not found")
    return pet


@router.get("", response_model=PetPage)
async def list_pets(
    species: str | None = None,
    pet_status: PetStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """
    List pets, paginated.

    Callers with read:any see every pet; callers with read:own only their own.
    Soft-deleted pets are excluded.
    """
    access = await authorize(
        current_user, AppResource.PET, Action.READ,
        table=table, lookup=PetOwnershipLookup(db),
    )

    query = select(Pet).where(Pet.date_deleted.is_(None))
    predicate = owner_filter(access)
    if predicate is not None:
        query = query.where(predicate)
    if species:
        query = query.where(Pet.species == species)
    if pet_status:
        query = query.where(Pet.status == pet_status.value)

    return await paginate(db, query.order_by(Pet.created_at, Pet.id), page, limit)


@router.get("/{pet_id}", response_model=PetDetailResponse)
async def get_pet(
    pet_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Get a pet with its live vaccinations and appointments."""
    await authorize(
        current_user, AppResource.PET, Action.READ,
        table=table, lookup=PetOwnershipLookup(db), resource_id=pet_id,
    )
    detail = PetDetailResponse.model_validate(await _get_live_pet(db, pet_id))
    detail.vaccinations = [v for v in detail.vaccinations if v.date_deleted is None]
    detail.appointments = [a for a in detail.appointments if a.date_deleted is None]
    return detail


@router.post("", response_model=PetResponse, status_code=status.HTTP_201_CREATED)
async def create_pet(
    pet_data: PetCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Create a pet owned by the caller."""
    await authorize(current_user, AppResource.PET, Action.CREATE, table=table)

    pet = Pet(**pet_data.model_dump(), user_id=current_user.id)
    db.add(pet)
    await db.commit()
    await db.refresh(pet)
    log.info(f"User {current_user.id} created pet {pet.id}")
    return pet


@router.patch("/{pet_id}", response_model=PetResponse)
async def update_pet(
    pet_id: str,
    pet_update: PetUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Update a pet. The owner never changes."""
    await authorize(
        current_user, AppResource.PET, Action.UPDATE,
        table=table, lookup=PetOwnershipLookup(db), resource_id=pet_id,
    )

    pet = await _get_live_pet(db, pet_id)
    apply_update(pet, pet_update.model_dump(exclude_unset=True))
    pet.version += 1

    await db.commit()
    await db.refresh(pet)
    return pet


@router.delete("/{pet_id}", response_model=PetResponse)
async def delete_pet(
    pet_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Soft delete a pet."""
    await authorize(
        current_user, AppResource.PET, Action.DELETE,
        table=table, lookup=PetOwnershipLookup(db), resource_id=pet_id,
    )

    pet = await _get_live_pet(db, pet_id)
    pet.date_deleted = datetime.now(timezone.utc)
    pet.version += 1

    await db.commit()
    await db.refresh(pet)
    log.info(f"User {current_user.id} deleted pet {pet.id}")
    return pet


@router.patch("/{pet_id}/recover", response_model=PetResponse)
async def recover_pet(
    pet_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Recover a soft-deleted pet."""
    await authorize(
        current_user, AppResource.PET, Action.UPDATE,
        table=table, lookup=PetOwnershipLookup(db), resource_id=pet_id,
    )

    pet = await db.get(Pet, pet_id)
    if pet is None:
        raise HTTPException(status_code=404, detail="Pet not found")
    if not pet.is_deleted:
        raise HTTPException(status_code=400, detail="Pet is not deleted")

    pet.date_deleted = None
    pet.version += 1

    await db.commit()
    await db.refresh(pet)
    return pet
