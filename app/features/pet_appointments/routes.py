"""
Pet appointment API routes.

An appointment belongs to whoever owns its pet. Attaching a record to a pet
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
from app.features.pet_appointments.models import PetAppointment
from app.features.pet_appointments.schemas import (
    PetAppointmentCreate,
    PetAppointmentCreateMany,
    PetAppointmentPage,
    PetAppointmentResponse,
    PetAppointmentUpdate,
)
from app.features.users.dependencies import get_authenticated_user
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

NOT_FOUND = "Appointment not found"


async def _authorize_appointment(
    db: AsyncSession,
    user: AuthenticatedUser,
    table: PermissionTable,
    action: Action,
    appointment_id: str,
) -> None:
    await authorize(
        user, AppResource.PET_APPOINTMENT, action,
        table=table, lookup=ParentPetOwnershipLookup(db, PetAppointment), resource_id=appointment_id,
    )


@router.get("", response_model=PetAppointmentPage)
async def list_appointments(
    pet_id: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """List live appointments of live pets, restricted to the caller's pets for read:own."""
    access = await authorize(
        current_user, AppResource.PET_APPOINTMENT, Action.READ,
        table=table, lookup=ParentPetOwnershipLookup(db, PetAppointment),
    )

    query = (
        select(PetAppointment)
        .join(Pet, PetAppointment.pet_id == Pet.id)
        .where(Pet.date_deleted.is_(None), PetAppointment.date_deleted.is_(None))
    )
    predicate = owner_filter(access)
    if predicate is not None:
        query = query.where(predicate)
    if pet_id:
        query = query.where(PetAppointment.pet_id == pet_id)

    query = query.order_by(PetAppointment.appointment_date.desc(), PetAppointment.id)
    return await paginate(db, query, page, limit)


@router.get("/{appointment_id}", response_model=PetAppointmentResponse)
async def get_appointment(
    appointment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Get an appointment."""
    await _authorize_appointment(db, current_user, table, Action.READ, appointment_id)
    return await get_pet_record(db, PetAppointment, appointment_id, NOT_FOUND)


@router.post("", response_model=PetAppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: PetAppointmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Book an appointment for a pet."""
    await authorize(current_user, AppResource.PET_APPOINTMENT, Action.CREATE, table=table)
    await authorize_pet_update(db, current_user, table, appointment_data.pet_id)

    appointment = PetAppointment(**appointment_data.model_dump())
    db.add(appointment)
    await db.commit()
    await db.refresh(appointment)
    return appointment


@router.post("/bulk", response_model=List[PetAppointmentResponse], status_code=status.HTTP_201_CREATED)
async def create_appointments(
    appointments_data: PetAppointmentCreateMany,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """
    Book several appointments at once.

    Every target pet is checked before anything is written, so one forbidden
    pet rejects the whole batch.
    """
    await authorize(current_user, AppResource.PET_APPOINTMENT, Action.CREATE, table=table)
    for pet_id in dict.fromkeys(item.pet_id for item in appointments_data.bulk):
        await authorize_pet_update(db, current_user, table, pet_id)

    appointments = [PetAppointment(**item.model_dump()) for item in appointments_data.bulk]
    db.add_all(appointments)
    await db.commit()
    for appointment in appointments:
        await db.refresh(appointment)
    log.info(f"User {current_user.id} booked {len(appointments)} appointments")
    return appointments


@router.patch("/{appointment_id}", response_model=PetAppointmentResponse)
async def update_appointment(
    appointment_id: str,
    appointment_update: PetAppointmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Update an appointment, optionally moving it to another pet."""
    await _authorize_appointment(db, current_user, table, Action.UPDATE, appointment_id)
    appointment = await get_pet_record(db, PetAppointment, appointment_id, NOT_FOUND)

    update_data = appointment_update.model_dump(exclude_unset=True)
    new_pet_id = update_data.get("pet_id")
    if new_pet_id and new_pet_id != appointment.pet_id:
        await authorize_pet_update(db, current_user, table, new_pet_id)

    apply_update(appointment, update_data)
    appointment.version += 1

    await db.commit()
    await db.refresh(appointment)
    return appointment


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Soft delete an appointment."""
    await _authorize_appointment(db, current_user, table, Action.DELETE, appointment_id)
    appointment = await get_pet_record(db, PetAppointment, appointment_id, NOT_FOUND)
    appointment.date_deleted = datetime.now(timezone.utc)
    appointment.version += 1
    await db.commit()


@router.patch("/{appointment_id}/recover", response_model=PetAppointmentResponse)
async def recover_appointment(
    appointment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Recover a soft-deleted appointment."""
    await _authorize_appointment(db, current_user, table, Action.UPDATE, appointment_id)
    appointment = await db.get(PetAppointment, appointment_id)
    if appointment is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    if not appointment.is_deleted:
        raise HTTPException(status_code=400, detail="Appointment is not deleted")

    appointment = await get_pet_record(db, PetAppointment, appointment_id, NOT_FOUND, deleted=True)
    appointment.date_deleted = None
    appointment.version += 1

    await db.commit()
    await db.refresh(appointment)
    return appointment
