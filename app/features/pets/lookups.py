"""
Ownership lookups used by access decisions on pet records.

Vaccinations and appointments have no owner of their own: the owner of the
parent pet owns them.
"""
from typing import Any
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.decision import AccessResult
from app.features.pets.models import Pet


class PetOwnershipLookup:
    """Finds a pet by id, soft-deleted pets included so owners can recover them."""

    owner_field = "user_id"

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, resource_id: str) -> Pet | None:
        return await self.db.get(Pet, resource_id)


class ParentPetOwnershipLookup:
    """
    Finds the parent pet of a record that references a pet through pet_id.

    Usage:
        lookup = ParentPetOwnershipLookup(db, PetVaccination)
        pet = await lookup.find_by_id(vaccination_id)
    """

    owner_field = "user_id"

    def __init__(self, db: AsyncSession, model: Any):
        self.db = db
        self.model = model

    async def find_by_id(self, resource_id: str) -> Pet | None:
        return await self.db.scalar(
            select(Pet)
            .join(self.model, self.model.pet_id == Pet.id)
            .where(self.model.id == resource_id)
        )


def owner_filter(access: AccessResult):
    """
    SQL predicate restricting a pet query to the rows an AllowWithFilter grants.

    Returns None when access is unfiltered.
    """
    if not access.is_filtered:
        return None
    return getattr(Pet, access.field) == access.value
