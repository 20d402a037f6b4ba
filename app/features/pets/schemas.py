"""
Pydantic schemas for Pet API requests/responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from app.features.pets.models import PetStatus
from app.features.pet_vaccinations.schemas import PetVaccinationResponse
from app.features.pet_appointments.schemas import PetAppointmentResponse


class PetBase(BaseModel):
    """Base schema for pet."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    name: str = Field(..., min_length=1, max_length=255)
    species: str = Field(..., min_length=1, max_length=100)
    breed: str | None = Field(None, max_length=255)
    age: int = Field(..., ge=0, le=50, description="Age in years")
    color: str | None = Field(None, max_length=100)
    description: str | None = None
    status: PetStatus = PetStatus.ACTIVE


class PetCreate(PetBase):
    """
    Schema for creating a pet.

    The owner is always the authenticated user; an owner in the body is ignored.
    """
    pass


class PetUpdate(BaseModel):
    """Schema for updating a pet. The owner cannot be changed."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    name: str | None = Field(None, min_length=1, max_length=255)
    species: str | None = Field(None, min_length=1, max_length=100)
    breed: str | None = Field(None, max_length=255)
    age: int | None = Field(None, ge=0, le=50)
    color: str | None = Field(None, max_length=100)
    description: str | None = None
    status: PetStatus | None = None


class PetResponse(PetBase):
    """Schema for pet response."""
    id: str
    user_id: str
    version: int
    date_deleted: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PetDetailResponse(PetResponse):
    """Pet with its vaccinations and appointments."""
    vaccinations: list[PetVaccinationResponse] = []
    appointments: list[PetAppointmentResponse] = []


class PetPage(BaseModel):
    """Paginated pet list."""
    data: list[PetResponse]
    count: int = Field(..., description="Number of pets in this page")
    total: int = Field(..., description="Number of pets matching the query")
    page: int
    page_count: int
