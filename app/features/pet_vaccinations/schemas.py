"""
Pydantic schemas for PetVaccination API requests/responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict


class PetVaccinationBase(BaseModel):
    """Base schema for vaccination."""
    vaccine_name: str = Field(..., min_length=1, max_length=255)
    administered_date: datetime
    next_due_date: datetime | None = None
    veterinarian: str = Field(..., min_length=1, max_length=255)
    batch_number: str | None = Field(None, max_length=100)
    notes: str | None = None


class PetVaccinationCreate(PetVaccinationBase):
    """Schema for creating a vaccination record."""
    pet_id: str


class PetVaccinationUpdate(BaseModel):
    """Schema for updating a vaccination record."""
    pet_id: str | None = None
    vaccine_name: str | None = Field(None, min_length=1, max_length=255)
    administered_date: datetime | None = None
    next_due_date: datetime | None = None
    veterinarian: str | None = Field(None, min_length=1, max_length=255)
    batch_number: str | None = Field(None, max_length=100)
    notes: str | None = None


class PetVaccinationCreateMany(BaseModel):
    """Schema for recording several vaccinations at once."""
    bulk: list[PetVaccinationCreate] = Field(..., min_length=1, max_length=100)


class PetVaccinationResponse(PetVaccinationBase):
    """Schema for vaccination response."""
    id: str
    pet_id: str
    version: int
    date_deleted: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PetVaccinationPage(BaseModel):
    """Paginated vaccination list."""
    data: list[PetVaccinationResponse]
    count: int
    total: int
    page: int
    page_count: int
