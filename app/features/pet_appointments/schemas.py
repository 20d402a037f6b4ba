"""
Pydantic schemas for PetAppointment API requests/responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from app.features.pet_appointments.models import AppointmentStatus


class PetAppointmentBase(BaseModel):
    """Base schema for appointment."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    appointment_date: datetime
    appointment_type: str = Field(..., min_length=1, max_length=100)
    veterinarian: str = Field(..., min_length=1, max_length=255)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    reason: str = Field(..., min_length=1)
    notes: str | None = None
    diagnosis: str | None = None
    treatment: str | None = None


class PetAppointmentCreate(PetAppointmentBase):
    """Schema for creating an appointment."""
    pet_id: str


class PetAppointmentUpdate(BaseModel):
    """Schema for updating an appointment."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    pet_id: str | None = None
    appointment_date: datetime | None = None
    appointment_type: str | None = Field(None, min_length=1, max_length=100)
    veterinarian: str | None = Field(None, min_length=1, max_length=255)
    status: AppointmentStatus | None = None
    reason: str | None = Field(None, min_length=1)
    notes: str | None = None
    diagnosis: str | None = None
    treatment: str | None = None


class PetAppointmentCreateMany(BaseModel):
    """Schema for booking several appointments at once."""
    bulk: list[PetAppointmentCreate] = Field(..., min_length=1, max_length=100)


class PetAppointmentResponse(PetAppointmentBase):
    """Schema for appointment response."""
    id: str
    pet_id: str
    version: int
    date_deleted: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PetAppointmentPage(BaseModel):
    """Paginated appointment list."""
    data: list[PetAppointmentResponse]
    count: int
    total: int
    page: int
    page_count: int
