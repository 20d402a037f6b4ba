"""
PetAppointment model.
"""
import enum
from datetime import datetime
from sqlalchemy import String, Text, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, SoftDeleteMixin, TimestampMixin, generate_ulid


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class PetAppointment(Base, TimestampMixin, SoftDeleteMixin):
    """
    Veterinary appointment for a pet.

    Attributes:
        appointment_type: checkup, surgery, ...
        status: scheduled, completed, cancelled or no_show
        reason: Why the visit was booked
        diagnosis, treatment: Filled in after the visit
    """
    __tablename__ = "pet_appointments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    pet_id: Mapped[str] = mapped_column(ForeignKey("pets.id", ondelete="CASCADE"), nullable=False, index=True)
    appointment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    appointment_type: Mapped[str] = mapped_column(String(100), nullable=False)
    veterinarian: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=AppointmentStatus.SCHEDULED.value, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    diagnosis: Mapped[str | None] = mapped_column(Text)
    treatment: Mapped[str | None] = mapped_column(Text)

    pet = relationship("Pet", back_populates="appointments")

    def __repr__(self):
        return f"<PetAppointment(id={self.id}, pet_id={self.pet_id}, date={self.appointment_date})>"
