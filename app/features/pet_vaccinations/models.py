"""
PetVaccination model.
"""
from datetime import datetime
from sqlalchemy import String, Text, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, SoftDeleteMixin, TimestampMixin, generate_ulid


class PetVaccination(Base, TimestampMixin, SoftDeleteMixin):
    """
    Vaccination record for a pet.

    Tracks the vaccine given, when, by whom, and when the next dose is due.
    Ownership follows the parent pet. Deleted records are kept for recovery.
    """
    __tablename__ = "pet_vaccinations"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    pet_id: Mapped[str] = mapped_column(ForeignKey("pets.id", ondelete="CASCADE"), nullable=False, index=True)
    vaccine_name: Mapped[str] = mapped_column(String(255), nullable=False)
    administered_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    next_due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    veterinarian: Mapped[str] = mapped_column(String(255), nullable=False)
    batch_number: Mapped[str | None] = mapped_column(String(100))
    notes: Mapped[str | None] = mapped_column(Text)

    pet = relationship("Pet", back_populates="vaccinations")

    def __repr__(self):
        return f"<PetVaccination(id={self.id}, pet_id={self.pet_id}, vaccine={self.vaccine_name!r})>"
