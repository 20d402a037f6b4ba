"""
Pet model.
"""
import enum
from sqlalchemy import String, Integer, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, SoftDeleteMixin, TimestampMixin, generate_ulid


class PetStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Pet(Base, TimestampMixin, SoftDeleteMixin):
    """
    Pet owned by a user.

    Attributes:
        id: ULID primary key
        name: Pet name
        species: Species (dog, cat, ...)
        breed: Optional breed
        age: Age in years (0-50)
        color: Optional color
        description: Free text
        status: active or inactive
        user_id: Owner; set from the authenticated user at creation and never changed
        vaccinations: Related PetVaccination records
        appointments: Related PetAppointment records
    """
    __tablename__ = "pets"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    species: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    breed: Mapped[str | None] = mapped_column(String(255))
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    color: Mapped[str | None] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default=PetStatus.ACTIVE.value, nullable=False)
    user_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)

    # Relationships
    vaccinations = relationship(
        "PetVaccination", back_populates="pet", cascade="all, delete-orphan", lazy="selectin"
    )
    appointments = relationship(
        "PetAppointment", back_populates="pet", cascade="all, delete-orphan", lazy="selectin"
    )

    __table_args__ = (
        Index("ix_pets_user_species", "user_id", "species"),
    )

    def __repr__(self):
        return f"<Pet(id={self.id}, name={self.name!r}, user_id={self.user_id})>"
