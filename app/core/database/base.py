"""
SQLAlchemy declarative base and common model utilities.

All SQLAlchemy models should inherit from Base.
"""
from datetime import datetime
from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.
    
    Usage:
        from app.core.database.base import Base
        
        class Pet(Base):
            __tablename__ = "pets"
            
            id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
            name: Mapped[str] = mapped_column(String(255))
    """
    pass


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.
    
    Usage:
        class User(Base, TimestampMixin):
            __tablename__ = "users"
            id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SoftDeleteMixin:
    """
    Mixin for records that are soft deleted and versioned.

    A row with date_deleted set is hidden from list/read queries but kept
    so it can be recovered. version is bumped on every write.
    """
    date_deleted: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    @property
    def is_deleted(self) -> bool:
        return self.date_deleted is not None


def apply_update(record: Base, changes: dict) -> None:
    """
    Copy PATCH fields onto a model instance.

    An explicit null clears a nullable column and is ignored for a required one.
    """
    columns = record.__table__.columns
    for key, value in changes.items():
        if value is None and key in columns and not columns[key].nullable:
            continue
        setattr(record, key, value)
