"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import apply_update
from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.users.schemas import UserResponse, UserUpdate
from app.features.users.dependencies import get_current_user


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.patch("/me", response_model=UserResponse)
async def update_current_user_profile(
    update_data: UserUpdate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update current user's profile."""
    apply_update(user, update_data.model_dump(exclude_unset=True))

    await db.commit()
    await db.refresh(user, attribute_names=["name", "avatar_url", "bio", "updated_at"])
    return user
